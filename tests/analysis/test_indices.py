"""Tests for vegetation index and seasonality computations."""

import numpy as np
import numpy.testing as npt
import pandas as pd
import pytest

from phenocluster.analysis.indices import (
    compute_ndvi,
    ndvi_cube,
    profiles_by_label,
    seasonal_amplitude,
    seasonal_profile,
)
from phenocluster.datasets import COVER_NAMES, cover_classes
from phenocluster.exceptions import RasterError
from phenocluster.raster import RasterCube


class TestComputeNdvi:
    """Tests for compute_ndvi()."""

    @pytest.mark.unit
    def test_ndvi_known_values(self) -> None:
        """Standard NDVI computation with hand-calculable values."""
        red = np.array([[0.1, 0.2]], dtype=np.float32)
        nir = np.array([[0.5, 0.4]], dtype=np.float32)

        ndvi = compute_ndvi(red, nir)

        assert ndvi.shape == (1, 2)
        assert ndvi.dtype == np.float32
        npt.assert_allclose(ndvi[0, 0], (0.5 - 0.1) / (0.5 + 0.1), atol=1e-5)
        npt.assert_allclose(ndvi[0, 1], (0.4 - 0.2) / (0.4 + 0.2), atol=1e-5)

    @pytest.mark.unit
    def test_ndvi_nan_propagation(self) -> None:
        red = np.array([[0.1, np.nan, 0.2]])
        nir = np.array([[0.5, 0.4, np.nan]])

        ndvi = compute_ndvi(red, nir)

        assert not np.isnan(ndvi[0, 0])
        assert np.isnan(ndvi[0, 1])
        assert np.isnan(ndvi[0, 2])

    @pytest.mark.unit
    def test_ndvi_division_by_zero_produces_nan(self) -> None:
        """Where nir + red == 0, result is NaN (not crash or inf)."""
        red = np.array([[0.0, 0.1]])
        nir = np.array([[0.0, 0.3]])

        ndvi = compute_ndvi(red, nir)

        assert np.isnan(ndvi[0, 0])
        assert not np.isnan(ndvi[0, 1])

    @pytest.mark.unit
    def test_ndvi_integer_input_returns_float(self) -> None:
        red = np.array([100, 200], dtype=np.uint16)
        nir = np.array([300, 200], dtype=np.uint16)

        ndvi = compute_ndvi(red, nir)

        assert ndvi.dtype == np.float64
        npt.assert_allclose(ndvi, [0.5, 0.0])


class TestNdviCube:
    """Tests for ndvi_cube()."""

    @pytest.mark.unit
    def test_ndvi_cube_keeps_grid(self) -> None:
        red = RasterCube(values=np.full((2, 2, 3), 0.1), layers=["a", "b"], crs="EPSG:32633")
        nir = RasterCube(values=np.full((2, 2, 3), 0.5), layers=["a", "b"], crs="EPSG:32633")

        cube = ndvi_cube(red, nir)

        assert cube.variable == "NDVI"
        assert cube.layers == ["a", "b"]
        assert cube.crs == "EPSG:32633"
        npt.assert_allclose(cube.values, 0.4 / 0.6)

    @pytest.mark.unit
    def test_ndvi_cube_shape_mismatch(self) -> None:
        red = RasterCube(values=np.ones((2, 2, 3)))
        nir = RasterCube(values=np.ones((2, 3, 3)))
        with pytest.raises(RasterError, match="differs from NIR shape"):
            ndvi_cube(red, nir)

    @pytest.mark.unit
    def test_ndvi_cube_layer_mismatch(self) -> None:
        red = RasterCube(values=np.ones((2, 2, 2)), layers=["a", "b"])
        nir = RasterCube(values=np.ones((2, 2, 2)), layers=["a", "c"])
        with pytest.raises(RasterError, match="different layer labels"):
            ndvi_cube(red, nir)


class TestSeasonalProfile:
    """Tests for seasonal_profile() and seasonal_amplitude()."""

    @pytest.mark.unit
    def test_profile_ignores_nan(self) -> None:
        values = np.array([[[1.0, 3.0]], [[np.nan, 4.0]]])
        cube = RasterCube(values=values, layers=["jan", "feb"])

        profile = seasonal_profile(cube)

        assert isinstance(profile, pd.Series)
        assert profile.index.name == "layer"
        assert profile.name == "LAI"
        assert profile.tolist() == [2.0, 4.0]

    @pytest.mark.unit
    def test_profile_with_mask(self) -> None:
        values = np.array([[[1.0, 3.0]], [[2.0, 6.0]]])
        cube = RasterCube(values=values)
        mask = np.array([[False, True]])

        assert seasonal_profile(cube, mask).tolist() == [3.0, 6.0]

    @pytest.mark.unit
    def test_profile_empty_mask_is_nan(self) -> None:
        cube = RasterCube(values=np.ones((3, 2, 2)))
        profile = seasonal_profile(cube, np.zeros((2, 2), dtype=bool))
        assert profile.isna().all()

    @pytest.mark.unit
    def test_profile_mask_shape_mismatch(self) -> None:
        cube = RasterCube(values=np.ones((3, 2, 2)))
        with pytest.raises(RasterError, match="Mask shape"):
            seasonal_profile(cube, np.ones((3, 3), dtype=bool))

    @pytest.mark.unit
    def test_amplitude(self) -> None:
        values = np.array(
            [
                [[1.0, np.nan]],
                [[4.0, np.nan]],
                [[2.0, np.nan]],
            ]
        )
        amplitude = seasonal_amplitude(RasterCube(values=values))
        assert amplitude[0, 0] == 3.0
        assert np.isnan(amplitude[0, 1])

    @pytest.mark.unit
    def test_cropland_more_seasonal_than_forest(self, lai_cube: RasterCube) -> None:
        amplitude = seasonal_amplitude(lai_cube)
        classes = cover_classes(lai_cube.height, lai_cube.width)
        crop = amplitude[classes == 1].mean()
        forest = amplitude[classes == 2].mean()
        assert crop > 2 * forest


class TestProfilesByLabel:
    """Tests for profiles_by_label()."""

    @pytest.mark.unit
    def test_one_column_per_label(self, lai_cube: RasterCube) -> None:
        labels = cover_classes(lai_cube.height, lai_cube.width).astype(float)

        profiles = profiles_by_label(lai_cube, labels)

        assert list(profiles.columns) == [0, 1, 2]
        assert profiles.columns.name == "cluster"
        assert list(profiles.index) == lai_cube.layers
        assert profiles[2].mean() > profiles[1].mean() > profiles[0].mean()

    @pytest.mark.unit
    def test_named_columns_and_nan_labels(self, lai_cube: RasterCube) -> None:
        labels = cover_classes(lai_cube.height, lai_cube.width).astype(float)
        labels[labels == 0] = np.nan

        profiles = profiles_by_label(lai_cube, labels, names=COVER_NAMES)

        assert list(profiles.columns) == ["cropland", "evergreen forest"]

    @pytest.mark.unit
    def test_label_shape_mismatch(self, lai_cube: RasterCube) -> None:
        with pytest.raises(RasterError, match="Label raster shape"):
            profiles_by_label(lai_cube, np.zeros((2, 2)))
