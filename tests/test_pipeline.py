"""Tests for pipeline helpers: input resolution and quality scoring."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
import xarray as xr

from phenocluster._pipeline import _assess_quality, _resolve_cube, _result_metadata
from phenocluster.config import Config
from phenocluster.exceptions import RasterError
from phenocluster.raster import RasterCube, save_cube


@pytest.mark.unit
class TestAssessQuality:
    """Verify confidence scoring and warning generation."""

    def test_full_coverage_balanced_clusters(self) -> None:
        qa = _assess_quality(100, 100, {0: 50, 1: 50})
        assert qa.confidence == pytest.approx(1.0)
        assert qa.warnings == []
        assert qa.small_clusters == []

    def test_low_coverage(self) -> None:
        qa = _assess_quality(40, 100, {0: 20, 1: 20})
        assert qa.confidence == pytest.approx(0.7 * 0.8 + 0.3)
        assert any("Low coverage: only 40%" in w for w in qa.warnings)
        assert "60 cells excluded (missing values in at least one layer)" in qa.warnings

    def test_coverage_above_threshold_scores_full(self) -> None:
        qa = _assess_quality(60, 100, {0: 30, 1: 30})
        assert qa.confidence == pytest.approx(1.0)
        assert not any("Low coverage" in w for w in qa.warnings)
        assert "40 cells excluded (missing values in at least one layer)" in qa.warnings

    def test_small_clusters_reduce_confidence(self) -> None:
        qa = _assess_quality(100, 100, {0: 90, 1: 5, 2: 5}, min_cluster_cells=10)
        assert qa.small_clusters == [1, 2]
        assert qa.confidence == pytest.approx(0.7 + 0.3 / 3)
        assert "2 clusters smaller than 10 cells: 1, 2" in qa.warnings

    def test_no_valid_cells(self) -> None:
        qa = _assess_quality(0, 50)
        assert qa.confidence == 0.0
        assert qa.warnings == [
            "No complete cells: every cell is missing at least one layer"
        ]

    def test_without_cluster_sizes_only_coverage_counts(self) -> None:
        qa = _assess_quality(100, 100)
        assert qa.confidence == pytest.approx(0.7)

    def test_valid_cells_clamped(self) -> None:
        qa = _assess_quality(150, 100, {0: 150})
        assert qa.valid_cells == 100
        assert 0.0 <= qa.confidence <= 1.0

    def test_custom_min_valid_fraction(self) -> None:
        qa = _assess_quality(80, 100, {0: 80}, min_valid_fraction=0.9)
        assert qa.confidence == pytest.approx(0.7 * (0.8 / 0.9) + 0.3)
        assert any("Low coverage" in w for w in qa.warnings)


@pytest.mark.unit
class TestResolveCube:
    """Verify every supported source type resolves to a RasterCube."""

    def test_cube_passthrough(self, lai_cube: RasterCube, test_config: Config) -> None:
        cube, name = _resolve_cube(lai_cube, None, test_config)
        assert cube is lai_cube
        assert name == "array"

    def test_dataarray(self, test_config: Config) -> None:
        da = xr.DataArray(np.ones((2, 3, 3)), dims=("time", "y", "x"))
        config = Config(default_crs="EPSG:3035")
        cube, name = _resolve_cube(da, None, config)
        assert cube.shape == (2, 3, 3)
        assert cube.crs == "EPSG:3035"
        assert name == "array"

    def test_file_path(self, lai_cube: RasterCube, tmp_path: Path, test_config: Config) -> None:
        path = save_cube(lai_cube, tmp_path / "lai.npz")
        cube, name = _resolve_cube(str(path), None, test_config)
        assert cube.shape == lai_cube.shape
        assert name == "lai.npz"

    def test_missing_file(self, tmp_path: Path, test_config: Config) -> None:
        with pytest.raises(RasterError):
            _resolve_cube(tmp_path / "absent.nc", None, test_config)

    def test_unsupported_type(self, test_config: Config) -> None:
        with pytest.raises(TypeError, match="Unsupported raster source list"):
            _resolve_cube([1, 2, 3], None, test_config)  # type: ignore[arg-type]


@pytest.mark.unit
class TestResultMetadata:
    """Verify metadata is derived from the cube."""

    def test_metadata_fields(self, gappy_cube: RasterCube) -> None:
        meta = _result_metadata(gappy_cube, "lai.nc")
        assert meta.source == "lai.nc"
        assert meta.variable == "LAI"
        assert meta.layers == gappy_cube.layers
        assert meta.crs == "EPSG:4326"
        assert meta.bounds == gappy_cube.bounds
        assert meta.valid_cells == gappy_cube.valid_count
        assert meta.total_cells == 180
