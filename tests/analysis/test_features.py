"""Tests for raster-to-table conversion."""

import numpy as np
import numpy.testing as npt
import pytest

from phenocluster.analysis.features import raster_to_table, standardize
from phenocluster.raster import RasterCube


def _cube_with_gaps() -> RasterCube:
    values = np.arange(3 * 2 * 3, dtype=np.float64).reshape(3, 2, 3)
    values[0, 0, 1] = np.nan
    values[2, 1, 2] = np.nan
    return RasterCube(
        values=values,
        layers=["t1", "t2", "t3"],
        x=np.array([0.5, 1.5, 2.5]),
        y=np.array([1.5, 0.5]),
    )


class TestRasterToTable:
    """Tests for raster_to_table()."""

    @pytest.mark.unit
    def test_row_count_matches_valid_cells(self) -> None:
        cube = _cube_with_gaps()
        table = raster_to_table(cube)
        assert len(table) == cube.valid_count == 4

    @pytest.mark.unit
    def test_rows_follow_grid_order(self) -> None:
        table = raster_to_table(_cube_with_gaps())
        assert list(zip(table.rows, table.cols)) == [(0, 0), (0, 2), (1, 0), (1, 1)]
        assert list(table.frame.columns) == ["t1", "t2", "t3"]
        assert table.frame.index.names == ["row", "col"]

    @pytest.mark.unit
    def test_values_are_cell_time_series(self) -> None:
        cube = _cube_with_gaps()
        table = raster_to_table(cube)
        npt.assert_array_equal(table.values[1], cube.values[:, 0, 2])

    @pytest.mark.unit
    def test_coordinates(self) -> None:
        coords = raster_to_table(_cube_with_gaps()).coordinates()
        assert coords["x"].tolist() == [0.5, 2.5, 0.5, 1.5]
        assert coords["y"].tolist() == [1.5, 1.5, 0.5, 0.5]

    @pytest.mark.unit
    def test_all_missing_gives_empty_table(self) -> None:
        cube = RasterCube(values=np.full((2, 3, 3), np.nan))
        table = raster_to_table(cube)
        assert len(table) == 0
        assert table.values.shape == (0, 2)

    @pytest.mark.unit
    def test_gappy_synthetic_cube(self, gappy_cube: RasterCube) -> None:
        table = raster_to_table(gappy_cube)
        assert len(table) == gappy_cube.valid_count
        assert np.isfinite(table.values).all()


class TestStandardize:
    """Tests for standardize()."""

    @pytest.mark.unit
    def test_zero_mean_unit_variance(self, lai_cube: RasterCube) -> None:
        table = standardize(raster_to_table(lai_cube))
        npt.assert_allclose(table.values.mean(axis=0), 0.0, atol=1e-9)
        npt.assert_allclose(table.values.std(axis=0), 1.0, atol=1e-9)

    @pytest.mark.unit
    def test_input_unchanged(self) -> None:
        table = raster_to_table(_cube_with_gaps())
        before = table.values.copy()
        scaled = standardize(table)
        npt.assert_array_equal(table.values, before)
        assert scaled.frame.index.equals(table.frame.index)

    @pytest.mark.unit
    def test_empty_table(self) -> None:
        table = raster_to_table(RasterCube(values=np.full((2, 2, 2), np.nan)))
        assert len(standardize(table)) == 0
