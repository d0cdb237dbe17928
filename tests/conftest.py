"""Shared test fixtures for the phenocluster test suite."""

from __future__ import annotations

import pytest

from phenocluster.config import Config
from phenocluster.datasets import synthetic_lai_cube
from phenocluster.raster import RasterCube


@pytest.fixture
def test_config() -> Config:
    """Return a fresh default Config instance for test isolation."""
    return Config()


@pytest.fixture
def lai_cube() -> RasterCube:
    """Return a small gap-free three-cover LAI cube (12 x 15 x 12)."""
    return synthetic_lai_cube(height=12, width=15, n_layers=12, seed=1, missing_fraction=0.0)


@pytest.fixture
def gappy_cube() -> RasterCube:
    """Return a 12 x 15 LAI cube where 18 cells miss one layer."""
    return synthetic_lai_cube(height=12, width=15, n_layers=12, seed=2, missing_fraction=0.1)
