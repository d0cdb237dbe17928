"""Synthetic multi-temporal LAI rasters for demonstrations and tests.

The generated scene holds three cover types in vertical strips, each
with a characteristic seasonal LAI curve:

* evergreen forest: high LAI all year with a weak summer swell,
* cropland: low LAI outside a single growing-season peak,
* bare soil / urban: near-zero LAI all year.

Numbering of ``COVER_NAMES`` follows the mean LAI of each cover, which
is also the order ``kmeans_cluster()`` assigns to cluster labels.
"""

from __future__ import annotations

import logging

import numpy as np
import numpy.typing as npt
import pandas as pd

from phenocluster.raster import RasterCube

logger = logging.getLogger(__name__)

COVER_NAMES: dict[int, str] = {0: "bare/urban", 1: "cropland", 2: "evergreen forest"}

_BARE, _CROP, _FOREST = 0, 1, 2

_FOREST_BASE_LAI: float = 4.5
_FOREST_SWELL_LAI: float = 0.6
_CROP_BASE_LAI: float = 0.4
_CROP_PEAK_LAI: float = 4.2
_BARE_LAI: float = 0.2


def cover_classes(height: int, width: int) -> npt.NDArray[np.int64]:
    """True cover class per cell: forest, cropland, bare from west to east."""
    classes = np.full((height, width), _BARE, dtype=np.int64)
    third = width // 3
    classes[:, :third] = _FOREST
    classes[:, third : 2 * third] = _CROP
    return classes


def _cover_curves(n_layers: int) -> dict[int, npt.NDArray[np.float64]]:
    """Noise-free LAI curve of each cover over *n_layers* steps of a year."""
    phase = np.arange(n_layers) / n_layers
    summer = 0.5 - 0.5 * np.cos(2 * np.pi * phase)  # 0 in January, 1 mid-year
    peak_at = 0.55
    crop_peak = np.exp(-(((phase - peak_at) / 0.12) ** 2))
    return {
        _FOREST: _FOREST_BASE_LAI + _FOREST_SWELL_LAI * summer,
        _CROP: _CROP_BASE_LAI + _CROP_PEAK_LAI * crop_peak,
        _BARE: np.full(n_layers, _BARE_LAI),
    }


def synthetic_lai_cube(
    height: int = 40,
    width: int = 60,
    n_layers: int = 12,
    seed: int = 0,
    missing_fraction: float = 0.05,
    noise: float = 0.15,
    start: str = "2020-01-15",
    center: tuple[float, float] = (10.0, 50.0),
    cell_size: float = 0.005,
) -> RasterCube:
    """Generate a deterministic three-cover LAI cube.

    Args:
        height: Grid rows.
        width: Grid columns (at least 3 to hold every cover).
        n_layers: Time layers, one per month starting at *start*.
        seed: Random seed for noise and gaps.
        missing_fraction: Share of cells given a gap in one layer.
        noise: Standard deviation of Gaussian noise added to LAI.
        start: Date of the first layer.
        center: ``(lon, lat)`` of the scene centre in degrees.
        cell_size: Cell size in degrees.

    Returns:
        ``RasterCube`` in EPSG:4326 with monthly ISO-date layer labels.

    Example:
        >>> cube = synthetic_lai_cube(height=10, width=12, missing_fraction=0.0)
        >>> cube.valid_count
        120
    """
    if width < 3:
        msg = "width must be at least 3 to hold all cover types"
        raise ValueError(msg)

    rng = np.random.default_rng(seed)
    classes = cover_classes(height, width)
    curves = _cover_curves(n_layers)

    values = np.empty((n_layers, height, width), dtype=np.float64)
    for cover, curve in curves.items():
        values[:, classes == cover] = curve[:, np.newaxis]
    values += rng.normal(0.0, noise, size=values.shape)
    np.clip(values, 0.0, None, out=values)

    n_missing = int(round(missing_fraction * height * width))
    if n_missing:
        cells = rng.choice(height * width, size=n_missing, replace=False)
        layers = rng.integers(0, n_layers, size=n_missing)
        rows, cols = np.unravel_index(cells, (height, width))
        values[layers, rows, cols] = np.nan

    dates = pd.date_range(start, periods=n_layers, freq=pd.DateOffset(months=1))
    lon0, lat0 = center
    x = lon0 + (np.arange(width) - (width - 1) / 2) * cell_size
    y = lat0 - (np.arange(height) - (height - 1) / 2) * cell_size

    logger.debug(
        "Generated synthetic LAI cube %dx%dx%d with %d gaps",
        n_layers,
        height,
        width,
        n_missing,
    )
    return RasterCube(
        values=values,
        layers=dates.strftime("%Y-%m-%d").tolist(),
        x=x,
        y=y,
        crs="EPSG:4326",
        variable="LAI",
    )
