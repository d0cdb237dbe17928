"""Vegetation indices and seasonality summaries.

Pure computation module: no file I/O, no clustering. Takes numpy arrays
or ``RasterCube`` objects in, returns arrays or pandas objects out.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import numpy.typing as npt
import pandas as pd

from phenocluster.exceptions import RasterError
from phenocluster.raster import RasterCube


def compute_ndvi(
    red: npt.NDArray[np.floating[Any]],
    nir: npt.NDArray[np.floating[Any]],
) -> npt.NDArray[np.floating[Any]]:
    """Compute Normalised Difference Vegetation Index (NDVI).

    NDVI = (NIR - Red) / (NIR + Red).  Masked (NaN) pixels propagate
    to NaN in the output.  Where ``nir + red == 0`` the result is NaN
    (avoids division-by-zero).

    Parameters:
        red: Red band reflectance, any shape.
        nir: Near-infrared band reflectance, same shape.

    Returns:
        NDVI array with the same shape and dtype as the inputs.
        Values are in ``[-1, 1]`` for valid pixels, ``NaN`` otherwise.

    Example:
        >>> import numpy as np
        >>> red = np.array([[0.1, 0.2]], dtype=np.float32)
        >>> nir = np.array([[0.5, 0.4]], dtype=np.float32)
        >>> compute_ndvi(red, nir).shape
        (1, 2)
    """
    red_f = red.astype(np.float64)
    nir_f = nir.astype(np.float64)

    denominator = nir_f + red_f

    with np.errstate(divide="ignore", invalid="ignore"):
        ndvi: npt.NDArray[np.floating[Any]] = np.where(
            denominator == 0.0,
            np.nan,
            (nir_f - red_f) / denominator,
        )

    out_dtype = red.dtype if np.issubdtype(red.dtype, np.floating) else np.float64
    return ndvi.astype(out_dtype)


def ndvi_cube(red: RasterCube, nir: RasterCube) -> RasterCube:
    """Compute an NDVI time series from aligned red and NIR cubes.

    Args:
        red: Red reflectance cube.
        nir: Near-infrared reflectance cube on the same grid and layers.

    Returns:
        Cube with ``variable="NDVI"`` and the red cube's labels and
        coordinates.

    Raises:
        RasterError: If the cubes differ in shape or layer labels.
    """
    if red.shape != nir.shape:
        raise RasterError(
            what="Cannot compute NDVI",
            cause=f"Red cube shape {red.shape} differs from NIR shape {nir.shape}",
            fix="Resample both bands to the same grid and layers",
        )
    if red.layers != nir.layers:
        raise RasterError(
            what="Cannot compute NDVI",
            cause="Red and NIR cubes have different layer labels",
            fix="Align both cubes to the same acquisition dates",
        )

    return RasterCube(
        values=compute_ndvi(red.values, nir.values),
        layers=list(red.layers),
        x=red.x,
        y=red.y,
        crs=red.crs,
        variable="NDVI",
    )


def seasonal_profile(
    cube: RasterCube,
    mask: npt.NDArray[np.bool_] | None = None,
) -> pd.Series:
    """Mean value of each layer over a set of cells.

    Args:
        cube: Source cube.
        mask: ``(rows, cols)`` selection. All cells when ``None``.

    Returns:
        Series indexed by layer label. NaN cells are ignored; layers
        with no finite selected cells (or an empty mask) give NaN.

    Example:
        >>> profile = seasonal_profile(cube, mask=forest_mask)
        >>> profile.idxmax()
        '2020-07-15'
    """
    if mask is None:
        selected = cube.values.reshape(cube.n_layers, -1)
    else:
        if mask.shape != (cube.height, cube.width):
            raise RasterError(
                what="Cannot compute seasonal profile",
                cause=f"Mask shape {mask.shape} differs from grid "
                f"{(cube.height, cube.width)}",
                fix="Build the mask on the cube's grid",
            )
        selected = cube.values[:, mask]

    finite = np.isfinite(selected)
    counts = finite.sum(axis=1)
    sums = np.where(finite, selected, 0.0).sum(axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        means = np.where(counts > 0, sums / np.maximum(counts, 1), np.nan)

    return pd.Series(means, index=pd.Index(cube.layers, name="layer"), name=cube.variable)


def seasonal_amplitude(cube: RasterCube) -> npt.NDArray[np.floating[Any]]:
    """Per-cell range (max - min) across layers.

    Evergreen cover has a small amplitude, deciduous or cropped cover a
    large one. Cells without any finite value are NaN.
    """
    finite_any = np.any(np.isfinite(cube.values), axis=0)
    filled_max = np.where(np.isfinite(cube.values), cube.values, -np.inf).max(axis=0)
    filled_min = np.where(np.isfinite(cube.values), cube.values, np.inf).min(axis=0)
    amplitude: npt.NDArray[np.floating[Any]] = np.where(
        finite_any, filled_max - filled_min, np.nan
    )
    return amplitude


def profiles_by_label(
    cube: RasterCube,
    labels: npt.NDArray[np.floating[Any]],
    names: dict[int, str] | None = None,
) -> pd.DataFrame:
    """Mean seasonal profile of every labelled class.

    Args:
        cube: Source cube.
        labels: ``(rows, cols)`` label raster; NaN cells are ignored.
        names: Optional column names per label.

    Returns:
        DataFrame indexed by layer, one column per label (sorted).
    """
    if labels.shape != (cube.height, cube.width):
        raise RasterError(
            what="Cannot compute class profiles",
            cause=f"Label raster shape {labels.shape} differs from grid "
            f"{(cube.height, cube.width)}",
            fix="Use labels produced from the same cube",
        )

    present = np.unique(labels[np.isfinite(labels)]).astype(int)
    columns: dict[Any, pd.Series] = {}
    for label in present:
        key: Any = names.get(int(label), int(label)) if names else int(label)
        columns[key] = seasonal_profile(cube, mask=labels == label)

    frame = pd.DataFrame(columns, index=pd.Index(cube.layers, name="layer"))
    frame.columns.name = "cluster"
    return frame
