"""Raster cube to feature table conversion.

The table has one row per spatial cell and one column per time layer,
the layout scikit-learn estimators expect. Cells missing any layer are
dropped, so the row count always equals ``RasterCube.valid_count``.

Example:
    >>> table = raster_to_table(cube)
    >>> len(table) == cube.valid_count
    True
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np
import numpy.typing as npt
import pandas as pd
from sklearn.preprocessing import StandardScaler

from phenocluster.raster import RasterCube

logger = logging.getLogger(__name__)


@dataclass
class FeatureTable:
    """Per-cell feature matrix derived from a raster cube.

    Attributes:
        frame: DataFrame indexed by ``(row, col)``; columns are layer
            labels.
        height: Rows in the source grid.
        width: Columns in the source grid.
        x: Source grid x coordinates (one per column).
        y: Source grid y coordinates (one per row).
    """

    frame: pd.DataFrame
    height: int
    width: int
    x: npt.NDArray[np.floating[Any]]
    y: npt.NDArray[np.floating[Any]]

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def values(self) -> npt.NDArray[np.floating[Any]]:
        """Feature matrix as a ``(cells, layers)`` array."""
        return self.frame.to_numpy(dtype=np.float64)

    @property
    def rows(self) -> npt.NDArray[np.intp]:
        return self.frame.index.get_level_values("row").to_numpy(dtype=np.intp)

    @property
    def cols(self) -> npt.NDArray[np.intp]:
        return self.frame.index.get_level_values("col").to_numpy(dtype=np.intp)

    def coordinates(self) -> pd.DataFrame:
        """Cell-centre ``x``/``y`` for every table row."""
        return pd.DataFrame(
            {"x": self.x[self.cols], "y": self.y[self.rows]},
            index=self.frame.index,
        )


def raster_to_table(cube: RasterCube) -> FeatureTable:
    """Flatten *cube* into a feature table of complete cells.

    Rows follow row-major grid order. Cells with a NaN in any layer are
    dropped; a cube without complete cells yields an empty table.

    Args:
        cube: Source raster cube.

    Returns:
        ``FeatureTable`` with ``len(table) == cube.valid_count``.
    """
    mask = cube.valid_mask
    rows, cols = np.nonzero(mask)
    data = cube.values[:, rows, cols].T

    index = pd.MultiIndex.from_arrays([rows, cols], names=["row", "col"])
    frame = pd.DataFrame(data, index=index, columns=pd.Index(cube.layers, name="layer"))

    dropped = cube.height * cube.width - len(frame)
    if dropped:
        logger.debug("Dropped %d incomplete cells from feature table", dropped)

    return FeatureTable(
        frame=frame,
        height=cube.height,
        width=cube.width,
        x=np.asarray(cube.x),
        y=np.asarray(cube.y),
    )


def standardize(table: FeatureTable) -> FeatureTable:
    """Z-score every layer column with scikit-learn's ``StandardScaler``.

    Returns a new table; the input is unchanged. Empty tables are
    returned as a copy.
    """
    if len(table) == 0:
        frame = table.frame.copy()
    else:
        scaled = StandardScaler().fit_transform(table.values)
        frame = pd.DataFrame(scaled, index=table.frame.index, columns=table.frame.columns)

    return FeatureTable(
        frame=frame,
        height=table.height,
        width=table.width,
        x=table.x,
        y=table.y,
    )
