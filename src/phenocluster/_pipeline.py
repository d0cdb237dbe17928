"""Pipeline helpers shared by the top-level analysis functions.

Resolves heterogeneous inputs to a ``RasterCube``, scores result
quality, and assembles result objects.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
import xarray as xr

from phenocluster._types import QualityAssessment
from phenocluster.raster import RasterCube, load_cube
from phenocluster.results import ClassificationResult, ResultMetadata

if TYPE_CHECKING:
    import pandas as pd

    from phenocluster.analysis.clustering import ClusterModel
    from phenocluster.config import Config

logger = logging.getLogger(__name__)

# Confidence scoring weights.
_COVERAGE_WEIGHT: float = 0.7
_BALANCE_WEIGHT: float = 0.3


# ── Input resolution ───────────────────────────────────────────────


def _resolve_cube(
    source: str | Path | RasterCube | xr.DataArray,
    variable: str | None,
    config: Config,
) -> tuple[RasterCube, str]:
    """Turn any supported raster source into a cube.

    Args:
        source: File path, ``RasterCube`` or xarray ``DataArray``.
        variable: Data variable to read from NetCDF files.
        config: Active configuration (supplies the fallback CRS).

    Returns:
        The cube and a short source description for metadata.

    Raises:
        TypeError: If *source* is of an unsupported type.
        RasterError: If a file cannot be loaded.
    """
    if isinstance(source, RasterCube):
        return source, "array"
    if isinstance(source, xr.DataArray):
        return RasterCube.from_dataarray(source, default_crs=config.default_crs), "array"
    if isinstance(source, (str, Path)):
        return load_cube(source, variable=variable), Path(source).name
    raise TypeError(
        f"Unsupported raster source {type(source).__name__}. "
        "Pass a file path, a RasterCube or an xarray.DataArray"
    )


def _result_metadata(cube: RasterCube, source: str) -> ResultMetadata:
    return ResultMetadata(
        source=source,
        variable=cube.variable,
        layers=list(cube.layers),
        crs=cube.crs,
        bounds=cube.bounds,
        resolution=cube.resolution,
        valid_cells=cube.valid_count,
        total_cells=cube.height * cube.width,
    )


# ── Quality assessment helper ──────────────────────────────────────


def _assess_quality(
    valid_cells: int,
    total_cells: int,
    cluster_sizes: dict[int, int] | None = None,
    min_valid_fraction: float = 0.5,
    min_cluster_cells: int = 10,
) -> QualityAssessment:
    """Compute quality assessment for a classification.

    The confidence score combines two factors:

    * **Coverage** (weight 0.7): valid-cell fraction relative to
      *min_valid_fraction*, capped at 1.
    * **Balance** (weight 0.3): share of clusters holding at least
      *min_cluster_cells* cells.

    ``valid_cells`` is clamped to ``[0, total_cells]``.

    Args:
        valid_cells: Cells with a value in every layer.
        total_cells: Cells in the grid.
        cluster_sizes: Cells per cluster label.
        min_valid_fraction: Fraction treated as full coverage.
        min_cluster_cells: Size below which a cluster is flagged.

    Returns:
        ``QualityAssessment`` with confidence in [0.0, 1.0] and warnings.
    """
    cluster_sizes = dict(cluster_sizes or {})
    total_cells = max(total_cells, 0)
    valid_cells = max(min(valid_cells, total_cells), 0)

    warnings: list[str] = []

    if valid_cells == 0:
        warnings.append("No complete cells: every cell is missing at least one layer")
        return QualityAssessment(
            confidence=0.0,
            valid_cells=0,
            total_cells=total_cells,
            warnings=warnings,
        )

    fraction = valid_cells / total_cells
    coverage_score = min(fraction / min_valid_fraction, 1.0)

    small = sorted(label for label, n in cluster_sizes.items() if n < min_cluster_cells)
    if cluster_sizes:
        balance_score = 1.0 - len(small) / len(cluster_sizes)
    else:
        balance_score = 0.0

    confidence = _COVERAGE_WEIGHT * coverage_score + _BALANCE_WEIGHT * balance_score
    confidence = min(max(confidence, 0.0), 1.0)

    # ── Warning generation ────────────────────────────────────────
    if fraction < min_valid_fraction:
        warnings.append(
            f"Low coverage: only {fraction:.0%} of cells have values in every layer"
        )

    excluded = total_cells - valid_cells
    if excluded > 0:
        warnings.append(f"{excluded} cells excluded (missing values in at least one layer)")

    if small:
        warnings.append(
            f"{len(small)} clusters smaller than {min_cluster_cells} cells: "
            f"{', '.join(str(label) for label in small)}"
        )

    return QualityAssessment(
        confidence=confidence,
        valid_cells=valid_cells,
        total_cells=total_cells,
        small_clusters=small,
        warnings=warnings,
    )


# ── Result construction helper ─────────────────────────────────────


def _build_result(
    labels: npt.NDArray[np.floating[Any]],
    model: ClusterModel,
    profiles: pd.DataFrame,
    quality: QualityAssessment,
    metadata: ResultMetadata,
    config: Config,
    silhouette: float = float("nan"),
) -> ClassificationResult:
    """Assemble a ``ClassificationResult`` from pipeline outputs.

    Args:
        labels: ``(rows, cols)`` label raster from ``labels_to_raster()``.
        model: Fitted cluster model.
        profiles: Mean profile per cluster from ``profiles_by_label()``.
        quality: Quality assessment from ``_assess_quality()``.
        metadata: Result metadata.
        config: Configuration supplying rendering defaults.
        silhouette: Silhouette score of the partition.

    Returns:
        ``ClassificationResult`` with confidence and warnings.
    """
    return ClassificationResult(
        data=labels,
        confidence=quality.confidence,
        metadata=metadata,
        warnings=list(quality.warnings),
        n_clusters=model.n_clusters,
        cluster_sizes=model.cluster_sizes(),
        centers=model.centers,
        profiles=profiles,
        inertia=model.inertia,
        silhouette=silhouette,
        colormap=config.colormap,
        basemap_tiles=config.basemap_tiles,
    )


def _empty_result(
    cube: RasterCube,
    metadata: ResultMetadata,
    n_clusters: int,
    config: Config,
) -> ClassificationResult:
    """Result for a cube without any complete cell."""
    quality = _assess_quality(
        valid_cells=0,
        total_cells=cube.height * cube.width,
        min_valid_fraction=config.min_valid_fraction,
        min_cluster_cells=config.min_cluster_cells,
    )
    return ClassificationResult(
        data=np.full((cube.height, cube.width), np.nan),
        confidence=0.0,
        metadata=metadata,
        warnings=list(quality.warnings),
        n_clusters=n_clusters,
        colormap=config.colormap,
        basemap_tiles=config.basemap_tiles,
    )
