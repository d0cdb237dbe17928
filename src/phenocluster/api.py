"""Top-level analysis functions for phenocluster.

Each function accepts a raster file path, a ``RasterCube`` or an
xarray ``DataArray`` and returns a result object with exports.

Example:
    >>> import phenocluster as pc
    >>> result = pc.classify("lai_2020.nc", n_clusters=4)
    >>> result.to_html_map("clusters.html")
    >>>
    >>> profiles = pc.seasonality("lai_2020.nc", result)
    >>> profiles.to_png("profiles.png")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from phenocluster._pipeline import (
    _assess_quality,
    _build_result,
    _empty_result,
    _resolve_cube,
    _result_metadata,
)
from phenocluster.analysis.clustering import (
    kmeans_cluster,
    labels_to_raster,
    silhouette,
)
from phenocluster.analysis.features import raster_to_table, standardize
from phenocluster.analysis.indices import profiles_by_label
from phenocluster.config import get_default_config
from phenocluster.results import ClassificationResult, SeasonalityResult

if TYPE_CHECKING:
    import numpy.typing as npt
    import xarray as xr

    from phenocluster.config import Config
    from phenocluster.raster import RasterCube

logger = logging.getLogger(__name__)

# Silhouette scoring is quadratic in cells; larger tables are sampled.
_SILHOUETTE_SAMPLE_SIZE: int = 5000


def classify(
    source: str | Path | RasterCube | xr.DataArray,
    n_clusters: int | None = None,
    *,
    variable: str | None = None,
    config: Config | None = None,
) -> ClassificationResult:
    """Classify raster cells by their seasonal profile with k-means.

    Converts the cube to a feature table (one row per complete cell,
    one column per layer), runs k-means, maps the labels back onto the
    grid and summarises each cluster's mean seasonal profile.

    Args:
        source: Raster file path, ``RasterCube`` or ``DataArray``.
        n_clusters: Number of clusters. Defaults to ``config.n_clusters``.
        variable: Data variable to read from NetCDF files.
        config: Optional configuration override.

    Returns:
        ClassificationResult with the label raster, cluster sizes,
        profiles, confidence and warnings. A raster without complete
        cells yields confidence 0.0 and a warning.

    Raises:
        RasterError: If the source file cannot be loaded.
        ClusteringError: If there are fewer complete cells than clusters.

    Example:
        >>> import phenocluster as pc
        >>> result = pc.classify(pc.synthetic_lai_cube(), n_clusters=3)
        >>> result.n_clusters
        3
    """
    cfg = config or get_default_config()
    k = n_clusters if n_clusters is not None else cfg.n_clusters

    cube, source_name = _resolve_cube(source, variable, cfg)
    metadata = _result_metadata(cube, source_name)
    table = raster_to_table(cube)

    if len(table) == 0:
        logger.info("No complete cells in %s; skipping clustering", source_name)
        return _empty_result(cube, metadata, k, cfg)

    features = standardize(table) if cfg.standardize else table
    model = kmeans_cluster(
        features,
        k,
        random_state=cfg.random_state,
        n_init=cfg.n_init,
        max_iter=cfg.max_iter,
    )

    labels = labels_to_raster(model.labels, table)
    profiles = profiles_by_label(cube, labels)
    score = silhouette(
        features,
        model.labels,
        sample_size=_SILHOUETTE_SAMPLE_SIZE,
        random_state=cfg.random_state,
    )

    quality = _assess_quality(
        valid_cells=len(table),
        total_cells=cube.height * cube.width,
        cluster_sizes=model.cluster_sizes(),
        min_valid_fraction=cfg.min_valid_fraction,
        min_cluster_cells=cfg.min_cluster_cells,
    )
    return _build_result(labels, model, profiles, quality, metadata, cfg, score)


def seasonality(
    source: str | Path | RasterCube | xr.DataArray,
    labels: npt.NDArray[Any] | ClassificationResult | None = None,
    *,
    names: dict[int, str] | None = None,
    variable: str | None = None,
    config: Config | None = None,
) -> SeasonalityResult:
    """Compute the mean seasonal profile of each land-cover class.

    Args:
        source: Raster file path, ``RasterCube`` or ``DataArray``.
        labels: ``(rows, cols)`` class raster (NaN = unclassified) or a
            ``ClassificationResult``. ``None`` treats every complete
            cell as one class.
        names: Display name per class label, used as profile columns.
        variable: Data variable to read from NetCDF files.
        config: Optional configuration override.

    Returns:
        SeasonalityResult with one profile per class, its amplitude and
        peak layer.

    Example:
        >>> result = pc.seasonality(cube, labels, names={0: "forest", 1: "crop"})
        >>> list(result.profiles.columns)
        ['forest', 'crop']
    """
    cfg = config or get_default_config()
    cube, source_name = _resolve_cube(source, variable, cfg)
    metadata = _result_metadata(cube, source_name)

    if labels is None:
        label_raster = np.where(cube.valid_mask, 0.0, np.nan)
        if names is None:
            names = {0: "all cells"}
    elif isinstance(labels, ClassificationResult):
        label_raster = labels.data
    else:
        label_raster = np.asarray(labels, dtype=np.float64)

    profiles = profiles_by_label(cube, label_raster, names)

    amplitude: dict[Any, float] = {}
    peak_layer: dict[Any, str] = {}
    for column in profiles.columns:
        profile = profiles[column]
        if profile.notna().any():
            amplitude[column] = float(profile.max() - profile.min())
            peak_layer[column] = str(profile.idxmax())
        else:
            amplitude[column] = float("nan")

    labelled = np.isfinite(label_raster) & cube.valid_mask
    sizes = {
        int(label): int(np.count_nonzero(labelled & (label_raster == label)))
        for label in np.unique(label_raster[labelled])
    }
    quality = _assess_quality(
        valid_cells=int(np.count_nonzero(labelled)),
        total_cells=cube.height * cube.width,
        cluster_sizes=sizes,
        min_valid_fraction=cfg.min_valid_fraction,
        min_cluster_cells=cfg.min_cluster_cells,
    )

    logger.info(
        "Computed seasonal profiles for %d classes over %d layers",
        len(profiles.columns),
        cube.n_layers,
    )
    return SeasonalityResult(
        data=profiles.to_numpy(dtype=np.float64),
        confidence=quality.confidence,
        metadata=metadata,
        warnings=list(quality.warnings),
        profiles=profiles,
        amplitude=amplitude,
        peak_layer=peak_layer,
    )
