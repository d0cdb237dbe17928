"""Feature extraction, clustering, and seasonality computations."""

from phenocluster.analysis.clustering import (
    ClusterModel,
    evaluate_k,
    kmeans_cluster,
    labels_to_raster,
    silhouette,
)
from phenocluster.analysis.features import FeatureTable, raster_to_table, standardize
from phenocluster.analysis.indices import (
    compute_ndvi,
    ndvi_cube,
    profiles_by_label,
    seasonal_amplitude,
    seasonal_profile,
)

__all__ = [
    "ClusterModel",
    "FeatureTable",
    "compute_ndvi",
    "evaluate_k",
    "kmeans_cluster",
    "labels_to_raster",
    "ndvi_cube",
    "profiles_by_label",
    "raster_to_table",
    "seasonal_amplitude",
    "seasonal_profile",
    "silhouette",
    "standardize",
]
