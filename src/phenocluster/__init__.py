"""phenocluster: unsupervised land-cover classification from seasonality.

Groups raster cells by the shape of their LAI or NDVI time series with
k-means, maps the clusters back onto the grid, and renders them as
static figures or interactive Leaflet maps.

Example:
    >>> import phenocluster as pc
    >>>
    >>> cube = pc.load_cube("lai_2020.nc")
    >>> result = pc.classify(cube, n_clusters=4)
    >>> print(result)
    >>> result.to_html_map("clusters.html")
    >>>
    >>> # Compare the seasonal curves of the clusters
    >>> pc.seasonality(cube, result).to_png("profiles.png")
"""

from phenocluster.__about__ import __version__
from phenocluster.api import classify, seasonality
from phenocluster.config import Config, configure, load_config
from phenocluster.datasets import synthetic_lai_cube
from phenocluster.exceptions import (
    ClusteringError,
    ConfigurationError,
    PhenoClusterError,
    RasterError,
)
from phenocluster.raster import RasterCube, load_cube, save_cube
from phenocluster.results import (
    BaseResult,
    ClassificationResult,
    ResultMetadata,
    SeasonalityResult,
)

__all__ = [
    # Version
    "__version__",
    # Analysis (top-level functions)
    "classify",
    "seasonality",
    # Rasters
    "RasterCube",
    "load_cube",
    "save_cube",
    "synthetic_lai_cube",
    # Configuration
    "Config",
    "configure",
    "load_config",
    # Results
    "BaseResult",
    "ClassificationResult",
    "ResultMetadata",
    "SeasonalityResult",
    # Exceptions
    "ClusteringError",
    "ConfigurationError",
    "PhenoClusterError",
    "RasterError",
]
