"""Interactive Leaflet maps of cluster rasters.

Builds a folium map with a basemap, a colour-coded overlay of the
label raster, a legend and a layer switcher. Saved maps are standalone
HTML files.

Example:
    >>> m = cluster_map(result.data, result.metadata.bounds, result.metadata.crs)
    >>> m.save("clusters.html")
"""

from __future__ import annotations

import html
import logging
from typing import TYPE_CHECKING, Any

import folium
import numpy as np
import numpy.typing as npt

from phenocluster.config import get_default_config
from phenocluster.exceptions import ClusteringError, ConfigurationError

if TYPE_CHECKING:
    from phenocluster._types import Bounds

logger = logging.getLogger(__name__)

_WGS84 = "EPSG:4326"

_LEGEND_TEMPLATE = """\
<div style="position: fixed; bottom: 30px; left: 30px; z-index: 9999;
            background: white; padding: 8px 12px; border-radius: 4px;
            box-shadow: 0 1px 4px rgba(0,0,0,0.3); font-size: 13px;">
  <div style="font-weight: bold; margin-bottom: 4px;">{title}</div>
  {rows}
</div>
"""

_LEGEND_ROW = (
    '<div><span style="display: inline-block; width: 12px; height: 12px; '
    'background: {color}; margin-right: 6px;"></span>{name}</div>'
)


def label_colors(n: int, colormap: str = "tab10") -> list[str]:
    """Return *n* hex colours sampled from a matplotlib colormap.

    Qualitative colormaps (``tab10``, ``Set3`` ...) are sampled entry by
    entry; continuous ones are sampled evenly from end to end.

    Raises:
        ConfigurationError: If the colormap name is unknown.
    """
    import matplotlib
    from matplotlib.colors import ListedColormap, to_hex

    try:
        cmap = matplotlib.colormaps[colormap]
    except KeyError:
        raise ConfigurationError(
            what=f"Unknown colormap '{colormap}'",
            cause="Name not registered with matplotlib",
            fix="Use a matplotlib colormap name such as 'tab10' or 'viridis'",
        ) from None

    if n <= 0:
        return []
    if isinstance(cmap, ListedColormap) and cmap.N < 256:
        samples = [cmap(i % cmap.N) for i in range(n)]
    else:
        samples = [cmap(i / max(n - 1, 1)) for i in range(n)]
    return [to_hex(c) for c in samples]


def labels_to_rgba(
    labels: npt.NDArray[np.floating[Any]],
    colors: list[str],
    opacity: float = 0.7,
) -> npt.NDArray[np.uint8]:
    """Render a label raster as an RGBA image.

    Label ``i`` takes ``colors[i % len(colors)]``; NaN cells are fully
    transparent.
    """
    from matplotlib.colors import to_rgb

    if not colors:
        msg = "at least one colour is required"
        raise ValueError(msg)

    rgba = np.zeros((*labels.shape, 4), dtype=np.uint8)
    finite = np.isfinite(labels)
    alpha = int(round(min(max(opacity, 0.0), 1.0) * 255))

    for label in np.unique(labels[finite]).astype(int):
        r, g, b = to_rgb(colors[label % len(colors)])
        cells = finite & (labels == label)
        rgba[cells] = (int(r * 255), int(g * 255), int(b * 255), alpha)
    return rgba


def _wgs84_bounds(bounds: Bounds, crs: str) -> tuple[float, float, float, float]:
    """Return ``(west, south, east, north)`` in degrees."""
    minx, miny, maxx, maxy = bounds["minx"], bounds["miny"], bounds["maxx"], bounds["maxy"]
    if crs.upper() == _WGS84:
        return (minx, miny, maxx, maxy)

    from rasterio.warp import transform_bounds

    west, south, east, north = transform_bounds(crs, _WGS84, minx, miny, maxx, maxy)
    return (west, south, east, north)


def cluster_map(
    labels: npt.NDArray[np.floating[Any]],
    bounds: Bounds,
    crs: str = _WGS84,
    palette: list[str] | None = None,
    tiles: str | None = None,
    opacity: float = 0.7,
    names: dict[int, str] | None = None,
) -> folium.Map:
    """Build a folium map showing the cluster raster.

    Args:
        labels: ``(rows, cols)`` label raster, NaN for unclassified cells.
        bounds: Raster outer edges in *crs* units.
        crs: CRS of *bounds*; projected bounds are converted to WGS84.
        palette: One hex colour per label. Sampled from the configured
            colormap when ``None``.
        tiles: Folium basemap tile set. Defaults to the configured
            ``basemap_tiles``.
        opacity: Overlay opacity in ``[0, 1]``.
        names: Legend text per label (defaults to ``"Cluster <n>"``).

    Returns:
        The ``folium.Map``; call ``.save(path)`` to write HTML.

    Raises:
        ClusteringError: If the raster has no labelled cells.
    """
    finite = labels[np.isfinite(labels)]
    if finite.size == 0:
        raise ClusteringError(
            what="Cannot draw cluster map",
            cause="Label raster holds no classified cells",
            fix="Classify a raster with at least one complete cell",
        )

    present = np.unique(finite).astype(int)
    n_colors = int(present.max()) + 1
    config = get_default_config()
    colors = palette if palette is not None else label_colors(n_colors, config.colormap)
    if tiles is None:
        tiles = config.basemap_tiles

    west, south, east, north = _wgs84_bounds(bounds, crs)
    fmap = folium.Map(
        location=[(south + north) / 2, (west + east) / 2],
        tiles=tiles,
        control_scale=True,
    )
    fmap.fit_bounds([[south, west], [north, east]])

    folium.raster_layers.ImageOverlay(
        image=labels_to_rgba(labels, colors, opacity),
        bounds=[[south, west], [north, east]],
        name="Clusters",
        interactive=False,
    ).add_to(fmap)
    folium.LayerControl().add_to(fmap)

    rows = "\n  ".join(
        _LEGEND_ROW.format(
            color=colors[label % len(colors)],
            name=html.escape((names or {}).get(int(label), f"Cluster {label}")),
        )
        for label in present
    )
    legend = _LEGEND_TEMPLATE.format(title="Land cover clusters", rows=rows)
    fmap.get_root().html.add_child(folium.Element(legend))

    logger.debug("Built cluster map with %d classes", present.size)
    return fmap
