"""Result object model for classification and seasonality outputs."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    import pandas as pd
    from matplotlib.figure import Figure

# ── Seasonality interpretation thresholds ─────────────────────────
_STABLE_RELATIVE_AMPLITUDE: float = 0.25  # Below: stable canopy
_STRONG_RELATIVE_AMPLITUDE: float = 0.6  # Above: strongly seasonal

# Peak value below which a class is read as sparse or bare cover.
_SPARSE_PEAK: dict[str, float] = {"LAI": 0.5, "NDVI": 0.2}

_GEOTIFF_LABEL_NODATA: int = -1


def _interpret_seasonality(amplitude: float, peak: float, variable: str = "LAI") -> str:
    """Return plain-language reading of a seasonal profile.

    Args:
        amplitude: Peak minus trough of the mean profile.
        peak: Highest value of the mean profile.
        variable: Measured quantity, selects the sparse-cover threshold.

    Returns:
        Human-readable interpretation string.

    Example:
        >>> _interpret_seasonality(0.3, 5.0)
        'stable canopy (evergreen or persistent cover)'
        >>> _interpret_seasonality(3.5, 4.0)
        'strongly seasonal (crops or deciduous cover)'
    """
    if math.isnan(amplitude) or math.isnan(peak):
        return "no data"
    sparse_peak = _SPARSE_PEAK.get(variable.upper())
    if sparse_peak is not None and peak < sparse_peak:
        return "sparse or no vegetation"
    if peak <= 0:
        return "no vegetation signal"
    relative = amplitude / peak
    if relative < _STABLE_RELATIVE_AMPLITUDE:
        return "stable canopy (evergreen or persistent cover)"
    if relative < _STRONG_RELATIVE_AMPLITUDE:
        return "moderately seasonal"
    return "strongly seasonal (crops or deciduous cover)"


def _has_bounds(bounds: dict[str, float]) -> bool:
    return bool(bounds) and {"minx", "miny", "maxx", "maxy"}.issubset(bounds.keys())


class ResultMetadata(BaseModel):
    """Metadata for analysis results.

    Uses Pydantic (not dataclass) for JSON serialization in export
    methods and reports.

    Attributes:
        source: Where the raster came from (file name or ``"array"``).
        variable: Measured quantity, e.g. ``"LAI"``.
        layers: Layer labels of the source cube.
        crs: Coordinate reference system (e.g., ``"EPSG:32634"``).
        bounds: Spatial bounding box ``{"minx", "miny", "maxx", "maxy"}``.
        resolution: Cell size ``(dx, dy)`` in CRS units, if known.
        valid_cells: Cells with a value in every layer.
        total_cells: Cells in the grid.

    Example:
        >>> meta = ResultMetadata(source="lai.nc", valid_cells=90, total_cells=100)
        >>> meta.variable
        'LAI'
    """

    source: str = ""
    variable: str = "LAI"
    layers: list[str] = Field(default_factory=list)
    crs: str = ""
    bounds: dict[str, float] = Field(default_factory=dict)
    resolution: tuple[float, float] | None = None
    valid_cells: int = 0
    total_cells: int = 0


@dataclass
class BaseResult:
    """Base result for all analysis outputs.

    Dataclass (not Pydantic) because numpy arrays are the primary payload.

    Attributes:
        data: Result raster or table array, possibly empty.
        confidence: Overall confidence score (0.0--1.0).
        metadata: Pydantic model with source, grid and coverage fields.
        warnings: Human-readable quality warnings.

    Example:
        >>> result = BaseResult(data=np.array([]))
        >>> result.confidence
        0.0
    """

    data: npt.NDArray[np.floating[Any]]
    confidence: float = 0.0
    metadata: ResultMetadata = field(default_factory=ResultMetadata)
    warnings: list[str] = field(default_factory=list)

    def __repr__(self) -> str:
        """Return summary representation.

        Shows type name, confidence, valid cell count, and warning count.
        Does NOT show raw arrays.
        """
        cls_name = type(self).__name__
        parts = [
            f"confidence={self.confidence:.2f}",
            f"cells={self.metadata.valid_cells}/{self.metadata.total_cells}",
        ]
        if self.warnings:
            parts.append(f"warnings={len(self.warnings)}")
        return f"{cls_name}({', '.join(parts)})"

    def to_dataframe(self) -> pd.DataFrame:
        """Export the result as a table.

        Each result type defines its own layout.
        """
        raise NotImplementedError(f"{type(self).__name__} has no table export")

    def _raster_for_export(self) -> tuple[npt.NDArray[Any], float | int | None]:
        """Array written by ``to_geotiff()`` and its nodata value."""
        if np.issubdtype(self.data.dtype, np.floating):
            return self.data, float("nan")
        return self.data, None

    def to_geotiff(self, path: str | Path) -> Path:
        """Export raster data to a GeoTIFF file.

        Writes the result array with CRS and an affine transform built
        from the metadata bounds.

        Args:
            path: Output file path (will be created/overwritten).

        Returns:
            Path object pointing to the written file.

        Raises:
            ValueError: If the result has no raster data.
        """
        import rasterio
        from rasterio.transform import from_bounds

        path = Path(path)

        if self.data.size == 0:
            msg = "Cannot export empty result to GeoTIFF"
            raise ValueError(msg)

        if self.data.ndim < 2:
            msg = "Data must be at least 2D for GeoTIFF export"
            raise ValueError(msg)

        data, nodata = self._raster_for_export()
        if data.ndim == 2:
            data = data[np.newaxis, :, :]

        bands, height, width = data.shape

        crs = self.metadata.crs or "EPSG:4326"
        bounds = self.metadata.bounds

        if _has_bounds(bounds):
            transform = from_bounds(
                bounds["minx"],
                bounds["miny"],
                bounds["maxx"],
                bounds["maxy"],
                width,
                height,
            )
        else:
            transform = from_bounds(0, 0, width, height, width, height)

        with rasterio.open(
            path,
            "w",
            driver="GTiff",
            height=height,
            width=width,
            count=bands,
            dtype=data.dtype,
            crs=crs,
            transform=transform,
            nodata=nodata,
        ) as dst:
            for i in range(bands):
                dst.write(data[i], i + 1)

        return path

    # Figure size used by to_png(); overridden per result type.
    _figsize: ClassVar[tuple[float, float]] = (10, 6)

    def _draw(self, fig: Figure) -> bool:
        """Draw the result onto *fig*.

        Returns:
            ``False`` when there is nothing to plot.
        """
        raise NotImplementedError(f"{type(self).__name__} has no figure export")

    def to_png(self, path: str | Path) -> Path:
        """Export the result figure to a PNG image.

        Results without plottable data get a "No data available"
        placeholder.

        Args:
            path: Output file path (will be created/overwritten).

        Returns:
            Path object pointing to the written file.
        """
        import matplotlib

        matplotlib.use("Agg")  # Non-interactive backend for file output
        import matplotlib.pyplot as plt

        path = Path(path)
        fig = plt.figure(figsize=self._figsize)
        try:
            if not self._draw(fig):
                fig.clear()
                ax = fig.add_subplot()
                ax.set_axis_off()
                ax.set_title(
                    f"{type(self).__name__}\nConfidence: {self.confidence:.2f}"
                )
                ax.text(
                    0.5,
                    0.5,
                    "No data available",
                    ha="center",
                    va="center",
                    fontsize=14,
                    transform=ax.transAxes,
                )

            fig.tight_layout()
            fig.savefig(path, dpi=150, bbox_inches="tight")
        finally:
            plt.close(fig)

        return path


@dataclass
class ClassificationResult(BaseResult):
    """Unsupervised land-cover classification of a raster cube.

    ``data`` is the ``(rows, cols)`` label raster: cluster numbers for
    classified cells, NaN for cells with missing layers.

    Attributes:
        n_clusters: Number of k-means clusters.
        cluster_sizes: Cells per cluster label.
        centers: Cluster centres (cluster x layer), in feature space.
        profiles: Mean seasonal profile per cluster (layer x cluster),
            in the units of the source raster.
        inertia: Within-cluster sum of squares of the fit.
        silhouette: Mean silhouette coefficient (NaN if undefined).
        colormap: Matplotlib colormap used for cluster colours.
        basemap_tiles: Tile set used by ``to_html_map()``.

    Example:
        >>> result = phenocluster.classify("lai.nc", n_clusters=3)
        >>> result.cluster_sizes
        {0: 812, 1: 760, 2: 708}
    """

    n_clusters: int = 0
    cluster_sizes: dict[int, int] = field(default_factory=dict)
    centers: pd.DataFrame | None = None
    profiles: pd.DataFrame | None = None
    inertia: float = float("nan")
    silhouette: float = float("nan")
    colormap: str = "tab10"
    basemap_tiles: str = "OpenStreetMap"

    def __repr__(self) -> str:
        """Return narrative summary for interactive display.

        Shows grid, layers, coverage, cluster sizes, fit quality and
        warnings. Does NOT show raw arrays.
        """
        meta = self.metadata
        lines: list[str] = [f"{type(self).__name__}("]

        if self.data.ndim == 2:
            height, width = self.data.shape
            lines.append(f"  grid: {height} x {width} cells, {meta.crs or 'no CRS'}")

        if meta.layers:
            lines.append(
                f"  layers: {len(meta.layers)} of {meta.variable} "
                f"({meta.layers[0]} → {meta.layers[-1]})"
            )

        if meta.total_cells:
            share = meta.valid_cells / meta.total_cells
            lines.append(
                f"  valid cells: {meta.valid_cells} of {meta.total_cells} ({share:.0%})"
            )

        if self.cluster_sizes:
            sizes = ", ".join(f"{k}={v}" for k, v in sorted(self.cluster_sizes.items()))
            lines.append(f"  clusters: {self.n_clusters} ({sizes})")
        else:
            lines.append("  clusters: none")

        if not math.isnan(self.silhouette):
            lines.append(f"  silhouette: {self.silhouette:.2f}")

        lines.append(f"  confidence: {self.confidence:.2f}")

        for w in self.warnings:
            lines.append(f"  ⚠ {w}")

        lines.append(")")
        return "\n".join(lines)

    def colors(self) -> list[str]:
        """One hex colour per cluster label."""
        from phenocluster.maps import label_colors

        return label_colors(self.n_clusters, self.colormap)

    def to_dataframe(self) -> pd.DataFrame:
        """Export one row per cluster.

        Columns: ``cluster``, ``cells``, ``share`` (of valid cells),
        ``mean_value``, ``amplitude``, ``peak_layer`` and
        ``interpretation`` of the cluster's mean seasonal profile.

        Returns:
            pandas DataFrame with the per-cluster summary.
        """
        import pandas as pd

        columns = [
            "cluster",
            "cells",
            "share",
            "mean_value",
            "amplitude",
            "peak_layer",
            "interpretation",
        ]
        valid = self.metadata.valid_cells
        rows: list[dict[str, Any]] = []

        for label, cells in sorted(self.cluster_sizes.items()):
            profile = None
            if self.profiles is not None and label in self.profiles.columns:
                profile = self.profiles[label]

            if profile is not None and profile.notna().any():
                mean_value = float(profile.mean())
                peak = float(profile.max())
                amplitude = peak - float(profile.min())
                peak_layer: str | None = str(profile.idxmax())
            else:
                mean_value = peak = amplitude = float("nan")
                peak_layer = None

            rows.append(
                {
                    "cluster": label,
                    "cells": cells,
                    "share": cells / valid if valid else float("nan"),
                    "mean_value": mean_value,
                    "amplitude": amplitude,
                    "peak_layer": peak_layer,
                    "interpretation": _interpret_seasonality(
                        amplitude, peak, self.metadata.variable
                    ),
                }
            )

        return pd.DataFrame(rows, columns=columns)

    def _raster_for_export(self) -> tuple[npt.NDArray[Any], float | int | None]:
        labels = np.where(np.isfinite(self.data), self.data, _GEOTIFF_LABEL_NODATA)
        return labels.astype(np.int16), _GEOTIFF_LABEL_NODATA

    _figsize = (14, 6)

    def _draw(self, fig: Figure) -> bool:
        """Cluster map on the left, one profile line per cluster on the right."""
        from matplotlib.colors import ListedColormap
        from matplotlib.patches import Patch

        if self.data.size == 0 or not self.cluster_sizes:
            return False

        ax_map, ax_prof = fig.subplots(1, 2, gridspec_kw={"width_ratios": [1.2, 1]})
        fig.suptitle(
            f"Land cover clusters ({self.n_clusters})\n"
            f"Confidence: {self.confidence:.2f}"
        )

        colors = self.colors()
        extent = None
        bounds = self.metadata.bounds
        if _has_bounds(bounds):
            extent = (bounds["minx"], bounds["maxx"], bounds["miny"], bounds["maxy"])

        ax_map.imshow(
            np.ma.masked_invalid(self.data),
            cmap=ListedColormap(colors),
            vmin=-0.5,
            vmax=self.n_clusters - 0.5,
            interpolation="nearest",
            extent=extent,
        )
        ax_map.set_title("Cluster map")
        ax_map.legend(
            handles=[
                Patch(color=colors[label], label=f"Cluster {label}")
                for label in sorted(self.cluster_sizes)
            ],
            loc="upper right",
            fontsize=8,
        )

        if self.profiles is not None and not self.profiles.empty:
            x = np.arange(len(self.profiles.index))
            for label in self.profiles.columns:
                ax_prof.plot(
                    x,
                    self.profiles[label].to_numpy(),
                    marker="o",
                    color=colors[int(label) % len(colors)],
                    label=f"Cluster {label}",
                )
            ax_prof.set_xticks(x)
            ax_prof.set_xticklabels(
                [str(v) for v in self.profiles.index], rotation=45, ha="right"
            )
            ax_prof.legend(fontsize=8)
        ax_prof.set_title("Mean seasonal profile")
        ax_prof.set_ylabel(self.metadata.variable)
        ax_prof.grid(True, alpha=0.3)
        return True

    def to_html_map(
        self,
        path: str | Path,
        names: dict[int, str] | None = None,
        opacity: float = 0.7,
    ) -> Path:
        """Export an interactive Leaflet map of the clusters.

        Args:
            path: Output HTML file path.
            names: Legend text per cluster label.
            opacity: Overlay opacity.

        Returns:
            Path object pointing to the written file.

        Raises:
            ClusteringError: If the result holds no classified cells.
        """
        from phenocluster.maps import cluster_map

        path = Path(path)
        fmap = cluster_map(
            self.data,
            self.metadata.bounds,
            crs=self.metadata.crs or "EPSG:4326",
            palette=self.colors(),
            tiles=self.basemap_tiles,
            opacity=opacity,
            names=names,
        )
        fmap.save(str(path))
        return path


@dataclass
class SeasonalityResult(BaseResult):
    """Mean seasonal profiles of one or more land-cover classes.

    ``data`` holds the profile values as a ``(layers, classes)`` array.

    Attributes:
        profiles: Profile table (layer x class).
        amplitude: Peak minus trough per class.
        peak_layer: Layer label of each class's maximum.

    Example:
        >>> result = phenocluster.seasonality(cube, labels, names={0: "forest"})
        >>> result.peak_layer["forest"]
        '2020-07-15'
    """

    profiles: pd.DataFrame | None = None
    amplitude: dict[Any, float] = field(default_factory=dict)
    peak_layer: dict[Any, str] = field(default_factory=dict)

    def __repr__(self) -> str:
        lines: list[str] = [f"{type(self).__name__}("]
        meta = self.metadata
        if meta.layers:
            lines.append(
                f"  layers: {len(meta.layers)} of {meta.variable} "
                f"({meta.layers[0]} → {meta.layers[-1]})"
            )
        if self.profiles is not None:
            for name in self.profiles.columns:
                amp = self.amplitude.get(name, float("nan"))
                peak = float(self.profiles[name].max())
                interp = _interpret_seasonality(amp, peak, meta.variable)
                peak_at = self.peak_layer.get(name, "N/A")
                lines.append(
                    f"  {name}: amplitude {amp:.2f}, peak {peak_at}: {interp}"
                )
        lines.append(f"  confidence: {self.confidence:.2f}")
        for w in self.warnings:
            lines.append(f"  ⚠ {w}")
        lines.append(")")
        return "\n".join(lines)

    def to_dataframe(self) -> pd.DataFrame:
        """Export profiles in long form: ``layer``, ``class``, ``value``."""
        import pandas as pd

        if self.profiles is None or self.profiles.empty:
            return pd.DataFrame(columns=["layer", "class", "value"])
        long = self.profiles.reset_index().melt(
            id_vars="layer", var_name="class", value_name="value"
        )
        return long[["layer", "class", "value"]]

    def to_geotiff(self, path: str | Path) -> Path:
        """Not supported: profiles are a table, not a raster.

        Raises:
            ValueError: Always. Use ``to_dataframe()`` or ``to_png()``.
        """
        msg = "Seasonality results hold profiles, not a raster"
        raise ValueError(msg)

    def _draw(self, fig: Figure) -> bool:
        """One seasonal curve per class."""
        if self.profiles is None or self.profiles.empty:
            return False

        ax = fig.add_subplot()
        x = np.arange(len(self.profiles.index))
        for name in self.profiles.columns:
            ax.plot(x, self.profiles[name].to_numpy(), marker="o", label=str(name))
        ax.set_xticks(x)
        ax.set_xticklabels([str(v) for v in self.profiles.index], rotation=45, ha="right")
        ax.set_ylabel(self.metadata.variable)
        ax.set_title(f"Seasonal profiles of {self.metadata.variable}")
        ax.legend()
        ax.grid(True, alpha=0.3)
        return True
