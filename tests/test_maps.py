"""Tests for Leaflet cluster maps."""

from __future__ import annotations

from pathlib import Path

import folium
import numpy as np
import pytest

from phenocluster.exceptions import ClusteringError, ConfigurationError
from phenocluster.maps import _wgs84_bounds, cluster_map, label_colors, labels_to_rgba

BOUNDS = {"minx": 10.0, "miny": 50.0, "maxx": 10.3, "maxy": 50.2}


@pytest.mark.unit
class TestLabelColors:
    """Verify colour sampling from matplotlib colormaps."""

    def test_qualitative_colormap(self) -> None:
        assert label_colors(3) == ["#1f77b4", "#ff7f0e", "#2ca02c"]

    def test_qualitative_colormap_wraps(self) -> None:
        colors = label_colors(12, "tab10")
        assert colors[10] == colors[0]

    def test_continuous_colormap_spans_range(self) -> None:
        colors = label_colors(2, "viridis")
        assert colors == ["#440154", "#fde725"]

    def test_zero_colors(self) -> None:
        assert label_colors(0) == []

    def test_unknown_colormap(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown colormap 'rainbowz'"):
            label_colors(3, "rainbowz")


@pytest.mark.unit
class TestLabelsToRgba:
    """Verify label rasters render to RGBA images."""

    def test_colours_and_transparency(self) -> None:
        labels = np.array([[0.0, 1.0], [np.nan, 0.0]])
        rgba = labels_to_rgba(labels, ["#ff0000", "#0000ff"], opacity=1.0)

        assert rgba.shape == (2, 2, 4)
        assert rgba.dtype == np.uint8
        assert rgba[0, 0].tolist() == [255, 0, 0, 255]
        assert rgba[0, 1].tolist() == [0, 0, 255, 255]
        assert rgba[1, 0].tolist() == [0, 0, 0, 0]

    def test_opacity(self) -> None:
        rgba = labels_to_rgba(np.zeros((1, 1)), ["#00ff00"], opacity=0.5)
        assert rgba[0, 0, 3] == 128

    def test_no_colors(self) -> None:
        with pytest.raises(ValueError, match="at least one colour"):
            labels_to_rgba(np.zeros((1, 1)), [])


@pytest.mark.unit
class TestWgs84Bounds:
    """Verify bounds conversion to degrees."""

    def test_geographic_bounds_unchanged(self) -> None:
        assert _wgs84_bounds(BOUNDS, "EPSG:4326") == (10.0, 50.0, 10.3, 50.2)

    def test_projected_bounds_converted(self) -> None:
        utm = {"minx": 500000.0, "miny": 5540000.0, "maxx": 510000.0, "maxy": 5550000.0}
        west, south, east, north = _wgs84_bounds(utm, "EPSG:32632")
        assert 8.9 < west < east < 9.2
        assert 49.9 < south < north < 50.2


@pytest.mark.unit
class TestClusterMap:
    """Verify the folium map structure."""

    def test_map_contains_overlay_and_legend(self, tmp_path: Path) -> None:
        labels = np.array([[0.0, 1.0, 2.0], [np.nan, 1.0, 2.0]])
        fmap = cluster_map(labels, BOUNDS, names={0: "bare", 1: "crop & grass"})

        assert isinstance(fmap, folium.Map)
        overlays = [
            child
            for child in fmap._children.values()
            if isinstance(child, folium.raster_layers.ImageOverlay)
        ]
        assert len(overlays) == 1

        path = tmp_path / "map.html"
        fmap.save(str(path))
        page = path.read_text(encoding="utf-8")
        assert "Land cover clusters" in page
        assert "crop &amp; grass" in page
        assert "Cluster 2" in page
        assert "Clusters" in page

    def test_all_nan_labels_rejected(self) -> None:
        with pytest.raises(ClusteringError, match="no classified cells"):
            cluster_map(np.full((2, 2), np.nan), BOUNDS)

    def test_palette_used_for_legend(self, tmp_path: Path) -> None:
        labels = np.array([[0.0, 1.0]])
        fmap = cluster_map(labels, BOUNDS, palette=["#123456", "#abcdef"])
        path = tmp_path / "map.html"
        fmap.save(str(path))
        page = path.read_text(encoding="utf-8")
        assert "background: #123456" in page
        assert "background: #abcdef" in page

    def test_defaults_follow_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        import phenocluster.config as _cfg

        monkeypatch.setattr(
            _cfg,
            "_default_config",
            _cfg.Config(basemap_tiles="CartoDB positron", colormap="viridis"),
        )
        fmap = cluster_map(np.array([[0.0, 1.0]]), BOUNDS)
        path = tmp_path / "map.html"
        fmap.save(str(path))
        page = path.read_text(encoding="utf-8")
        assert "cartocdn" in page
        assert "background: #440154" in page
        assert "background: #fde725" in page
