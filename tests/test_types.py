"""Tests for the phenocluster internal types."""

from __future__ import annotations

import pytest

from phenocluster._types import Bounds, LayerList, QualityAssessment


@pytest.mark.unit
class TestTypeAliases:
    """Verify type aliases resolve correctly."""

    def test_layer_list_is_list_of_str(self) -> None:
        layers: LayerList = ["2020-01-15", "2020-02-15"]
        assert all(isinstance(label, str) for label in layers)

    def test_bounds_is_dict(self) -> None:
        bounds: Bounds = {"minx": 0.0, "miny": 0.0, "maxx": 1.0, "maxy": 1.0}
        assert set(bounds) == {"minx", "miny", "maxx", "maxy"}


@pytest.mark.unit
class TestQualityAssessment:
    """Verify QualityAssessment defaults and derived values."""

    def test_defaults(self) -> None:
        qa = QualityAssessment()
        assert qa.confidence == 0.0
        assert qa.small_clusters == []
        assert qa.warnings == []

    def test_mutable_defaults_not_shared(self) -> None:
        first = QualityAssessment()
        second = QualityAssessment()
        first.warnings.append("x")
        assert second.warnings == []

    def test_valid_fraction(self) -> None:
        qa = QualityAssessment(valid_cells=75, total_cells=100)
        assert qa.valid_fraction == pytest.approx(0.75)

    def test_valid_fraction_of_empty_grid(self) -> None:
        assert QualityAssessment().valid_fraction == 0.0
