"""Internal shared types for cross-boundary data contracts.

These types define the data shapes passed between the raster, analysis,
and result components. They are internal (prefixed ``_``) and NOT
re-exported from ``phenocluster.__init__``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

LayerList = list[str]
"""Ordered layer labels of a raster cube (e.g., ``['2020-01-15', ...]``)."""

Bounds = dict[str, float]
"""Spatial bounding box ``{"minx", "miny", "maxx", "maxy"}``."""


@dataclass
class QualityAssessment:
    """Quality assessment produced by the pipeline for every result.

    Args:
        confidence: Overall confidence score (0.0–1.0).
        valid_cells: Cells with a finite value in every layer.
        total_cells: Cells in the raster grid.
        small_clusters: Labels of clusters below the size threshold.
        warnings: Human-readable quality warnings.

    Example:
        >>> qa = QualityAssessment(confidence=0.9, valid_cells=950, total_cells=1000)
        >>> qa.warnings
        []
    """

    confidence: float = 0.0
    valid_cells: int = 0
    total_cells: int = 0
    small_clusters: list[int] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid_fraction(self) -> float:
        """Share of grid cells that entered the feature table."""
        if self.total_cells == 0:
            return 0.0
        return self.valid_cells / self.total_cells
