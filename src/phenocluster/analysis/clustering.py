"""Unsupervised k-means clustering of per-cell seasonal profiles.

Each row of a ``FeatureTable`` is one cell's time series; k-means groups
cells with similar seasonality, and the labels are written back onto the
raster grid for mapping.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import numpy as np
import numpy.typing as npt
import pandas as pd
from sklearn.cluster import KMeans
from sklearn.metrics import silhouette_score

from phenocluster.analysis.features import FeatureTable
from phenocluster.exceptions import ClusteringError

logger = logging.getLogger(__name__)


@dataclass
class ClusterModel:
    """Fitted k-means partition of a feature table.

    Labels are renumbered so cluster ``0`` has the lowest mean centre
    value and labels increase with it. The same data and seed therefore
    always yield the same numbering.

    Attributes:
        labels: One integer label per table row.
        centers: Cluster centres, one row per label, columns = layers.
        inertia: Within-cluster sum of squared distances.
        n_clusters: Number of clusters requested.
        random_state: Seed used for centroid initialisation.
    """

    labels: npt.NDArray[np.intp]
    centers: pd.DataFrame
    inertia: float
    n_clusters: int
    random_state: int | None = None

    def cluster_sizes(self) -> dict[int, int]:
        """Cells per label, including empty clusters as 0."""
        counts = np.bincount(self.labels, minlength=self.n_clusters)
        return {label: int(count) for label, count in enumerate(counts)}


def kmeans_cluster(
    table: FeatureTable,
    n_clusters: int,
    random_state: int | None = None,
    n_init: int = 10,
    max_iter: int = 300,
) -> ClusterModel:
    """Partition the table rows into *n_clusters* with k-means.

    Args:
        table: Feature table from ``raster_to_table()``.
        n_clusters: Number of clusters (k).
        random_state: Seed for reproducible centroids.
        n_init: Number of restarts; the best inertia wins.
        max_iter: Iteration cap per restart.

    Returns:
        ``ClusterModel`` with ordered labels and centres.

    Raises:
        ClusteringError: If ``n_clusters < 1`` or the table has fewer
            rows than clusters.

    Example:
        >>> model = kmeans_cluster(table, n_clusters=3, random_state=0)
        >>> sorted(set(model.labels.tolist()))
        [0, 1, 2]
    """
    if n_clusters < 1:
        raise ClusteringError(
            what="Cannot run k-means",
            cause=f"n_clusters must be at least 1, got {n_clusters}",
            fix="Pass a positive number of clusters",
        )
    if len(table) < n_clusters:
        raise ClusteringError(
            what="Cannot run k-means",
            cause=f"{len(table)} valid cells for {n_clusters} clusters",
            fix="Reduce n_clusters or supply a raster with more complete cells",
        )

    model = KMeans(
        n_clusters=n_clusters,
        random_state=random_state,
        n_init=n_init,
        max_iter=max_iter,
    )
    raw_labels = model.fit_predict(table.values)

    # Rank clusters by mean centre value so numbering is deterministic.
    order = np.argsort(model.cluster_centers_.mean(axis=1), kind="stable")
    remap = np.empty_like(order)
    remap[order] = np.arange(n_clusters)
    labels = remap[raw_labels].astype(np.intp)

    centers = pd.DataFrame(
        model.cluster_centers_[order],
        index=pd.Index(range(n_clusters), name="cluster"),
        columns=table.frame.columns,
    )

    logger.info(
        "Fitted k-means with k=%d on %d cells (inertia=%.3f)",
        n_clusters,
        len(table),
        model.inertia_,
    )
    return ClusterModel(
        labels=labels,
        centers=centers,
        inertia=float(model.inertia_),
        n_clusters=n_clusters,
        random_state=random_state,
    )


def labels_to_raster(
    labels: npt.NDArray[Any],
    table: FeatureTable,
) -> npt.NDArray[np.float64]:
    """Place one label per table row back onto the raster grid.

    Args:
        labels: Labels aligned with the table rows.
        table: The table the labels were computed from.

    Returns:
        ``(rows, cols)`` float array holding labels, NaN for cells that
        were not in the table.

    Raises:
        ClusteringError: If the label count differs from the table rows.
    """
    labels = np.asarray(labels)
    if labels.shape != (len(table),):
        raise ClusteringError(
            what="Cannot map labels onto the raster",
            cause=f"{labels.size} labels for {len(table)} table rows",
            fix="Use the labels produced from this feature table",
        )

    raster = np.full((table.height, table.width), np.nan, dtype=np.float64)
    raster[table.rows, table.cols] = labels
    return raster


def silhouette(
    table: FeatureTable,
    labels: npt.NDArray[Any],
    sample_size: int | None = None,
    random_state: int | None = None,
) -> float:
    """Mean silhouette coefficient, or NaN when it is undefined.

    Tables larger than *sample_size* are scored on a seeded random
    sample. The score needs between 2 and ``n_samples - 1`` distinct
    labels among the scored rows.
    """
    values = table.values
    labels = np.asarray(labels)
    if sample_size is not None and sample_size < len(table):
        rng = np.random.default_rng(random_state)
        rows = rng.choice(len(table), size=sample_size, replace=False)
        values, labels = values[rows], labels[rows]

    n_labels = np.unique(labels).size
    if n_labels < 2 or n_labels >= len(labels):
        return float("nan")
    return float(silhouette_score(values, labels))


def evaluate_k(
    table: FeatureTable,
    k_values: Iterable[int],
    random_state: int | None = None,
    n_init: int = 10,
    sample_size: int | None = None,
) -> pd.DataFrame:
    """Fit k-means for several k and report inertia and silhouette.

    Use the inertia column for an elbow plot or pick the k with the
    highest silhouette. Values of k below 1 or above the row count are
    skipped.

    Returns:
        DataFrame with columns ``k``, ``inertia``, ``silhouette``.
    """
    records: list[dict[str, Any]] = []
    for k in k_values:
        k = int(k)
        if k < 1 or k > len(table):
            logger.warning("Skipping k=%d for a table of %d cells", k, len(table))
            continue
        model = kmeans_cluster(table, k, random_state=random_state, n_init=n_init)
        records.append(
            {
                "k": k,
                "inertia": model.inertia,
                "silhouette": silhouette(
                    table, model.labels, sample_size=sample_size, random_state=random_state
                ),
            }
        )
    return pd.DataFrame(records, columns=["k", "inertia", "silhouette"])
