"""
Density-based clustering of joint configurations.

DBSCAN semantics: a point is a core point when at least ``min_cluster_size``
points (itself included) lie within ``tolerance``. Core points within
``tolerance`` of each other share a cluster; a non-core point within reach of a
core point joins that core point's cluster; everything else is noise (-1).
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components
from scipy.spatial import cKDTree

from motionlink.config import CLUSTER_MIN_SIZE, CLUSTER_TOLERANCE

NOISE = -1


def _as_points(points: ArrayLike | Sequence[ArrayLike]) -> NDArray[np.float64]:
    if isinstance(points, np.ndarray):
        arr = points.astype(np.float64, copy=False)
    elif len(points) == 0:  # type: ignore[arg-type]
        return np.zeros((0, 0))
    else:
        arr = np.vstack([np.asarray(p, dtype=np.float64) for p in points])  # type: ignore[union-attr]
    if arr.ndim != 2:
        raise ValueError(f"expected a 2-D array of configurations, got shape {arr.shape}")
    return arr


def cluster_configurations(
    points: ArrayLike | Sequence[ArrayLike],
    tolerance: float = CLUSTER_TOLERANCE,
    min_cluster_size: int = CLUSTER_MIN_SIZE,
) -> NDArray[np.int_]:
    """
    Label each configuration with its cluster id (0, 1, ...) or NOISE.

    Cluster ids are assigned in order of each cluster's lowest-index member.
    """
    arr = _as_points(points)
    n = arr.shape[0]
    if n == 0:
        return np.zeros(0, dtype=int)

    tree = cKDTree(arr)
    neighbourhoods = tree.query_ball_point(arr, r=tolerance)
    counts = np.fromiter((len(nb) for nb in neighbourhoods), dtype=int, count=n)
    core = counts >= min_cluster_size

    pairs = tree.query_pairs(r=tolerance, output_type="ndarray")
    if len(pairs):
        pairs = pairs[core[pairs[:, 0]] & core[pairs[:, 1]]]
    graph = coo_matrix(
        (np.ones(len(pairs), dtype=np.int8), (pairs[:, 0], pairs[:, 1])) if len(pairs) else ([], ([], [])),
        shape=(n, n),
    )
    _, components = connected_components(graph, directed=False)

    labels = np.full(n, NOISE, dtype=int)
    labels[core] = components[core]
    for i in np.flatnonzero(~core):
        core_neighbours = [j for j in sorted(neighbourhoods[i]) if core[j]]
        if core_neighbours:
            labels[i] = components[core_neighbours[0]]

    # Renumber by first appearance
    renumbered = np.full(n, NOISE, dtype=int)
    mapping: dict[int, int] = {}
    for i, label in enumerate(labels):
        if label == NOISE:
            continue
        if label not in mapping:
            mapping[label] = len(mapping)
        renumbered[i] = mapping[label]
    return renumbered


def cluster_representatives(
    points: ArrayLike | Sequence[ArrayLike],
    tolerance: float = CLUSTER_TOLERANCE,
    min_cluster_size: int = CLUSTER_MIN_SIZE,
) -> list[NDArray[np.float64]]:
    """One configuration per cluster (its lowest-index member); noise contributes nothing."""
    arr = _as_points(points)
    labels = cluster_configurations(arr, tolerance, min_cluster_size)
    if labels.size == 0:
        return []
    firsts = [int(np.flatnonzero(labels == c)[0]) for c in range(int(labels.max()) + 1)]
    return [arr[i].copy() for i in firsts]
