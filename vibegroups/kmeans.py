"""
K-Means clustering for feature vectors.

Plain Lloyd iterations with uniform-random centroid seeding in the unit
hypercube (features all live in [0, 1]). The random source is injectable so
tests can pin a seed; production runs are unseeded.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np
from sklearn.metrics import silhouette_score

from .errors import InsufficientDataError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 100


@dataclass(frozen=True)
class KMeansResult:
    assignments: np.ndarray  # (N,) int cluster ids in [0, k)
    centroids: np.ndarray  # (k, D)
    iterations: int
    converged: bool

    @property
    def k(self) -> int:
        return int(self.centroids.shape[0])


def _as_matrix(data) -> np.ndarray:
    try:
        X = np.asarray(data, dtype=float)
    except ValueError as e:
        raise ValueError("feature vectors must all have the same dimensionality") from e
    if X.ndim != 2 or X.shape[0] == 0 or X.shape[1] == 0:
        raise ValueError(f"expected a non-empty (N, D) matrix, got shape {X.shape}")
    return X


def assign(X: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """
    Index of the nearest centroid for every row of X.

    Distances are Euclidean; ties go to the lowest centroid index.
    """
    distances = np.linalg.norm(X[:, None, :] - centroids[None, :, :], axis=2)
    # argmin returns the first minimum, which gives the lowest-index tie break
    return np.argmin(distances, axis=1)


def update_centroids(X: np.ndarray, assignments: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Mean of each cluster's members; empty clusters keep their position."""
    updated = centroids.copy()
    for idx in range(centroids.shape[0]):
        members = X[assignments == idx]
        if len(members):
            updated[idx] = members.mean(axis=0)
    return updated


def kmeans(
    data,
    k: int,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    rng: Optional[np.random.Generator] = None,
) -> KMeansResult:
    """
    Cluster N vectors of dimension D into k groups.

    Args:
        data: (N, D) array-like of feature vectors
        k: Number of clusters, 2 <= k <= N
        max_iterations: Iteration cap
        rng: Random generator for centroid seeding (fresh unseeded one if None)

    Raises:
        ValueError: if k < 2 or the data is empty or ragged
        InsufficientDataError: if there are fewer vectors than clusters
    """
    if k < 2:
        raise ValueError(f"k must be at least 2, got {k}")
    X = _as_matrix(data)
    n, dims = X.shape
    if n < k:
        raise InsufficientDataError(required=k, available=n)
    if max_iterations < 1:
        raise ValueError("max_iterations must be at least 1")

    rng = rng if rng is not None else np.random.default_rng()
    centroids = rng.uniform(0.0, 1.0, size=(k, dims))

    # -1 so the first assignment always counts as a change
    assignments = np.full(n, -1, dtype=int)
    converged = False
    iterations = 0

    for iterations in range(1, max_iterations + 1):
        new_assignments = assign(X, centroids)
        if np.array_equal(new_assignments, assignments):
            converged = True
            break
        changed = int(np.count_nonzero(new_assignments != assignments))
        assignments = new_assignments
        centroids = update_centroids(X, assignments, centroids)
        logger.debug(f"k-means iteration {iterations}: {changed} reassigned")

    if not converged:
        logger.debug(f"k-means stopped at the iteration cap ({max_iterations}) without converging")

    return KMeansResult(
        assignments=assignments,
        centroids=centroids,
        iterations=iterations,
        converged=converged,
    )


def choose_cluster_count(labels: Iterable[str], min_clusters: int = 2, max_clusters: int = 6) -> int:
    """
    Number of distinct labels backed by at least two tracks, clamped to
    [min_clusters, max_clusters].
    """
    if min_clusters < 2 or max_clusters < min_clusters:
        raise ValueError(f"invalid cluster range [{min_clusters}, {max_clusters}]")
    counts = Counter(labels)
    diversity = sum(1 for count in counts.values() if count >= 2)
    return max(min_clusters, min(diversity, max_clusters))


def silhouette(data, assignments: Sequence[int]) -> Optional[float]:
    """Silhouette score of a partition, or None when it is undefined."""
    X = _as_matrix(data)
    labels = np.asarray(assignments)
    distinct = len(np.unique(labels))
    if distinct < 2 or distinct >= X.shape[0]:
        return None
    return float(silhouette_score(X, labels))
