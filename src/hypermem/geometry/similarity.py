"""
Batch hyperbolic distance and relevance scoring.

Vectorized counterparts of :func:`hypermem.geometry.poincare.distance` used by
retrieval and related-concept search:

    score(q, v) = 1 / (1 + d(q, v))
"""

import numpy as np

from hypermem.errors import GeometryDomainError


def distance_to_many(query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    """
    Compute Poincaré distances from one point to every row of a matrix.

    Args:
        query: Shape (d,) - query point inside the ball
        vectors: Shape (N, d) - stored points inside the ball

    Returns:
        np.ndarray: Shape (N,) - distances

    Raises:
        GeometryDomainError: If any point lies outside the open unit ball
    """
    query = np.asarray(query, dtype=np.float64)
    vectors = np.asarray(vectors, dtype=np.float64)
    if len(vectors) == 0:
        return np.empty(0)

    query_sq = np.dot(query, query)
    vector_sq = np.sum(vectors * vectors, axis=1)
    denominators = (1.0 - query_sq) * (1.0 - vector_sq)
    if np.any(denominators <= 0):
        raise GeometryDomainError("Distance requested for points outside the Poincaré ball")

    diff_sq = np.sum((vectors - query) ** 2, axis=1)
    arguments = 1.0 + 2.0 * diff_sq / denominators
    return np.arccosh(np.maximum(arguments, 1.0))


def relevance_scores(query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    """
    Convert distances into relevance scores in (0, 1].

    Args:
        query: Shape (d,) - query point
        vectors: Shape (N, d) - stored points

    Returns:
        np.ndarray: Shape (N,) - 1 / (1 + distance)
    """
    return 1.0 / (1.0 + distance_to_many(query, vectors))

