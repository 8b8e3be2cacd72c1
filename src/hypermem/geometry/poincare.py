"""
Poincaré ball primitives.

Points are numpy vectors with Euclidean norm strictly below 1. Distance is
the curvature -1 Poincaré metric:

    d(u, v) = acosh(1 + 2‖u − v‖² / ((1 − ‖u‖²)(1 − ‖v‖²)))

Möbius addition and the exponential/logarithmic maps are only needed by
the iterative Fréchet mean; the default consolidation centroid is the
coordinate-wise arithmetic mean.
"""

import numpy as np
from typing import Sequence

from hypermem.errors import GeometryDomainError

EPS = 1e-10
DEFAULT_MAX_NORM = 0.9


def as_vector(v) -> np.ndarray:
    """Convert a sequence to a 1-D float64 array."""
    arr = np.asarray(v, dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError(f"Expected a 1-D vector, got shape {arr.shape}")
    return arr


def is_in_ball(v) -> bool:
    """True if ``v`` lies strictly inside the unit ball."""
    return bool(np.linalg.norm(as_vector(v)) < 1.0)


def clamp_to_ball(v, max_norm: float = DEFAULT_MAX_NORM) -> np.ndarray:
    """
    Project a vector into the Poincaré ball.

    Vectors with ‖v‖ ≥ 1 are rescaled uniformly to ‖v‖ = max_norm. Vectors
    already inside the ball are returned unchanged (as a copy).

    Args:
        v: Shape (d,) - input vector
        max_norm: Target norm for out-of-ball vectors, in (0, 1)

    Returns:
        np.ndarray: Shape (d,) vector with norm < 1
    """
    arr = as_vector(v).copy()
    norm = np.linalg.norm(arr)
    if norm >= 1.0:
        arr = arr * (max_norm / norm)
    return arr


def distance(u, v) -> float:
    """
    Hyperbolic distance between two points of the Poincaré ball.

    Symmetric, zero for identical points and non-negative.

    Args:
        u: Shape (d,) - first point
        v: Shape (d,) - second point

    Returns:
        float: Poincaré distance

    Raises:
        GeometryDomainError: If either point lies on or outside the unit sphere,
            which makes the denominator non-positive
        ValueError: If dimensions differ
    """
    u = as_vector(u)
    v = as_vector(v)
    if u.shape != v.shape:
        raise ValueError(f"Dimension mismatch: {u.shape} vs {v.shape}")

    denominator = (1.0 - np.dot(u, u)) * (1.0 - np.dot(v, v))
    if denominator <= 0:
        raise GeometryDomainError(
            f"Points outside the Poincaré ball (norms {np.linalg.norm(u):.6f}, "
            f"{np.linalg.norm(v):.6f})"
        )

    diff = u - v
    argument = 1.0 + 2.0 * np.dot(diff, diff) / denominator
    # Rounding can push the argument a hair below 1 for identical points.
    return float(np.arccosh(max(argument, 1.0)))


def mobius_add(u, v) -> np.ndarray:
    """
    Möbius addition u ⊕ v.

    (1 + 2⟨u,v⟩ + ‖v‖²) u + (1 − ‖u‖²) v
    ------------------------------------
        1 + 2⟨u,v⟩ + ‖u‖²‖v‖²
    """
    u = as_vector(u)
    v = as_vector(v)
    uv = np.dot(u, v)
    uu = np.dot(u, u)
    vv = np.dot(v, v)
    numerator = (1.0 + 2.0 * uv + vv) * u + (1.0 - uu) * v
    denominator = 1.0 + 2.0 * uv + uu * vv
    return numerator / max(denominator, EPS)


def conformal_factor(p) -> float:
    """λ_p = 2 / (1 − ‖p‖²)."""
    p = as_vector(p)
    return 2.0 / (1.0 - np.dot(p, p))


def _artanh(x: float) -> float:
    return float(np.arctanh(min(x, 1.0 - EPS)))


def exp_map(p, v) -> np.ndarray:
    """
    Exponential map at ``p``: tangent vector ``v`` → point on the ball.

    exp_p(v) = p ⊕ tanh(λ_p ‖v‖ / 2) · v / ‖v‖
    """
    p = as_vector(p)
    v = as_vector(v)
    v_norm = np.linalg.norm(v)
    if v_norm < EPS:
        return p.copy()
    step = np.tanh(conformal_factor(p) * v_norm / 2.0) * v / v_norm
    return mobius_add(p, step)


def log_map(p, q) -> np.ndarray:
    """
    Logarithmic map at ``p``: point ``q`` → tangent vector at ``p``.

    log_p(q) = (2 / λ_p) · artanh(‖−p ⊕ q‖) · (−p ⊕ q) / ‖−p ⊕ q‖
    """
    p = as_vector(p)
    diff = mobius_add(-p, q)
    diff_norm = np.linalg.norm(diff)
    if diff_norm < EPS:
        return np.zeros_like(p)
    return (2.0 / conformal_factor(p)) * _artanh(diff_norm) * diff / diff_norm


def centroid(vectors: Sequence) -> np.ndarray:
    """
    Coordinate-wise arithmetic mean of ball points.

    This is a Euclidean average of Poincaré coordinates, not the hyperbolic
    Fréchet mean. The ball is convex, so the result always stays inside it.

    Args:
        vectors: Non-empty sequence of shape (d,) points

    Returns:
        np.ndarray: Shape (d,) mean point
    """
    matrix = np.asarray(vectors, dtype=np.float64)
    if matrix.ndim != 2 or len(matrix) == 0:
        raise ValueError("centroid requires a non-empty sequence of vectors")
    return matrix.mean(axis=0)


def frechet_mean(vectors: Sequence, max_iter: int = 10, tol: float = 1e-6) -> np.ndarray:
    """
    Iterative Fréchet (Karcher) mean in the Poincaré ball.

    Starts from the first point and repeatedly moves along the mean of the
    logarithmic maps until the tangent gradient norm drops below ``tol`` or
    ``max_iter`` iterations have run.

    Args:
        vectors: Non-empty sequence of shape (d,) points inside the ball
        max_iter: Iteration cap
        tol: Convergence tolerance on the gradient norm

    Returns:
        np.ndarray: Shape (d,) mean point
    """
    matrix = np.asarray(vectors, dtype=np.float64)
    if matrix.ndim != 2 or len(matrix) == 0:
        raise ValueError("frechet_mean requires a non-empty sequence of vectors")
    if len(matrix) == 1:
        return matrix[0].copy()

    mean = matrix[0].copy()
    for _ in range(max_iter):
        gradient = np.mean([log_map(mean, point) for point in matrix], axis=0)
        mean = exp_map(mean, gradient)
        if np.linalg.norm(gradient) < tol:
            break
    return clamp_to_ball(mean)
