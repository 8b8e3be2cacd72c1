"""Poincaré ball geometry for the learning-memory engine."""

from hypermem.geometry.poincare import (
    as_vector,
    centroid,
    clamp_to_ball,
    distance,
    exp_map,
    frechet_mean,
    is_in_ball,
    log_map,
    mobius_add,
)
from hypermem.geometry.similarity import distance_to_many, relevance_scores

__all__ = [
    "as_vector",
    "centroid",
    "clamp_to_ball",
    "distance",
    "exp_map",
    "frechet_mean",
    "is_in_ball",
    "log_map",
    "mobius_add",
    "distance_to_many",
    "relevance_scores",
]
