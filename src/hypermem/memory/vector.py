"""
Vector Memory: stored embeddings inside the Poincaré ball.

Rows are kept in insertion order so that ranking ties resolve to the
earliest memory. Every row satisfies ||v_i|| < 1; out-of-ball input is
rescaled toward the origin before it is stored.
"""

import numpy as np
from typing import List

from hypermem.geometry.poincare import DEFAULT_MAX_NORM, clamp_to_ball
from hypermem.geometry.similarity import distance_to_many


class VectorMemory:
    """
    Growing (N, d) matrix of Poincaré-ball embeddings keyed by memory id.

    Attributes:
        d (int): Dimensionality of each vector
        max_norm (float): Norm that out-of-ball vectors are rescaled to
    """

    def __init__(self, d: int, max_norm: float = DEFAULT_MAX_NORM):
        """
        Initialize an empty vector memory.

        Args:
            d: Dimensionality of each vector
            max_norm: Target norm for rescaled vectors
        """
        self.d = d
        self.max_norm = max_norm
        self.vectors = np.empty((0, d))
        self.ids: List[str] = []
        self._known = set()

    def add(self, memory_id: str, embedding: np.ndarray) -> np.ndarray:
        """
        Append one embedding.

        Args:
            memory_id: Owning memory id
            embedding: Shape (d,) - vector to store

        Returns:
            np.ndarray: The stored (ball-clamped) vector
        """
        assert embedding.shape == (self.d,), f"Expected shape ({self.d},), got {embedding.shape}"
        if memory_id in self._known:
            raise KeyError(f"Vector for {memory_id!r} already stored")
        stored = clamp_to_ball(embedding, self.max_norm)
        self._known.add(memory_id)
        self.ids.append(memory_id)
        self.vectors = np.vstack([self.vectors, stored.reshape(1, -1)])
        return stored

    def distances(self, query: np.ndarray) -> np.ndarray:
        """
        Hyperbolic distance from ``query`` to every stored row.

        Returns:
            np.ndarray: Shape (N,) in insertion order
        """
        return distance_to_many(clamp_to_ball(query, self.max_norm), self.vectors)

    def get_vectors(self) -> np.ndarray:
        """
        Get current vector state.

        Returns:
            np.ndarray: Shape (N, d) copy of the stored vectors
        """
        return self.vectors.copy()

    def __len__(self):
        return len(self.ids)

    def __repr__(self):
        return f"VectorMemory(N={len(self.ids)}, d={self.d})"
