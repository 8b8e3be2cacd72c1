"""
Relevance-ranked retrieval over the memory store.

The query text is embedded with an empty payload and every stored memory
is scored against it:

- relevant: 1 / (1 + d(query, memory))
- recent:   creation time, newest first
- hybrid:   0.7 * relevant + 0.3 * exp(-age / 24h)

Query embeddings use zero padding instead of jitter so that repeated
queries at the same instant rank identically. Sorting is stable, so equal
scores keep insertion order.
"""

from typing import List

import numpy as np

from hypermem.geometry.similarity import relevance_scores
from hypermem.ingestion.features import MS_PER_DAY, FeatureEmbedder
from hypermem.memory.records import LearningMemory
from hypermem.memory.store import MemoryStore

RELEVANCE_WEIGHT = 0.7
RECENCY_WEIGHT = 0.3


class RetrievalRanker:
    """Ranks stored memories against a free-text query."""

    def __init__(self, store: MemoryStore, embedder: FeatureEmbedder, strategy: str = "relevant"):
        """
        Args:
            store: Memory store to search
            embedder: Embedder used for the query text
            strategy: "relevant", "recent" or "hybrid"
        """
        if strategy not in ("relevant", "recent", "hybrid"):
            raise ValueError(f"Unknown retrieval strategy: {strategy!r}")
        self.store = store
        self.embedder = embedder
        self.strategy = strategy

    def relevance(self, query: str, count: int) -> np.ndarray:
        """Relevance score of the first ``count`` stored memories, in insertion order."""
        query_embedding = self.embedder.embed(query, {}, jitter=False)
        return relevance_scores(query_embedding, self.store.vector_memory.vectors[:count])

    def recency(self, memories: List[LearningMemory]) -> np.ndarray:
        now = self.embedder.clock()
        ages = np.array([max(now - m.created_at, 0) for m in memories], dtype=np.float64)
        return np.exp(-ages / MS_PER_DAY)

    def scores(self, query: str, memories: List[LearningMemory]) -> np.ndarray:
        # The store is append-only, so the first len(memories) rows belong to them.
        if self.strategy == "relevant":
            return self.relevance(query, len(memories))
        if self.strategy == "recent":
            return np.array([float(m.created_at) for m in memories])
        return RELEVANCE_WEIGHT * self.relevance(query, len(memories)) + RECENCY_WEIGHT * self.recency(memories)

    def retrieve(self, query: str, max_results: int = 10) -> List[LearningMemory]:
        """
        Top ``max_results`` memories for ``query``, best first.

        Args:
            query: Free-text query
            max_results: Result cap; values <= 0 return an empty list

        Returns:
            List of LearningMemory
        """
        if max_results <= 0 or len(self.store) == 0:
            return []
        memories = self.store.all()
        scores = self.scores(query, memories)
        # Stable descending sort: negate instead of reversing.
        order = np.argsort(-scores, kind="stable")
        return [memories[i] for i in order[:max_results]]
