"""
Tests for relevance-ranked retrieval.
"""

import numpy as np
import pytest

from hypermem.ingestion import FeatureEmbedder
from hypermem.ingestion.features import MS_PER_DAY
from hypermem.memory import MemoryStore, RetrievalRanker


def build(clock, strategy="relevant"):
    embedder = FeatureEmbedder(clock=clock, random_state=np.random.RandomState(0))
    store = MemoryStore(embedder, random_state=np.random.RandomState(1))
    return store, RetrievalRanker(store, embedder, strategy=strategy)


def learn(store, concept, payload=None):
    return store.insert(store.create_memory(concept, payload))


class TestRelevantStrategy:
    """Tests for 1 / (1 + distance) ranking."""

    def test_closest_first(self, clock):
        """Test that the memory nearest to the query embedding ranks first."""
        store, ranker = build(clock)
        far = learn(store, "Hyperbolic Embedding Distance 42", "A long description. With sentences.")
        near = learn(store, "neural_net")

        results = ranker.retrieve("neural_net", max_results=2)
        assert results == [near, far]

    def test_max_results(self, clock):
        """Test truncation and non-positive limits."""
        store, ranker = build(clock)
        for i in range(4):
            learn(store, f"concept_{i}")

        assert len(ranker.retrieve("concept", max_results=3)) == 3
        assert len(ranker.retrieve("concept", max_results=50)) == 4
        assert ranker.retrieve("concept", max_results=0) == []
        assert ranker.retrieve("concept", max_results=-1) == []

    def test_empty_store(self, clock):
        _, ranker = build(clock)
        assert ranker.retrieve("anything") == []

    def test_ties_keep_insertion_order(self, clock):
        """Test that equal scores resolve to the earliest memory."""
        store, ranker = build(clock)
        memories = [learn(store, name) for name in ("graph_a", "graph_b", "graph_c")]

        assert ranker.retrieve("graph_z", max_results=3) == memories

    def test_idempotent(self, clock):
        """Test that repeating a query with no mutation gives identical results."""
        embedder = FeatureEmbedder(dim=48, clock=clock, random_state=np.random.RandomState(0))
        store = MemoryStore(embedder, random_state=np.random.RandomState(1))
        ranker = RetrievalRanker(store, embedder)
        for concept in ("neural_net", "graph_walk", "semantic_tree", "cooking"):
            learn(store, concept, {"detail": concept})

        first = [m.id for m in ranker.retrieve("graph neural", 3)]
        second = [m.id for m in ranker.retrieve("graph neural", 3)]
        assert first == second


class TestOtherStrategies:
    """Tests for recency-based strategies."""

    def test_recent_newest_first(self, clock):
        """Test that the recent strategy orders by creation time."""
        store, ranker = build(clock, strategy="recent")
        old = learn(store, "neural_net")
        clock.advance(1000)
        new = learn(store, "cooking")

        assert ranker.retrieve("neural_net") == [new, old]

    def test_hybrid_prefers_fresh_memories(self, clock):
        """Test that among equally relevant memories the hybrid score favors recency."""
        store, ranker = build(clock, strategy="hybrid")
        old = learn(store, "graph_a")
        clock.advance(2 * MS_PER_DAY)
        new = learn(store, "graph_b")

        scores = ranker.scores("graph_a", [old, new])
        assert scores[1] > scores[0]
        assert np.all((scores > 0) & (scores <= 1.0))
        assert ranker.retrieve("graph_a")[0] is new

    def test_unknown_strategy(self, clock):
        embedder = FeatureEmbedder(clock=clock)
        with pytest.raises(ValueError):
            RetrievalRanker(MemoryStore(embedder), embedder, strategy="random")
