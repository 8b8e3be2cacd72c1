"""
Unit tests for memory classes.

Tests VectorMemory, MemoryStore and the record document adapters.
"""

import re

import numpy as np
import pytest

from hypermem.errors import DuplicateIdError, MemoryCapacityError
from hypermem.ingestion import FeatureEmbedder
from hypermem.memory import (
    CurvePoint,
    LearningMemory,
    LearningProgress,
    MemoryStore,
    SnapshotEdge,
    SnapshotNode,
    UnderstandingSnapshot,
    VectorMemory,
)
from hypermem.memory.records import generate_id


@pytest.fixture
def store(clock):
    embedder = FeatureEmbedder(clock=clock, random_state=np.random.RandomState(0))
    return MemoryStore(embedder, max_memories=5, random_state=np.random.RandomState(1))


class TestVectorMemory:
    """Test VectorMemory class."""

    def test_initialization(self):
        """Test empty vector memory."""
        vm = VectorMemory(d=4)

        assert len(vm) == 0
        assert vm.get_vectors().shape == (0, 4)

    def test_add_keeps_ball_invariant(self):
        """Test that out-of-ball vectors are rescaled on insert."""
        vm = VectorMemory(d=2, max_norm=0.9)
        stored = vm.add("m1", np.array([3.0, 4.0]))

        assert np.linalg.norm(stored) == pytest.approx(0.9)
        assert np.allclose(vm.get_vectors()[0], stored)
        assert vm.ids == ["m1"]

    def test_duplicate_rejected(self):
        """Test that an id can only be stored once."""
        vm = VectorMemory(d=2)
        vm.add("m1", np.array([0.1, 0.1]))
        with pytest.raises(KeyError):
            vm.add("m1", np.array([0.2, 0.2]))

    def test_distances_in_insertion_order(self):
        """Test distances to every stored row."""
        vm = VectorMemory(d=2)
        vm.add("a", np.array([0.0, 0.0]))
        vm.add("b", np.array([0.5, 0.0]))

        distances = vm.distances(np.zeros(2))
        assert distances[0] == pytest.approx(0.0)
        assert distances[1] == pytest.approx(np.log(3.0))


class TestMemoryStore:
    """Test MemoryStore class."""

    def test_create_memory_fields(self, store, clock):
        """Test that a new memory carries id, timestamp, embedding and confidence."""
        memory = store.create_memory("neural_net_a", {"layers": 3}, {"source": "test"}, 0.7)

        assert re.match(r"^memory_\d+_[0-9a-z]{9}$", memory.id)
        assert memory.created_at == clock.now
        assert memory.embedding.shape == (32,)
        assert np.linalg.norm(memory.embedding) < 1.0
        assert memory.context == {"source": "test"}
        assert memory.performance == 0.7
        assert 0.0 <= memory.confidence <= 1.0
        assert memory.consolidated is False
        assert len(store) == 0

    def test_performance_range(self, store):
        """Test that performance outside [0, 1] is rejected."""
        with pytest.raises(ValueError):
            store.create_memory("x", performance=1.5)
        with pytest.raises(ValueError):
            store.create_memory("x", performance=-0.1)

    def test_related_concepts(self, store):
        """Test that nearby memories of other concepts are related, the same concept is not."""
        store.insert(store.create_memory("neural_net_a"))
        store.insert(store.create_memory("neural_net_a"))
        memory = store.create_memory("neural_net_b")

        assert memory.related_concepts == ["neural_net_a"]

    def test_distant_concepts_unrelated(self, store):
        """Test that memories beyond the distance threshold are not related."""
        store.insert(store.create_memory("neural_net_a"))
        memory = store.create_memory("hyperbolic_x")

        assert memory.related_concepts == []

    def test_related_capped(self, clock):
        """Test that at most max_related concepts are recorded."""
        embedder = FeatureEmbedder(clock=clock)
        store = MemoryStore(embedder, max_related=2, random_state=np.random.RandomState(3))
        for concept in ("cooking_a", "cooking_b", "cooking_c"):
            store.insert(store.create_memory(concept))

        assert store.create_memory("cooking_d").related_concepts == ["cooking_a", "cooking_b"]

    def test_insert_and_lookup(self, store):
        """Test that inserted memories are visible in insertion order."""
        first = store.insert(store.create_memory("a_concept"))
        second = store.insert(store.create_memory("b_concept"))

        assert store.get(first.id) is first
        assert store.all() == [first, second]
        assert store.unconsolidated_count() == 2

    def test_duplicate_id_rejected(self, store):
        """Test that an existing id is never overwritten."""
        memory = store.insert(store.create_memory("a_concept"))
        clone = LearningMemory(memory.id, memory.created_at, "other", memory.embedding.copy())

        with pytest.raises(DuplicateIdError):
            store.insert(clone)
        assert store.get(memory.id).concept == "a_concept"

    def test_capacity(self, store):
        """Test that inserting past max_memories fails."""
        for i in range(5):
            store.insert(store.create_memory(f"concept_{i}"))
        extra = store.create_memory("one_too_many")

        with pytest.raises(MemoryCapacityError):
            store.check_insertable(extra)
        with pytest.raises(MemoryCapacityError):
            store.insert(extra)
        assert len(store) == 5

    def test_mark_consolidated(self, store):
        """Test that consolidation flags flip once."""
        a = store.insert(store.create_memory("a_concept"))
        b = store.insert(store.create_memory("b_concept"))
        store.mark_consolidated([a.id])
        store.mark_consolidated([a.id])

        assert a.consolidated and not b.consolidated
        assert store.unconsolidated() == [b]
        assert store.stats['memories_consolidated'] == 1

    def test_average_confidence(self, store):
        assert store.average_confidence() == 0.0
        memory = store.insert(store.create_memory("a_concept", "payload"))
        assert store.average_confidence() == pytest.approx(memory.confidence)


class TestRecords:
    """Test JSON document adapters."""

    def test_generate_id(self):
        """Test id format and that the RNG drives the suffix."""
        rs = np.random.RandomState(5)
        first = generate_id("memory", 1000, rs)
        second = generate_id("memory", 1000, rs)

        assert re.match(r"^memory_1000_[0-9a-z]{9}$", first)
        assert first != second

    def test_memory_document_keys(self):
        """Test camelCase keys and plain number lists."""
        memory = LearningMemory("memory_1_abc", 1, "graph", np.array([0.1, 0.2]),
                                related_concepts=["tree"])
        doc = memory.to_document()

        assert doc["createdAt"] == 1
        assert doc["relatedConcepts"] == ["tree"]
        assert doc["embedding"] == [0.1, 0.2]
        assert all(type(x) is float for x in doc["embedding"])

    def test_memory_missing_field(self):
        with pytest.raises(ValueError):
            LearningMemory.from_document({"id": "x", "concept": "y"})

    def test_snapshot_embeddings_as_pairs(self):
        """Test that the concept -> embedding map is written as key/value pairs."""
        snapshot = UnderstandingSnapshot(
            id="snapshot_graph_structures_1_abc",
            created_at=1,
            category="graph_structures",
            nodes=(SnapshotNode("m1", "graph_a", np.array([0.1, 0.0]), 0.5, 0.4),),
            edges=(SnapshotEdge("m1", "m2", "semantic_relationship"),),
            relationships=(),
            embeddings={"graph_a": np.array([0.1, 0.0]), "graph_b": np.array([0.0, 0.2])},
            centroid=np.array([0.05, 0.1]),
            insights=("Average performance: 0.500",),
            confidence=0.5,
        )
        doc = snapshot.to_document()

        assert doc["embeddings"] == [
            {"key": "graph_a", "value": [0.1, 0.0]},
            {"key": "graph_b", "value": [0.0, 0.2]},
        ]
        restored = UnderstandingSnapshot.from_document(doc)
        assert set(restored.embeddings) == {"graph_a", "graph_b"}
        assert np.allclose(restored.embeddings["graph_b"], [0.0, 0.2])
        assert restored.edges == snapshot.edges
        assert restored.member_ids == ["m1"]

    def test_progress_document(self):
        """Test learning curve points and concept lists survive conversion."""
        progress = LearningProgress("geometry", 2, 2, 0.5, 10,
                                    [CurvePoint(5, 0.2), CurvePoint(10, 0.8)], ["a"], [])
        restored = LearningProgress.from_document(progress.to_document())

        assert restored == progress
