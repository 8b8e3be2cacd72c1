"""
Integration tests for LearningEngine.
"""

import json
from datetime import date

import numpy as np
import pytest

from hypermem import LearningConfig, LearningEngine
from hypermem.errors import (
    ConfigurationError,
    CorruptDocumentError,
    MemoryCapacityError,
    PersistenceIOError,
)


class TestConstruction:
    """Tests for engine construction and startup."""

    def test_missing_storage_path(self):
        """Test that a config without storage path aborts construction."""
        with pytest.raises(ConfigurationError):
            LearningEngine(LearningConfig())

    def test_invalid_config(self, tmp_path):
        with pytest.raises(ConfigurationError):
            LearningEngine(LearningConfig(storage_path=str(tmp_path), retrieval_strategy="oldest"))

    def test_initialize_empty(self, make_engine, tmp_path):
        """Test startup against a fresh directory."""
        engine = make_engine()

        assert engine.initialized
        assert (tmp_path / "store" / "memories").is_dir()
        assert engine.get_status()['total_memories'] == 0

    def test_corrupt_document_aborts_startup(self, make_engine, tmp_path):
        """Test that a malformed document is a startup failure."""
        (tmp_path / "store" / "memories").mkdir(parents=True)
        (tmp_path / "store" / "memories" / "bad.json").write_text("{", encoding="utf-8")

        with pytest.raises(CorruptDocumentError):
            make_engine()

    def test_embedding_width_mismatch_aborts_startup(self, make_engine):
        """Test that memories persisted at another width are reported as corrupt."""
        memory = make_engine().learn("graph_a")

        with pytest.raises(CorruptDocumentError) as excinfo:
            make_engine(embedding_dim=40)
        assert excinfo.value.path.name == f"{memory.id}.json"


class TestLearn:
    """Tests for the learn operation."""

    def test_learn_persists_memory(self, make_engine, tmp_path, clock):
        """Test that a learned concept is stored, persisted and tracked."""
        engine = make_engine()
        memory = engine.learn("neural_net_a", {"layers": 3}, {"source": "test"}, 0.7)

        path = tmp_path / "store" / "memories" / f"{memory.id}.json"
        assert path.exists()
        assert json.loads(path.read_text(encoding="utf-8"))["concept"] == "neural_net_a"
        assert memory.created_at == clock.now

        progress = engine.get_progress()
        assert [p.domain for p in progress] == ["neural_networks"]
        assert (tmp_path / "store" / "progress" / "neural_networks.json").exists()

    def test_consolidation_threshold(self, make_engine, tmp_path):
        """Test the neural/hyperbolic grouping once the threshold is reached."""
        engine = make_engine(consolidation_threshold=3)
        a = engine.learn("neural_net_a", performance=0.6)
        b = engine.learn("neural_net_b", performance=0.8)
        assert engine.get_status()['total_snapshots'] == 0
        h = engine.learn("hyperbolic_x", performance=0.5)

        snapshot = engine.get_snapshot("neural_networks")
        assert snapshot is not None
        assert snapshot.member_ids == [a.id, b.id]
        assert engine.get_snapshot("hyperbolic_geometry") is None
        assert a.consolidated and b.consolidated and not h.consolidated
        assert engine.get_status()['total_snapshots'] == 1

        assert (tmp_path / "store" / "snapshots" / f"{snapshot.id}.json").exists()
        doc = json.loads((tmp_path / "store" / "memories" / f"{a.id}.json").read_text(encoding="utf-8"))
        assert doc["consolidated"] is True

    def test_failed_write_leaves_no_partial_insert(self, make_engine, monkeypatch):
        """Test that a persistence failure keeps the indices unchanged."""
        engine = make_engine()

        def fail(memory):
            raise PersistenceIOError("disk full")

        monkeypatch.setattr(engine.storage, "save_memory", fail)
        with pytest.raises(PersistenceIOError):
            engine.learn("neural_net_a")

        assert len(engine.store) == 0
        assert engine.get_progress() == []

    def test_failed_progress_write_discards_memory(self, make_engine, tmp_path, monkeypatch):
        """Test that a progress write failure leaves neither index nor document behind."""
        engine = make_engine()

        def fail(record):
            raise PersistenceIOError("disk full")

        monkeypatch.setattr(engine.progress, "on_update", fail)
        with pytest.raises(PersistenceIOError):
            engine.learn("neural_net_a")

        assert len(engine.store) == 0
        assert engine.get_progress() == []
        assert list((tmp_path / "store" / "memories").iterdir()) == []

    def test_payload_with_tuple_keys(self, make_engine):
        """Test that a mapping payload with non-string keys can be learned."""
        engine = make_engine()
        memory = engine.learn("graph_a", {(1, 2): "edge"})

        assert engine.store.get(memory.id) is memory

    def test_context_stored_in_json_form(self, make_engine):
        """Test that non-JSON context values are persisted as strings."""
        engine = make_engine()
        memory = engine.learn("graph_a", None, {"when": date(2024, 1, 1), (1, 2): "edge"})

        assert memory.context == {"when": "2024-01-01", "(1, 2)": "edge"}
        restarted = make_engine()
        assert restarted.store.get(memory.id).context == memory.context

    def test_non_ascii_concept_written_literally(self, make_engine, tmp_path):
        engine = make_engine()
        memory = engine.learn("größe_graph")

        text = (tmp_path / "store" / "memories" / f"{memory.id}.json").read_text(encoding="utf-8")
        assert '"concept": "größe_graph"' in text

    def test_capacity_enforced(self, make_engine):
        engine = make_engine(max_memories=2)
        engine.learn("graph_a")
        engine.learn("cooking_b")
        with pytest.raises(MemoryCapacityError):
            engine.learn("wordnet_c")
        assert len(engine.store) == 2

    def test_invalid_performance(self, make_engine):
        engine = make_engine()
        with pytest.raises(ValueError):
            engine.learn("graph_a", performance=2.0)


class TestQueries:
    """Tests for retrieval, snapshots, progress and status."""

    def test_retrieve_idempotent(self, make_engine):
        """Test that repeated retrieval without mutation gives identical order."""
        engine = make_engine(embedding_dim=40)
        for concept in ("neural_net", "graph_walk", "semantic_tree", "cooking", "hyperbolic_plane"):
            engine.learn(concept, {"about": concept})

        first = [m.id for m in engine.retrieve("graph", 4)]
        assert first == [m.id for m in engine.retrieve("graph", 4)]
        assert len(first) == 4
        assert engine.retrieve("graph", 0) == []

    def test_manual_consolidate(self, make_engine):
        """Test that consolidate() can be called explicitly below the threshold."""
        engine = make_engine()
        engine.learn("graph_a")
        engine.learn("graph_b")

        created = engine.consolidate()
        assert [s.category for s in created] == ["graph_structures"]
        assert engine.get_snapshot("graph_structures") is created[0]

    def test_status(self, make_engine):
        """Test the status summary."""
        engine = make_engine()
        first = engine.learn("neural_net_a", "short payload")
        second = engine.learn("hyperbolic_x", {"k": 1})

        status = engine.get_status()
        assert status['total_memories'] == 2
        assert status['total_snapshots'] == 0
        assert status['total_domains'] == 2
        assert status['average_confidence'] == pytest.approx(
            np.mean([first.confidence, second.confidence])
        )
        assert {p.domain for p in status['progress']} == {"neural_networks", "geometry"}


class TestRestart:
    """Tests for reloading persisted state."""

    def test_state_survives_restart(self, make_engine):
        """Test that memories, snapshots and progress reload from disk."""
        engine = make_engine(consolidation_threshold=3)
        a = engine.learn("neural_net_a", {"x": 1}, {"run": 1}, 0.6)
        engine.learn("neural_net_b", performance=0.9)
        engine.learn("hyperbolic_x", performance=0.2)
        snapshot = engine.get_snapshot("neural_networks")

        restarted = make_engine(consolidation_threshold=3)

        assert len(restarted.store) == 3
        restored = restarted.store.get(a.id)
        assert restored.concept == "neural_net_a"
        assert restored.context == {"run": 1}
        assert restored.consolidated is True
        assert np.allclose(restored.embedding, a.embedding, atol=1e-6)

        reloaded = restarted.get_snapshot("neural_networks")
        assert reloaded.id == snapshot.id
        assert np.allclose(reloaded.centroid, snapshot.centroid, atol=1e-6)
        assert reloaded.insights == snapshot.insights

        domains = {p.domain: p for p in restarted.get_progress()}
        assert domains["geometry"].weak_concepts == ["hyperbolic_x"]
        assert domains["neural_networks"].strong_concepts == ["neural_net_b"]

    def test_retrieval_after_restart(self, make_engine):
        """Test that reloaded memories are searchable."""
        engine = make_engine()
        memory = engine.learn("wordnet_sense")

        restarted = make_engine()
        assert [m.id for m in restarted.retrieve("wordnet_sense", 1)] == [memory.id]
