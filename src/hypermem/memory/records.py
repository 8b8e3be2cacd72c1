"""
Entity records and their JSON document adapters.

Each record converts explicitly to and from a plain JSON-compatible dict
with camelCase keys. Embeddings become number lists and the snapshot's
concept → embedding map becomes a list of ``{"key", "value"}`` pairs;
nothing relies on default object serialization.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import numpy as np

from hypermem.utils import json_safe

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
_ID_SUFFIX_LENGTH = 9


def _require(doc: Dict[str, Any], *keys: str) -> None:
    if not isinstance(doc, dict):
        raise ValueError(f"expected a JSON object, got {type(doc).__name__}")
    missing = [key for key in keys if key not in doc]
    if missing:
        raise ValueError(f"missing fields: {', '.join(missing)}")


def _vector(values) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError(f"embedding must be a flat number list, got shape {arr.shape}")
    return arr


def _floats(vector: np.ndarray) -> List[float]:
    return [float(x) for x in vector]


def generate_id(prefix: str, timestamp_ms: int, random_state: np.random.RandomState) -> str:
    """Build "<prefix>_<ms>_<9 base-36 chars>"."""
    suffix = "".join(
        _ID_ALPHABET[i] for i in random_state.randint(0, len(_ID_ALPHABET), _ID_SUFFIX_LENGTH)
    )
    return f"{prefix}_{timestamp_ms}_{suffix}"


@dataclass(eq=False)
class LearningMemory:
    """
    A single learned concept.

    Attributes:
        id: Unique id ("memory_<ms>_<suffix>")
        created_at: Creation time in epoch milliseconds
        concept: Concept name
        embedding: Poincaré-ball embedding (norm < 1)
        context: Caller-supplied key/value context
        performance: Performance score in [0, 1]
        confidence: Confidence in [0, 1]
        related_concepts: Concepts of nearby memories at insert time
        consolidated: Set once by consolidation, never reverted
    """
    id: str
    created_at: int
    concept: str
    embedding: np.ndarray
    context: Dict[str, Any] = field(default_factory=dict)
    performance: float = 0.5
    confidence: float = 0.0
    related_concepts: List[str] = field(default_factory=list)
    consolidated: bool = False

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "concept": self.concept,
            "embedding": _floats(self.embedding),
            "context": json_safe(self.context),
            "performance": self.performance,
            "confidence": self.confidence,
            "relatedConcepts": list(self.related_concepts),
            "consolidated": self.consolidated,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "LearningMemory":
        _require(doc, "id", "createdAt", "concept", "embedding")
        return cls(
            id=str(doc["id"]),
            created_at=int(doc["createdAt"]),
            concept=str(doc["concept"]),
            embedding=_vector(doc["embedding"]),
            context=dict(doc.get("context") or {}),
            performance=float(doc.get("performance", 0.5)),
            confidence=float(doc.get("confidence", 0.0)),
            related_concepts=list(doc.get("relatedConcepts", [])),
            consolidated=bool(doc.get("consolidated", False)),
        )

    def __repr__(self):
        return (f"LearningMemory(id={self.id!r}, concept={self.concept!r}, "
                f"performance={self.performance:.3f}, consolidated={self.consolidated})")


@dataclass(frozen=True, eq=False)
class SnapshotNode:
    """A memory as captured by an understanding snapshot."""
    memory_id: str
    concept: str
    embedding: np.ndarray
    performance: float
    confidence: float

    def to_document(self) -> Dict[str, Any]:
        return {
            "memoryId": self.memory_id,
            "concept": self.concept,
            "embedding": _floats(self.embedding),
            "performance": self.performance,
            "confidence": self.confidence,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "SnapshotNode":
        _require(doc, "memoryId", "concept", "embedding")
        return cls(
            memory_id=str(doc["memoryId"]),
            concept=str(doc["concept"]),
            embedding=_vector(doc["embedding"]),
            performance=float(doc.get("performance", 0.0)),
            confidence=float(doc.get("confidence", 0.0)),
        )


@dataclass(frozen=True)
class SnapshotEdge:
    """Directed edge between two memories (or two concepts)."""
    source: str
    target: str
    kind: str
    weight: float = 1.0

    def to_document(self) -> Dict[str, Any]:
        return {"source": self.source, "target": self.target,
                "kind": self.kind, "weight": self.weight}

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "SnapshotEdge":
        _require(doc, "source", "target", "kind")
        return cls(str(doc["source"]), str(doc["target"]), str(doc["kind"]),
                   float(doc.get("weight", 1.0)))


@dataclass(frozen=True, eq=False)
class UnderstandingSnapshot:
    """
    Immutable summary of one consolidated concept group.

    Attributes:
        id: Unique id ("snapshot_<category>_<ms>_<suffix>")
        created_at: Creation time in epoch milliseconds
        category: Consolidation group, e.g. "neural_networks"
        nodes: Member memories
        edges: Memory-level edges (memory id → memory id)
        relationships: Concept-level edges (concept → related concept)
        embeddings: Concept → embedding map of the members
        centroid: Group centroid
        insights: Derived summary strings
        confidence: Mean member performance
    """
    id: str
    created_at: int
    category: str
    nodes: Tuple[SnapshotNode, ...]
    edges: Tuple[SnapshotEdge, ...]
    relationships: Tuple[SnapshotEdge, ...]
    embeddings: Dict[str, np.ndarray]
    centroid: np.ndarray
    insights: Tuple[str, ...]
    confidence: float

    @property
    def member_ids(self) -> List[str]:
        return [node.memory_id for node in self.nodes]

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "category": self.category,
            "nodes": [node.to_document() for node in self.nodes],
            "edges": [edge.to_document() for edge in self.edges],
            "relationships": [edge.to_document() for edge in self.relationships],
            # Map-valued field written as explicit key/value pairs.
            "embeddings": [
                {"key": concept, "value": _floats(vector)}
                for concept, vector in self.embeddings.items()
            ],
            "centroid": _floats(self.centroid),
            "insights": list(self.insights),
            "confidence": self.confidence,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "UnderstandingSnapshot":
        _require(doc, "id", "createdAt", "category", "nodes", "edges")
        embeddings = {}
        for pair in doc.get("embeddings", []):
            _require(pair, "key", "value")
            embeddings[str(pair["key"])] = _vector(pair["value"])
        nodes = tuple(SnapshotNode.from_document(node) for node in doc["nodes"])
        centroid = doc.get("centroid")
        if centroid is None:
            centroid = np.mean([node.embedding for node in nodes], axis=0) if nodes else []
        return cls(
            id=str(doc["id"]),
            created_at=int(doc["createdAt"]),
            category=str(doc["category"]),
            nodes=nodes,
            edges=tuple(SnapshotEdge.from_document(edge) for edge in doc["edges"]),
            relationships=tuple(
                SnapshotEdge.from_document(edge) for edge in doc.get("relationships", [])
            ),
            embeddings=embeddings,
            centroid=_vector(centroid),
            insights=tuple(str(insight) for insight in doc.get("insights", [])),
            confidence=float(doc.get("confidence", 0.0)),
        )

    def __repr__(self):
        return (f"UnderstandingSnapshot(id={self.id!r}, category={self.category!r}, "
                f"nodes={len(self.nodes)}, edges={len(self.edges)})")


@dataclass(frozen=True)
class CurvePoint:
    """One learning-curve observation."""
    timestamp: int
    performance: float


@dataclass
class LearningProgress:
    """
    Running statistics for one domain.

    ``learning_curve`` is append-only; only its last 10 entries feed
    ``mastery_level``. ``weak_concepts`` and ``strong_concepts`` keep
    first-seen order and a concept is classified at most once.
    """
    domain: str
    total_concepts: int = 0
    learned_concepts: int = 0
    mastery_level: float = 0.0
    last_updated: int = 0
    learning_curve: List[CurvePoint] = field(default_factory=list)
    weak_concepts: List[str] = field(default_factory=list)
    strong_concepts: List[str] = field(default_factory=list)

    def copy(self) -> "LearningProgress":
        return copy.deepcopy(self)

    def to_document(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "totalConcepts": self.total_concepts,
            "learnedConcepts": self.learned_concepts,
            "masteryLevel": self.mastery_level,
            "lastUpdated": self.last_updated,
            "learningCurve": [
                {"timestamp": point.timestamp, "performance": point.performance}
                for point in self.learning_curve
            ],
            "weakConcepts": list(self.weak_concepts),
            "strongConcepts": list(self.strong_concepts),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "LearningProgress":
        _require(doc, "domain")
        curve = []
        for point in doc.get("learningCurve", []):
            _require(point, "timestamp", "performance")
            curve.append(CurvePoint(int(point["timestamp"]), float(point["performance"])))
        return cls(
            domain=str(doc["domain"]),
            total_concepts=int(doc.get("totalConcepts", 0)),
            learned_concepts=int(doc.get("learnedConcepts", 0)),
            mastery_level=float(doc.get("masteryLevel", 0.0)),
            last_updated=int(doc.get("lastUpdated", 0)),
            learning_curve=curve,
            weak_concepts=list(doc.get("weakConcepts", [])),
            strong_concepts=list(doc.get("strongConcepts", [])),
        )
