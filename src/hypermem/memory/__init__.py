"""Learning memories, their store and retrieval."""

from hypermem.memory.records import (
    CurvePoint,
    LearningMemory,
    LearningProgress,
    SnapshotEdge,
    SnapshotNode,
    UnderstandingSnapshot,
)
from hypermem.memory.retrieval import RetrievalRanker
from hypermem.memory.store import MemoryStore
from hypermem.memory.vector import VectorMemory

__all__ = [
    "CurvePoint",
    "LearningMemory",
    "LearningProgress",
    "SnapshotEdge",
    "SnapshotNode",
    "UnderstandingSnapshot",
    "MemoryStore",
    "RetrievalRanker",
    "VectorMemory",
]
