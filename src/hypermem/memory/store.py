"""
Memory store for learned concepts.

Owns every LearningMemory record and the embedding matrix behind them.
Building a record (embedding, confidence, related concepts) is separated
from inserting it, so the caller can persist the record first and only
then make it visible; a failed write therefore never leaves a partial
insert behind.
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from hypermem.errors import DuplicateIdError, MemoryCapacityError
from hypermem.ingestion.features import FeatureEmbedder
from hypermem.memory.records import LearningMemory, generate_id
from hypermem.memory.vector import VectorMemory
from hypermem.utils import json_safe

logger = logging.getLogger(__name__)


class MemoryStore:
    """
    Insertion-ordered collection of learning memories.

    Handles:
    - Record construction from (concept, payload, context, performance)
    - Related-concept search by hyperbolic distance
    - Unique id generation and collision detection
    - Consolidation flags (set once, never cleared)
    """

    def __init__(
        self,
        embedder: FeatureEmbedder,
        max_memories: int = 10000,
        related_distance_threshold: float = 0.1,
        max_related: int = 5,
        random_state: Optional[np.random.RandomState] = None
    ):
        """
        Initialize an empty store.

        Args:
            embedder: Feature embedder shared with retrieval
            max_memories: Capacity of the store
            related_distance_threshold: Distance below which memories are related
            max_related: Maximum related concepts recorded per memory
            random_state: RNG for id suffixes
        """
        self.embedder = embedder
        self.max_memories = max_memories
        self.related_distance_threshold = related_distance_threshold
        self.max_related = max_related
        self.random_state = random_state or np.random.RandomState()

        self.memories: Dict[str, LearningMemory] = {}
        self.vector_memory = VectorMemory(embedder.dim, max_norm=embedder.max_norm)
        self._lock = threading.Lock()

        self.stats = {
            'memories_created': 0,
            'memories_loaded': 0,
            'memories_consolidated': 0,
        }

    def find_related(self, concept: str, embedding: np.ndarray) -> List[str]:
        """
        Concepts of stored memories close to ``embedding``.

        Memories of the same concept are ignored. Results are unique concept
        names ordered by distance (closest first), capped at ``max_related``.

        Args:
            concept: Concept being learned
            embedding: Its embedding

        Returns:
            List of related concept names
        """
        if len(self.vector_memory) == 0 or self.max_related == 0:
            return []

        distances = self.vector_memory.distances(embedding)
        # Stable sort keeps insertion order among equal distances.
        order = np.argsort(distances, kind="stable")

        related: List[str] = []
        for idx in order:
            if distances[idx] >= self.related_distance_threshold:
                break
            other = self.memories[self.vector_memory.ids[idx]].concept
            if other == concept or other in related:
                continue
            related.append(other)
            if len(related) >= self.max_related:
                break
        return related

    def create_memory(
        self,
        concept: str,
        payload: Any = None,
        context: Optional[Dict[str, Any]] = None,
        performance: float = 0.5
    ) -> LearningMemory:
        """
        Build a new memory without inserting it.

        Args:
            concept: Concept name
            payload: Arbitrary data describing the concept
            context: Caller-supplied context map. Stored in JSON form:
                non-string keys and values JSON cannot encode (dates,
                custom objects) become strings, tuples and sets become lists
            performance: Performance score in [0, 1]

        Returns:
            A fresh, unconsolidated LearningMemory

        Raises:
            ValueError: If performance is outside [0, 1]
        """
        if not 0.0 <= performance <= 1.0:
            raise ValueError(f"performance must be in [0, 1], got {performance}")

        timestamp = self.embedder.clock()
        embedding = self.embedder.embed(concept, payload, timestamp_ms=timestamp)
        return LearningMemory(
            id=generate_id("memory", timestamp, self.random_state),
            created_at=timestamp,
            concept=concept,
            embedding=embedding,
            context=json_safe(dict(context or {})),
            performance=float(performance),
            confidence=self.embedder.confidence(embedding, payload),
            related_concepts=self.find_related(concept, embedding),
            consolidated=False,
        )

    def check_insertable(self, memory: LearningMemory) -> None:
        """
        Raise if ``memory`` could not be inserted right now.

        Raises:
            DuplicateIdError: If the id is already stored
            MemoryCapacityError: If the store is full
        """
        if memory.id in self.memories:
            raise DuplicateIdError(f"Memory id collision: {memory.id}")
        if len(self.memories) >= self.max_memories:
            raise MemoryCapacityError(f"Memory capacity reached ({self.max_memories})")

    def insert(self, memory: LearningMemory) -> LearningMemory:
        """
        Make a memory visible to retrieval and consolidation.

        Raises:
            DuplicateIdError: If the id is already stored (never overwritten)
            MemoryCapacityError: If the store is full
        """
        with self._lock:
            self.check_insertable(memory)
            memory.embedding = self.vector_memory.add(memory.id, memory.embedding)
            self.memories[memory.id] = memory
            self.stats['memories_created'] += 1
        logger.debug("Inserted %s (%s)", memory.id, memory.concept)
        return memory

    def load(self, memories: Iterable[LearningMemory]) -> None:
        """Insert previously persisted memories (already ordered by creation time)."""
        with self._lock:
            for memory in memories:
                if memory.id in self.memories:
                    raise DuplicateIdError(f"Memory id collision on load: {memory.id}")
                memory.embedding = self.vector_memory.add(memory.id, memory.embedding)
                self.memories[memory.id] = memory
                self.stats['memories_loaded'] += 1

    def get(self, memory_id: str) -> Optional[LearningMemory]:
        return self.memories.get(memory_id)

    def all(self) -> List[LearningMemory]:
        """All memories in insertion order."""
        return list(self.memories.values())

    def unconsolidated(self) -> List[LearningMemory]:
        return [m for m in self.memories.values() if not m.consolidated]

    def unconsolidated_count(self) -> int:
        return sum(1 for m in self.memories.values() if not m.consolidated)

    def mark_consolidated(self, memory_ids: Iterable[str]) -> None:
        """Flip ``consolidated`` to True for the given memories."""
        with self._lock:
            for memory_id in memory_ids:
                memory = self.memories[memory_id]
                if not memory.consolidated:
                    memory.consolidated = True
                    self.stats['memories_consolidated'] += 1

    def average_confidence(self) -> float:
        if not self.memories:
            return 0.0
        return float(np.mean([m.confidence for m in self.memories.values()]))

    def __len__(self):
        return len(self.memories)

    def __repr__(self):
        return f"MemoryStore(memories={len(self.memories)}, d={self.vector_memory.d})"
