"""
Learning Engine: main orchestrator for the hyperbolic learning memory.

Owns the feature embedder, memory store, retrieval ranker, progress
tracker, consolidation engine and JSON document store. One engine is
constructed per storage directory and passed to whoever needs it.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from hypermem.config import LearningConfig
from hypermem.ingestion.features import FeatureEmbedder, now_ms
from hypermem.knowledge.consolidation import ConsolidationEngine
from hypermem.knowledge.progress import ProgressTracker
from hypermem.knowledge.taxonomy import categorize_domain
from hypermem.memory.records import LearningMemory, LearningProgress, UnderstandingSnapshot
from hypermem.memory.retrieval import RetrievalRanker
from hypermem.memory.store import MemoryStore
from hypermem.storage.json_store import JsonDocumentStore

logger = logging.getLogger(__name__)


class LearningEngine:
    """
    Hyperbolic learning-memory engine.

    Every ``learn`` call embeds the concept, persists and inserts the new
    memory, updates the progress of the concept's domain and, once enough
    memories are unconsolidated, consolidates them into snapshots.

    Attributes:
        config: Validated LearningConfig
        embedder: Feature embedder shared by store and retrieval
        store: Memory store
        ranker: Retrieval ranker
        progress: Progress tracker
        consolidation: Consolidation engine
        storage: JSON document store
    """

    def __init__(
        self,
        config: LearningConfig,
        clock: Optional[Callable[[], int]] = None,
        random_state: Optional[np.random.RandomState] = None
    ):
        """
        Initialize the engine. Call :meth:`initialize` before use to load
        previously persisted documents.

        Args:
            config: Engine configuration
            clock: Callable returning epoch milliseconds (defaults to wall clock)
            random_state: RNG for jitter and id suffixes (defaults to config.random_seed)

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = config.validate()
        self.clock = clock or now_ms
        self.random_state = random_state or np.random.RandomState(config.random_seed)

        self.storage = JsonDocumentStore(config.storage_path, embedding_dim=config.embedding_dim)
        self.embedder = FeatureEmbedder(
            dim=config.embedding_dim,
            max_norm=config.max_ball_norm,
            clock=self.clock,
            random_state=self.random_state,
        )
        self.store = MemoryStore(
            self.embedder,
            max_memories=config.max_memories,
            related_distance_threshold=config.related_distance_threshold,
            max_related=config.max_related,
            random_state=self.random_state,
        )
        self.ranker = RetrievalRanker(self.store, self.embedder, strategy=config.retrieval_strategy)
        self.progress = ProgressTracker(clock=self.clock, on_update=self.storage.save_progress)
        self.consolidation = ConsolidationEngine(
            self.store,
            centroid_method=config.centroid_method,
            clock=self.clock,
            random_state=self.random_state,
            on_snapshot=self.storage.save_snapshot,
            on_memory_update=self.storage.save_memory,
        )
        self._learn_lock = threading.Lock()
        self.initialized = False

    def initialize(self) -> None:
        """
        Create the storage directories and load persisted documents.

        Unreadable storage is logged and the engine starts empty.

        Raises:
            CorruptDocumentError: If a persisted document is malformed
        """
        state = self.storage.initialize()
        self.store.load(state.memories)
        self.consolidation.load(state.snapshots)
        self.progress.load(state.progress)
        self.initialized = True
        logger.info(
            "Learning engine ready: %d memories, %d snapshots, %d domains",
            len(self.store), len(self.consolidation), len(self.progress)
        )

    def learn(
        self,
        concept: str,
        payload: Any = None,
        context: Optional[Dict[str, Any]] = None,
        performance: float = 0.5
    ) -> LearningMemory:
        """
        Learn a concept.

        The memory document and the domain's progress document are both
        written before the memory is inserted. If either write fails the
        memory is neither stored nor left on disk, and the domain keeps its
        previous progress.

        Args:
            concept: Concept name, e.g. "neural_network_basics"
            payload: Arbitrary data describing the concept
            context: Caller-supplied key/value context, stored in JSON form
                (non-string keys and non-JSON values become strings)
            performance: Performance score in [0, 1]

        Returns:
            The new LearningMemory (consolidated already if this call
            triggered a pass that included it)

        Raises:
            ValueError: If performance is outside [0, 1]
            PersistenceIOError: If a document cannot be written
            DuplicateIdError: On an id collision
            MemoryCapacityError: If the store is full
        """
        memory = self.store.create_memory(concept, payload, context, performance)
        domain = categorize_domain(concept)

        # Both documents are written before the memory becomes visible.
        with self._learn_lock:
            self.store.check_insertable(memory)
            self.storage.save_memory(memory)
            try:
                self.progress.record_performance(domain, concept, performance)
            except Exception:
                logger.error("Progress update failed for %s, discarding %s", domain, memory.id)
                self.storage.delete_memory(memory.id)
                raise
            self.store.insert(memory)

        logger.info("Learned concept %r in domain %s (%s)", concept, domain, memory.id)

        if self.store.unconsolidated_count() >= self.config.consolidation_threshold:
            self.consolidation.request()
        return memory

    def retrieve(self, query: str, max_results: int = 10) -> List[LearningMemory]:
        """
        Memories most relevant to ``query``, best first.

        Args:
            query: Free-text query
            max_results: Result cap; values <= 0 return an empty list

        Returns:
            List of LearningMemory
        """
        return self.ranker.retrieve(query, max_results)

    def consolidate(self) -> List[UnderstandingSnapshot]:
        """
        Run a consolidation pass now.

        Returns:
            Snapshots created by the pass
        """
        return self.consolidation.consolidate()

    def get_snapshot(self, domain: str) -> Optional[UnderstandingSnapshot]:
        """Most recent snapshot for a consolidation category, or None."""
        return self.consolidation.latest(domain)

    def get_progress(self) -> List[LearningProgress]:
        return self.progress.all()

    def get_status(self) -> Dict[str, Any]:
        """
        Summary counters.

        Returns:
            dict: total_memories, total_snapshots, total_domains,
            average_confidence and progress (list of LearningProgress)
        """
        return {
            'total_memories': len(self.store),
            'total_snapshots': len(self.consolidation),
            'total_domains': len(self.progress),
            'average_confidence': self.store.average_confidence(),
            'progress': self.progress.all(),
        }

    def __repr__(self):
        return (f"LearningEngine(storage={str(self.storage.root)!r}, "
                f"memories={len(self.store)}, snapshots={len(self.consolidation)})")
