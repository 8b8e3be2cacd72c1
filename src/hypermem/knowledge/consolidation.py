"""
Memory consolidation into understanding snapshots.

Unconsolidated memories are partitioned into five keyword groups. Every
group with at least two members is summarized into an immutable
UnderstandingSnapshot (centroid, member nodes, relationship edges and
three insight strings) and its members are flagged as consolidated.
Single-member groups are left untouched for a later pass.

Consolidation is single-flight: at most one pass runs at a time. Requests
that arrive while a pass is running are coalesced into one follow-up pass
run by the same worker.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

import networkx as nx
import numpy as np

from hypermem.errors import DuplicateIdError
from hypermem.geometry.poincare import centroid, frechet_mean
from hypermem.ingestion.features import MS_PER_DAY, now_ms
from hypermem.knowledge.taxonomy import consolidation_group
from hypermem.memory.records import (
    LearningMemory,
    SnapshotEdge,
    SnapshotNode,
    UnderstandingSnapshot,
    generate_id,
)
from hypermem.memory.store import MemoryStore

logger = logging.getLogger(__name__)

MIN_GROUP_SIZE = 2
MEMORY_EDGE_KIND = "semantic_relationship"
CONCEPT_EDGE_KIND = "semantic_similarity"


def group_memories(memories: Iterable[LearningMemory]) -> Dict[str, List[LearningMemory]]:
    """
    Partition memories by consolidation group.

    Returns:
        Dict of group -> members, in order of first appearance
    """
    groups: Dict[str, List[LearningMemory]] = {}
    for memory in memories:
        groups.setdefault(consolidation_group(memory.concept), []).append(memory)
    return groups


def build_knowledge_graph(memories: List[LearningMemory]) -> nx.DiGraph:
    """
    Directed graph over a memory group.

    Nodes are memory ids carrying concept, performance and confidence.
    An edge a -> b exists when a lists b's concept among its related
    concepts (the first group member with that concept is used).
    """
    graph = nx.DiGraph()
    first_by_concept: Dict[str, str] = {}
    for memory in memories:
        graph.add_node(
            memory.id,
            concept=memory.concept,
            performance=memory.performance,
            confidence=memory.confidence,
        )
        first_by_concept.setdefault(memory.concept, memory.id)

    for memory in memories:
        for related in memory.related_concepts:
            target = first_by_concept.get(related)
            if target is not None and target != memory.id:
                graph.add_edge(memory.id, target, kind=MEMORY_EDGE_KIND, weight=1.0)
    return graph


def generate_insights(memories: List[LearningMemory], now: int) -> List[str]:
    """Average performance, concept diversity and last-24h activity of a group."""
    avg_performance = float(np.mean([m.performance for m in memories]))
    unique_concepts = len({m.concept for m in memories})
    recent = sum(1 for m in memories if now - m.created_at < MS_PER_DAY)
    return [
        f"Average performance: {avg_performance:.3f}",
        f"Concept diversity: {unique_concepts} unique concepts",
        f"Recent learning activity: {recent} concepts learned",
    ]


class ConsolidationEngine:
    """
    Builds understanding snapshots from the memory store.

    Attributes:
        store: Memory store whose unconsolidated memories are grouped
        snapshots: All snapshots by id, in creation order
        centroid_method: "mean" or "frechet"
    """

    def __init__(
        self,
        store: MemoryStore,
        centroid_method: str = "mean",
        clock: Optional[Callable[[], int]] = None,
        random_state: Optional[np.random.RandomState] = None,
        on_snapshot: Optional[Callable[[UnderstandingSnapshot], None]] = None,
        on_memory_update: Optional[Callable[[LearningMemory], None]] = None
    ):
        """
        Initialize the consolidation engine.

        Args:
            store: Memory store to consolidate
            centroid_method: "mean" (coordinate-wise) or "frechet"
            clock: Callable returning epoch milliseconds
            random_state: RNG for snapshot id suffixes
            on_snapshot: Persistence hook, called before a snapshot becomes visible
            on_memory_update: Persistence hook, called for each newly consolidated memory
        """
        if centroid_method not in ("mean", "frechet"):
            raise ValueError(f"Unknown centroid method: {centroid_method!r}")
        self.store = store
        self.centroid_method = centroid_method
        self.clock = clock or now_ms
        self.random_state = random_state or np.random.RandomState()
        self.on_snapshot = on_snapshot
        self.on_memory_update = on_memory_update

        self.snapshots: Dict[str, UnderstandingSnapshot] = {}

        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._pending = False

        self.stats = {
            'passes': 0,
            'coalesced_requests': 0,
            'snapshots_created': 0,
            'groups_skipped': 0,
        }

    def load(self, snapshots: Iterable[UnderstandingSnapshot]) -> None:
        for snapshot in snapshots:
            if snapshot.id in self.snapshots:
                raise DuplicateIdError(f"Snapshot id collision on load: {snapshot.id}")
            self.snapshots[snapshot.id] = snapshot

    def _centroid(self, embeddings: List[np.ndarray]) -> np.ndarray:
        if self.centroid_method == "frechet":
            return frechet_mean(embeddings)
        return centroid(embeddings)

    def build_snapshot(self, category: str, memories: List[LearningMemory]) -> UnderstandingSnapshot:
        """
        Summarize one memory group. Does not modify the memories.

        Args:
            category: Consolidation group name
            memories: At least one member memory

        Returns:
            New UnderstandingSnapshot

        Raises:
            DuplicateIdError: If the generated id is already in use
        """
        now = self.clock()
        snapshot_id = generate_id(f"snapshot_{category}", now, self.random_state)
        if snapshot_id in self.snapshots:
            raise DuplicateIdError(f"Snapshot id collision: {snapshot_id}")

        graph = build_knowledge_graph(memories)
        edges = tuple(
            SnapshotEdge(source, target, data["kind"], data["weight"])
            for source, target, data in graph.edges(data=True)
        )
        relationships = tuple(
            SnapshotEdge(memory.concept, related, CONCEPT_EDGE_KIND, 1.0)
            for memory in memories
            for related in memory.related_concepts
        )

        return UnderstandingSnapshot(
            id=snapshot_id,
            created_at=now,
            category=category,
            nodes=tuple(
                SnapshotNode(m.id, m.concept, m.embedding.copy(), m.performance, m.confidence)
                for m in memories
            ),
            edges=edges,
            relationships=relationships,
            embeddings={m.concept: m.embedding.copy() for m in memories},
            centroid=self._centroid([m.embedding for m in memories]),
            insights=tuple(generate_insights(memories, now)),
            confidence=float(np.mean([m.performance for m in memories])),
        )

    def _run_pass(self) -> List[UnderstandingSnapshot]:
        groups = group_memories(self.store.unconsolidated())
        logger.debug("Consolidation pass over %d groups", len(groups))

        created = []
        for category, members in groups.items():
            if len(members) < MIN_GROUP_SIZE:
                logger.debug("Skipping group %s (only %d memory)", category, len(members))
                self.stats['groups_skipped'] += 1
                continue

            snapshot = self.build_snapshot(category, members)
            if self.on_snapshot is not None:
                self.on_snapshot(snapshot)
            self.snapshots[snapshot.id] = snapshot

            self.store.mark_consolidated(m.id for m in members)
            if self.on_memory_update is not None:
                for member in members:
                    self.on_memory_update(member)

            self.stats['snapshots_created'] += 1
            created.append(snapshot)
            logger.info("Consolidated %d memories into %s", len(members), snapshot.id)

        self.stats['passes'] += 1
        return created

    def request(self) -> List[UnderstandingSnapshot]:
        """
        Ask for a consolidation pass without blocking.

        If no pass is running, the caller runs passes until no request is
        pending. Otherwise the request is recorded and picked up by the
        running worker, and this call returns immediately.

        Returns:
            Snapshots created by passes run in this call (empty if coalesced)
        """
        with self._state_lock:
            self._pending = True

        created: List[UnderstandingSnapshot] = []
        while True:
            if not self._run_lock.acquire(blocking=False):
                self.stats['coalesced_requests'] += 1
                return created
            try:
                while True:
                    with self._state_lock:
                        if not self._pending:
                            break
                        self._pending = False
                    created.extend(self._run_pass())
            finally:
                self._run_lock.release()

            # A request may have landed between the last check and the release.
            with self._state_lock:
                if not self._pending:
                    return created

    def consolidate(self) -> List[UnderstandingSnapshot]:
        """
        Run one pass now, waiting for any in-flight pass to finish first.

        Returns:
            Snapshots created by this pass
        """
        with self._run_lock:
            with self._state_lock:
                self._pending = False
            return self._run_pass()

    def latest(self, category: str) -> Optional[UnderstandingSnapshot]:
        """Most recent snapshot of ``category`` (latest inserted wins ties)."""
        latest = None
        for snapshot in self.snapshots.values():
            if snapshot.category == category and (latest is None or snapshot.created_at >= latest.created_at):
                latest = snapshot
        return latest

    def all(self) -> List[UnderstandingSnapshot]:
        return list(self.snapshots.values())

    def __len__(self):
        return len(self.snapshots)
