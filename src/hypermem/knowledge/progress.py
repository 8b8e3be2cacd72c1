"""
Per-domain learning progress.

Each domain keeps an append-only learning curve. Mastery is the mean of
the last ``MASTERY_WINDOW`` curve entries (or of all entries while fewer
exist). A concept scored below ``WEAK_THRESHOLD`` or above
``STRONG_THRESHOLD`` is classified the first time it is seen that way and
is never reclassified afterwards, even if a later score points the other
way.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

import numpy as np

from hypermem.ingestion.features import now_ms
from hypermem.memory.records import CurvePoint, LearningProgress

logger = logging.getLogger(__name__)

MASTERY_WINDOW = 10
WEAK_THRESHOLD = 0.3
STRONG_THRESHOLD = 0.8


def mastery_level(curve: List[CurvePoint], window: int = MASTERY_WINDOW) -> float:
    """Mean performance over the last ``window`` entries of ``curve``."""
    recent = curve[-window:]
    if not recent:
        return 0.0
    return float(np.mean([point.performance for point in recent]))


class ProgressTracker:
    """
    Owns one LearningProgress record per domain.

    Updates are computed on a copy and handed to ``on_update`` (the
    persistence hook) before being committed, so a failed write leaves the
    in-memory record unchanged.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], int]] = None,
        on_update: Optional[Callable[[LearningProgress], None]] = None
    ):
        """
        Args:
            clock: Callable returning epoch milliseconds
            on_update: Called with the updated record before it is committed
        """
        self.clock = clock or now_ms
        self.on_update = on_update
        self.progress: Dict[str, LearningProgress] = {}
        self._lock = threading.Lock()

    def load(self, records: Iterable[LearningProgress]) -> None:
        for record in records:
            self.progress[record.domain] = record

    def record_performance(self, domain: str, concept: str, performance: float) -> LearningProgress:
        """
        Record one learning event for ``domain``.

        Args:
            domain: Progress domain (created on first use)
            concept: Concept that was learned
            performance: Score in [0, 1]

        Returns:
            The committed LearningProgress (a live reference)
        """
        with self._lock:
            current = self.progress.get(domain)
            updated = current.copy() if current is not None else LearningProgress(domain=domain)

            now = self.clock()
            updated.total_concepts += 1
            updated.learned_concepts += 1
            updated.last_updated = now
            updated.learning_curve.append(CurvePoint(now, float(performance)))
            updated.mastery_level = mastery_level(updated.learning_curve)

            already_classified = (
                concept in updated.weak_concepts or concept in updated.strong_concepts
            )
            if not already_classified:
                if performance < WEAK_THRESHOLD:
                    updated.weak_concepts.append(concept)
                elif performance > STRONG_THRESHOLD:
                    updated.strong_concepts.append(concept)

            if self.on_update is not None:
                self.on_update(updated)
            self.progress[domain] = updated

        logger.debug("Domain %s mastery %.3f after %r", domain, updated.mastery_level, concept)
        return updated

    def get(self, domain: str) -> Optional[LearningProgress]:
        return self.progress.get(domain)

    def all(self) -> List[LearningProgress]:
        return list(self.progress.values())

    def __len__(self):
        return len(self.progress)
