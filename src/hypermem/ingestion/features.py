"""
Feature-based concept embedding.

Maps (concept name, payload, current time) to a point of the Poincaré ball
by concatenating three hand-crafted feature blocks:

- semantic (16): word count, character count, keyword family, capital ratio, digit ratio
- contextual (8): payload shape (mapping/sequence size, string length and sentences, number magnitude)
- temporal (8): time of day, day of week, day of month as fractions of the period

The first 32 values are deterministic for a given clock reading. Widths
above 32 are padded with uniform jitter in [-0.05, 0.05) so that padded
coordinates are never all equal.
"""

import json
import re
import time
from collections.abc import Mapping
from typing import Any, Callable, List, Optional

import numpy as np

from hypermem.geometry.poincare import DEFAULT_MAX_NORM, clamp_to_ball
from hypermem.knowledge.taxonomy import NUM_CATEGORIES, category_score
from hypermem.utils import json_safe

SEMANTIC_WIDTH = 16
CONTEXTUAL_WIDTH = 8
TEMPORAL_WIDTH = 8
FEATURE_WIDTH = SEMANTIC_WIDTH + CONTEXTUAL_WIDTH + TEMPORAL_WIDTH

JITTER = 0.05

MS_PER_DAY = 86_400_000
MS_PER_WEEK = 7 * MS_PER_DAY
MS_PER_MONTH = 30 * MS_PER_DAY

_WORD_SPLIT = re.compile(r"[\s_-]+")
_SENTENCE_END = re.compile(r"[.!?]")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool)


def _is_structured(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple))


def semantic_features(concept: str) -> List[float]:
    """
    Extract the semantic block of a concept name.

    Args:
        concept: Concept name, e.g. "neural_network_basics"

    Returns:
        List of 16 floats
    """
    features = [0.0] * SEMANTIC_WIDTH
    words = _WORD_SPLIT.split(concept.lower())
    features[0] = len(words) / 10
    features[1] = len(concept) / 100
    features[2] = category_score(concept) / NUM_CATEGORIES
    if concept:
        features[3] = sum(1 for c in concept if "A" <= c <= "Z") / len(concept)
        features[4] = sum(1 for c in concept if "0" <= c <= "9") / len(concept)
    return features


def contextual_features(payload: Any) -> List[float]:
    """
    Extract the contextual block describing the payload's shape.

    Mappings and sequences contribute their size and serialized length
    (keys of any hashable type are measured as strings),
    strings their length and sentence count, numbers their magnitude.
    Anything else (None, booleans) yields zeros.

    Returns:
        List of 8 floats
    """
    features = [0.0] * CONTEXTUAL_WIDTH
    if _is_structured(payload):
        features[0] = len(payload) / 20
        features[1] = len(json.dumps(json_safe(payload), separators=(",", ":"))) / 1000
    elif isinstance(payload, str):
        features[2] = len(payload) / 100
        features[3] = len(_SENTENCE_END.findall(payload)) / 10
    elif _is_number(payload):
        features[4] = min(abs(float(payload)) / 100, 1.0)
    return features


def temporal_features(timestamp_ms: int) -> List[float]:
    """
    Extract the temporal block from an epoch-millisecond timestamp.

    Returns:
        List of 8 floats, the first three in [0, 1)
    """
    features = [0.0] * TEMPORAL_WIDTH
    features[0] = (timestamp_ms % MS_PER_DAY) / MS_PER_DAY
    features[1] = (timestamp_ms % MS_PER_WEEK) / MS_PER_WEEK
    features[2] = (timestamp_ms % MS_PER_MONTH) / MS_PER_MONTH
    return features


def payload_complexity(payload: Any) -> float:
    """
    Rough complexity of a payload, used by the confidence estimate.

    Mappings and sequences: size / 10. Strings: length / 100. Anything else: 1.
    """
    if _is_structured(payload):
        return len(payload) / 10
    if isinstance(payload, str):
        return len(payload) / 100
    return 1.0


class FeatureEmbedder:
    """
    Stateless concept embedder producing Poincaré-ball vectors.

    Attributes:
        dim: Output width (>= 32)
        max_norm: Norm that out-of-ball vectors are rescaled to
    """

    def __init__(
        self,
        dim: int = FEATURE_WIDTH,
        max_norm: float = DEFAULT_MAX_NORM,
        clock: Optional[Callable[[], int]] = None,
        random_state: Optional[np.random.RandomState] = None
    ):
        """
        Initialize the embedder.

        Args:
            dim: Embedding width; must hold all three feature blocks
            max_norm: Target norm for rescaled vectors
            clock: Callable returning epoch milliseconds (defaults to wall clock)
            random_state: RNG for the padding jitter
        """
        if dim < FEATURE_WIDTH:
            raise ValueError(f"dim must be >= {FEATURE_WIDTH}, got {dim}")
        self.dim = dim
        self.max_norm = max_norm
        self.clock = clock or now_ms
        self.random_state = random_state or np.random.RandomState()

    def features(self, concept: str, payload: Any, timestamp_ms: Optional[int] = None) -> List[float]:
        """Concatenate the three feature blocks (deterministic part of the embedding)."""
        if timestamp_ms is None:
            timestamp_ms = self.clock()
        return (
            semantic_features(concept)
            + contextual_features(payload)
            + temporal_features(timestamp_ms)
        )

    def embed(
        self,
        concept: str,
        payload: Any = None,
        timestamp_ms: Optional[int] = None,
        jitter: bool = True
    ) -> np.ndarray:
        """
        Embed a concept into the Poincaré ball.

        Args:
            concept: Concept name
            payload: Arbitrary payload describing the concept
            timestamp_ms: Optional fixed timestamp (defaults to the clock)
            jitter: Pad widths above 32 with random jitter (zeros when False)

        Returns:
            np.ndarray: Shape (dim,) with norm < 1
        """
        embedding = np.zeros(self.dim)
        embedding[:FEATURE_WIDTH] = self.features(concept, payload, timestamp_ms)
        if jitter and self.dim > FEATURE_WIDTH:
            embedding[FEATURE_WIDTH:] = self.random_state.uniform(
                -JITTER, JITTER, self.dim - FEATURE_WIDTH
            )
        return clamp_to_ball(embedding, self.max_norm)

    def confidence(self, embedding: np.ndarray, payload: Any) -> float:
        """
        Confidence of a new memory: min(‖embedding‖ · (1 + complexity(payload)), 1).
        """
        norm = float(np.linalg.norm(embedding))
        return min(norm * (1.0 + payload_complexity(payload)), 1.0)

    def __repr__(self):
        return f"FeatureEmbedder(dim={self.dim}, max_norm={self.max_norm})"
