"""
Configuration for the learning-memory engine.

Values come from keyword arguments or from ``HYPERMEM_*`` environment
variables (optionally loaded from a ``.env`` file).
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from hypermem.errors import ConfigurationError

RETRIEVAL_STRATEGIES = ("relevant", "recent", "hybrid")
CENTROID_METHODS = ("mean", "frechet")

# Three feature blocks of 16 + 8 + 8 values.
MIN_EMBEDDING_DIM = 32

ENV_PREFIX = "HYPERMEM_"


@dataclass
class LearningConfig:
    """
    Engine configuration.

    Attributes:
        storage_path: Root directory for persisted documents (required)
        max_memories: Maximum number of memories held by the store
        consolidation_threshold: Unconsolidated count that triggers consolidation
        retrieval_strategy: "relevant", "recent" or "hybrid"
        embedding_dim: Width of every embedding
        related_distance_threshold: Hyperbolic distance below which memories are related
        max_related: Cap on related concepts recorded per memory
        centroid_method: "mean" (coordinate-wise) or "frechet" (iterative Karcher mean)
        max_ball_norm: Norm that out-of-ball vectors are rescaled to
        random_seed: Optional seed for padding jitter and id suffixes
    """
    storage_path: Optional[str] = None
    max_memories: int = 10000
    consolidation_threshold: int = 10
    retrieval_strategy: str = "relevant"
    embedding_dim: int = 32
    related_distance_threshold: float = 0.1
    max_related: int = 5
    centroid_method: str = "mean"
    max_ball_norm: float = 0.9
    random_seed: Optional[int] = None

    def validate(self) -> "LearningConfig":
        """
        Check every field.

        Returns:
            self, for chaining

        Raises:
            ConfigurationError: If a field is missing or out of range
        """
        if not self.storage_path:
            raise ConfigurationError("storage_path is required")
        if self.max_memories < 1:
            raise ConfigurationError(f"max_memories must be >= 1, got {self.max_memories}")
        if self.consolidation_threshold < 2:
            raise ConfigurationError(
                f"consolidation_threshold must be >= 2, got {self.consolidation_threshold}"
            )
        if self.retrieval_strategy not in RETRIEVAL_STRATEGIES:
            raise ConfigurationError(
                f"retrieval_strategy must be one of {RETRIEVAL_STRATEGIES}, "
                f"got {self.retrieval_strategy!r}"
            )
        if self.embedding_dim < MIN_EMBEDDING_DIM:
            raise ConfigurationError(
                f"embedding_dim must be >= {MIN_EMBEDDING_DIM}, got {self.embedding_dim}"
            )
        if self.related_distance_threshold < 0:
            raise ConfigurationError("related_distance_threshold must be non-negative")
        if self.max_related < 0:
            raise ConfigurationError("max_related must be non-negative")
        if self.centroid_method not in CENTROID_METHODS:
            raise ConfigurationError(
                f"centroid_method must be one of {CENTROID_METHODS}, got {self.centroid_method!r}"
            )
        if not 0.0 < self.max_ball_norm < 1.0:
            raise ConfigurationError(f"max_ball_norm must be in (0, 1), got {self.max_ball_norm}")
        return self

    @property
    def root(self) -> Path:
        return Path(self.storage_path)

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None, **overrides) -> "LearningConfig":
        """
        Build a config from ``HYPERMEM_*`` environment variables.

        Args:
            env_file: Optional ``.env`` file loaded before reading the environment
            **overrides: Explicit values that win over the environment

        Returns:
            Validated LearningConfig

        Raises:
            ConfigurationError: If a variable cannot be parsed or validation fails
        """
        if env_file is not None:
            load_dotenv(env_file)

        def env(key: str) -> Optional[str]:
            val = os.getenv(ENV_PREFIX + key)
            if val is None or val.strip() == "":
                return None
            return val.strip()

        def safe_int(key: str) -> Optional[int]:
            val = env(key)
            if val is None:
                return None
            try:
                return int(val)
            except ValueError:
                raise ConfigurationError(f"{ENV_PREFIX}{key} must be an integer, got {val!r}")

        def safe_float(key: str) -> Optional[float]:
            val = env(key)
            if val is None:
                return None
            try:
                return float(val)
            except ValueError:
                raise ConfigurationError(f"{ENV_PREFIX}{key} must be a number, got {val!r}")

        values = {
            "storage_path": env("STORAGE_PATH"),
            "max_memories": safe_int("MAX_MEMORIES"),
            "consolidation_threshold": safe_int("CONSOLIDATION_THRESHOLD"),
            "retrieval_strategy": env("RETRIEVAL_STRATEGY"),
            "embedding_dim": safe_int("EMBEDDING_DIM"),
            "related_distance_threshold": safe_float("RELATED_DISTANCE_THRESHOLD"),
            "max_related": safe_int("MAX_RELATED"),
            "centroid_method": env("CENTROID_METHOD"),
            "max_ball_norm": safe_float("MAX_BALL_NORM"),
            "random_seed": safe_int("RANDOM_SEED"),
        }
        values = {k: v for k, v in values.items() if v is not None}
        values.update(overrides)
        return cls(**values).validate()
