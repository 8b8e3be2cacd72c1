"""Shared fixtures: a controllable clock and engines rooted in tmp_path."""

import numpy as np
import pytest

from hypermem import LearningConfig, LearningEngine

# Multiple of 210 days (so of a day, a week and a 30-day month) plus one hour.
FIXED_NOW = 1_705_536_000_000 + 3_600_000


class FixedClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = FIXED_NOW):
        self.now = now

    def advance(self, ms: int) -> None:
        self.now += ms

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def rng():
    return np.random.RandomState(42)


@pytest.fixture
def make_engine(tmp_path, clock):
    """Factory for engines sharing one storage directory and clock."""
    def _make(**overrides):
        overrides.setdefault("storage_path", str(tmp_path / "store"))
        config = LearningConfig(**overrides)
        engine = LearningEngine(config, clock=clock, random_state=np.random.RandomState(7))
        engine.initialize()
        return engine
    return _make
