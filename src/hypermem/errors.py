"""Exception hierarchy for the learning-memory engine."""


class HypermemError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(HypermemError):
    """Required configuration is missing or invalid."""


class PersistenceIOError(HypermemError):
    """A storage directory or document could not be created, read or written."""


class CorruptDocumentError(PersistenceIOError):
    """A persisted document is not valid JSON or lacks required fields."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed document {path}: {reason}")


class GeometryDomainError(HypermemError, ValueError):
    """Points lie outside the open unit ball, so hyperbolic distance is undefined."""


class DuplicateIdError(HypermemError):
    """A generated memory or snapshot id is already in use."""


class MemoryCapacityError(HypermemError):
    """The memory store has reached its configured capacity."""
