"""
JSON document storage for memories, snapshots and progress.

One pretty-printed UTF-8 JSON document per entity:

    <root>/memories/<memory_id>.json
    <root>/snapshots/<snapshot_id>.json
    <root>/progress/<domain>.json

Each document has a single owner, so no locking is needed per file. There
is no cross-document atomicity: a crash between two writes can leave one
durable and the other not.
"""

import json
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, NamedTuple, Optional, TypeVar, Union

from hypermem.errors import CorruptDocumentError, PersistenceIOError
from hypermem.memory.records import LearningMemory, LearningProgress, UnderstandingSnapshot

logger = logging.getLogger(__name__)

MEMORIES_DIR = "memories"
SNAPSHOTS_DIR = "snapshots"
PROGRESS_DIR = "progress"

T = TypeVar("T")


class LoadedState(NamedTuple):
    """Everything read back by :meth:`JsonDocumentStore.initialize`."""
    memories: List[LearningMemory]
    snapshots: List[UnderstandingSnapshot]
    progress: List[LearningProgress]


@contextmanager
def _io_errors(action: str, path: Path) -> Iterator[None]:
    """Re-raise OSError as PersistenceIOError with the failing path."""
    try:
        yield
    except OSError as e:
        raise PersistenceIOError(f"Could not {action} {path}: {e}") from e


def _safe_name(name: str) -> str:
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        raise ValueError(f"Invalid document name: {name!r}")
    return name


class JsonDocumentStore:
    """
    Durable mirror of the engine's in-memory indices.

    Writes are synchronous: once a ``save_*`` call returns, the document is
    on disk. Documents are written to a temporary sibling and renamed into
    place so a reader never sees a partial file.
    """

    def __init__(self, storage_path: Union[str, Path], embedding_dim: Optional[int] = None):
        """
        Initialize the store.

        Args:
            storage_path: Root directory for all documents
            embedding_dim: Expected memory embedding width. Loaded memories of
                any other width are corrupt. None accepts every width.
        """
        self.root = Path(storage_path)
        self.embedding_dim = embedding_dim
        self.memories_dir = self.root / MEMORIES_DIR
        self.snapshots_dir = self.root / SNAPSHOTS_DIR
        self.progress_dir = self.root / PROGRESS_DIR

    def ensure_directories(self) -> None:
        """Create the three document directories if absent (idempotent)."""
        for directory in (self.memories_dir, self.snapshots_dir, self.progress_dir):
            with _io_errors("create directory", directory):
                directory.mkdir(parents=True, exist_ok=True)

    def initialize(self) -> LoadedState:
        """
        Create the directories and load every existing document.

        I/O failures (unreadable or uncreatable directories) are logged and
        yield an empty state. Malformed documents are not skipped.

        Returns:
            LoadedState with memories ordered by creation time

        Raises:
            CorruptDocumentError: If any document cannot be parsed
        """
        try:
            self.ensure_directories()
            memories = self._load_all(self.memories_dir, self._parse_memory)
            snapshots = self._load_all(self.snapshots_dir, UnderstandingSnapshot.from_document)
            progress = self._load_all(self.progress_dir, LearningProgress.from_document)
        except CorruptDocumentError:
            raise
        except PersistenceIOError as e:
            logger.warning("Persistence layer unavailable, starting empty: %s", e)
            return LoadedState([], [], [])

        memories.sort(key=lambda m: (m.created_at, m.id))
        snapshots.sort(key=lambda s: (s.created_at, s.id))
        logger.info(
            "Loaded %d memories, %d snapshots, %d progress records from %s",
            len(memories), len(snapshots), len(progress), self.root
        )
        return LoadedState(memories, snapshots, progress)

    def _load_all(self, directory: Path, parse: Callable[[dict], T]) -> List[T]:
        if not directory.is_dir():
            return []
        with _io_errors("list", directory):
            paths = sorted(p for p in directory.iterdir() if p.suffix == ".json")
        return [self._load_document(path, parse) for path in paths]

    def _parse_memory(self, doc: dict) -> LearningMemory:
        memory = LearningMemory.from_document(doc)
        if self.embedding_dim is not None and memory.embedding.shape != (self.embedding_dim,):
            raise ValueError(
                f"embedding has width {memory.embedding.size}, expected {self.embedding_dim}"
            )
        return memory

    def _load_document(self, path: Path, parse: Callable[[dict], T]) -> T:
        try:
            with _io_errors("read", path):
                content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise CorruptDocumentError(path, f"not valid UTF-8 ({e})") from e
        try:
            return parse(json.loads(content))
        except json.JSONDecodeError as e:
            raise CorruptDocumentError(path, f"invalid JSON ({e})") from e
        except (ValueError, TypeError) as e:
            raise CorruptDocumentError(path, str(e)) from e

    def _write_document(self, path: Path, document: dict) -> None:
        tmp_path = path.with_name(path.name + ".tmp")
        with _io_errors("write", path):
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)

    def memory_path(self, memory_id: str) -> Path:
        return self.memories_dir / f"{_safe_name(memory_id)}.json"

    def snapshot_path(self, snapshot_id: str) -> Path:
        return self.snapshots_dir / f"{_safe_name(snapshot_id)}.json"

    def progress_path(self, domain: str) -> Path:
        return self.progress_dir / f"{_safe_name(domain)}.json"

    def save_memory(self, memory: LearningMemory) -> None:
        """Write one memory document."""
        self._write_document(self.memory_path(memory.id), memory.to_document())

    def delete_memory(self, memory_id: str) -> None:
        """Remove one memory document. A missing document is not an error."""
        path = self.memory_path(memory_id)
        with _io_errors("delete", path):
            path.unlink(missing_ok=True)

    def save_snapshot(self, snapshot: UnderstandingSnapshot) -> None:
        """Write one snapshot document."""
        self._write_document(self.snapshot_path(snapshot.id), snapshot.to_document())

    def save_progress(self, progress: LearningProgress) -> None:
        """Write one domain progress document."""
        self._write_document(self.progress_path(progress.domain), progress.to_document())

    def __repr__(self):
        return f"JsonDocumentStore(root={str(self.root)!r})"
