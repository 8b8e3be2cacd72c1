"""Persistence gateway for the learning-memory engine."""

from hypermem.storage.json_store import JsonDocumentStore, LoadedState

__all__ = ["JsonDocumentStore", "LoadedState"]
