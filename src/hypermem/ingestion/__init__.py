"""Concept feature extraction and embedding."""

from hypermem.ingestion.features import FeatureEmbedder, now_ms, payload_complexity

__all__ = ["FeatureEmbedder", "now_ms", "payload_complexity"]
