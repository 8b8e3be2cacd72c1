"""
Hypermem: a hyperbolic learning memory.

Concepts are embedded into the Poincaré ball from hand-crafted semantic,
contextual and temporal features. The engine keeps:
- Memories: one record per learned concept, ranked by hyperbolic distance
- Snapshots: consolidated summaries of related memory groups
- Progress: per-domain learning curves and mastery levels

All state is mirrored to one JSON document per entity on disk.
"""

__version__ = "0.1.0"

from hypermem.config import LearningConfig
from hypermem.engine import LearningEngine

__all__ = ["LearningConfig", "LearningEngine"]
