"""
Keyword taxonomy shared by the embedder, the progress tracker and consolidation.

Three views of the same keyword families:

- ``category_score``: numeric family id (0-4) fed into the semantic features
- ``categorize_domain``: progress-tracking domain for a concept
- ``consolidation_group``: consolidation bucket for a concept
"""

from typing import Dict, List, Tuple

# First matching keyword (in this order) decides the score.
KEYWORD_CATEGORIES: Dict[str, int] = {
    "neural": 1, "network": 1, "learning": 1, "training": 1,
    "hyperbolic": 2, "geometric": 2, "distance": 2, "embedding": 2,
    "wordnet": 3, "semantic": 3, "concept": 3, "hierarchy": 3,
    "graph": 4, "node": 4, "edge": 4, "structure": 4,
}
NUM_CATEGORIES = 4

DOMAIN_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (("neural", "network"), "neural_networks"),
    (("hyperbolic", "geometric"), "geometry"),
    (("wordnet", "semantic"), "semantics"),
    (("graph", "hierarchy"), "structures"),
    (("learning", "training"), "learning"),
]
DEFAULT_DOMAIN = "general"

GROUP_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (("neural", "network"), "neural_networks"),
    (("hyperbolic", "geometric"), "hyperbolic_geometry"),
    (("wordnet", "semantic"), "semantic_processing"),
    (("graph", "hierarchy"), "graph_structures"),
]
DEFAULT_GROUP = "general_concepts"

CONSOLIDATION_GROUPS = tuple(group for _, group in GROUP_RULES) + (DEFAULT_GROUP,)


def category_score(concept: str) -> int:
    """Return the keyword family id of ``concept``, or 0 if none matches."""
    lowered = concept.lower()
    for keyword, category in KEYWORD_CATEGORIES.items():
        if keyword in lowered:
            return category
    return 0


def _match(concept: str, rules: List[Tuple[Tuple[str, ...], str]], default: str) -> str:
    lowered = concept.lower()
    for keywords, label in rules:
        if any(keyword in lowered for keyword in keywords):
            return label
    return default


def categorize_domain(concept: str) -> str:
    """Progress-tracking domain of a concept (six domains including "general")."""
    return _match(concept, DOMAIN_RULES, DEFAULT_DOMAIN)


def consolidation_group(concept: str) -> str:
    """Consolidation category of a concept (five groups including "general_concepts")."""
    return _match(concept, GROUP_RULES, DEFAULT_GROUP)
