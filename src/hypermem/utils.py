"""
Utility helpers shared by the embedder and the document adapters.
"""

from collections.abc import Mapping
from typing import Any

import numpy as np


def json_safe(value: Any) -> Any:
    """
    Convert an arbitrary value into plain JSON-compatible data.

    Mapping keys become strings, sequences and sets become lists, numpy
    arrays and scalars become Python numbers. Anything else JSON cannot
    encode is replaced by ``str(value)``.

    Args:
        value: Any payload or context value

    Returns:
        Value built only from dict, list, str, int, float, bool and None
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Mapping):
        return {str(key): json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [json_safe(item) for item in value]
    if isinstance(value, np.ndarray):
        return json_safe(value.tolist())
    if isinstance(value, np.generic):
        return value.item()
    return str(value)
