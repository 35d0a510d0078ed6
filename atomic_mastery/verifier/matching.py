"""
Matching handler.

The learner pairs terms with definitions; the answer is a term -> definition
map and must equal the expected map exactly (nested values included,
bools never matching numbers).
"""

from collections.abc import Mapping
from typing import Any

from . import WidgetType, register
from .base import strict_equal


@register(WidgetType.MATCHING)
class MatchingHandler:
    """Handler for matching questions."""

    def validate(self, expected: Any) -> bool:
        return isinstance(expected, Mapping) and len(expected) >= 2

    def check(self, expected: Any, answer: Any) -> bool:
        if not isinstance(expected, Mapping) or not isinstance(answer, Mapping):
            return False
        return strict_equal(dict(expected), dict(answer))
