"""
Multiple-correct-answers (MCM) handler.

Order does not matter: the selections are compared as multisets, so
["b", "a"] matches ["a", "b"] but ["a", "a"] does not match ["a"], and
[1] does not match [True].
"""

from typing import Any

from . import WidgetType, register
from .base import same_items


@register(WidgetType.MCM)
class MultiSelectHandler:
    """Handler for multi-select questions."""

    def validate(self, expected: Any) -> bool:
        return isinstance(expected, list | tuple) and len(expected) > 0

    def check(self, expected: Any, answer: Any) -> bool:
        if not isinstance(expected, list | tuple) or not isinstance(answer, list | tuple):
            return False
        return same_items(expected, answer)
