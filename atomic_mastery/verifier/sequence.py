"""
Sequence handlers.

ORDERING: the learner arranges items; the whole sequence must match.
FILL_BLANKS: one answer per blank, blank order matters, no normalization.
Both compare strictly: True is not accepted for 1.
"""

from typing import Any

from . import WidgetType, register
from .base import strict_equal


def _as_sequence(value: Any) -> list | None:
    if isinstance(value, list | tuple):
        return list(value)
    return None


@register(WidgetType.ORDERING)
class OrderingHandler:
    """Handler for ordering questions."""

    def validate(self, expected: Any) -> bool:
        seq = _as_sequence(expected)
        return bool(seq and len(seq) >= 2)

    def check(self, expected: Any, answer: Any) -> bool:
        want = _as_sequence(expected)
        got = _as_sequence(answer)
        return want is not None and got is not None and strict_equal(want, got)


@register(WidgetType.FILL_BLANKS)
class FillBlanksHandler:
    """Handler for fill-in-the-blanks questions."""

    def validate(self, expected: Any) -> bool:
        return bool(_as_sequence(expected))

    def check(self, expected: Any, answer: Any) -> bool:
        want = _as_sequence(expected)
        got = _as_sequence(answer)
        if want is None or got is None or len(want) != len(got):
            return False
        return all(strict_equal(w, g) for w, g in zip(want, got))
