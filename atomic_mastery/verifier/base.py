"""
Base protocol and types for answer handlers.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class QuestionRecord:
    """A question-bank entry, as supplied by the question bank provider."""
    id: str
    atom_id: str | None
    widget_type: str | None
    correct_answer_spec: Any


class AnswerChecker(Protocol):
    """Protocol for widget type handlers."""

    def validate(self, expected: Any) -> bool:
        """Check if a correct-answer spec is usable for this type."""
        ...

    def check(self, expected: Any, answer: Any) -> bool:
        """Compare the learner answer with the correct-answer spec."""
        ...


def strict_equal(expected: Any, answer: Any) -> bool:
    """
    Equality that does not let bools stand in for numbers.

    Lists and tuples compare element-wise, mappings key-by-key, both
    recursively. Everything else falls back to ==.
    """
    if isinstance(expected, Mapping) and isinstance(answer, Mapping):
        return expected.keys() == answer.keys() and all(
            strict_equal(expected[k], answer[k]) for k in expected
        )
    if isinstance(expected, list | tuple) and isinstance(answer, list | tuple):
        return len(expected) == len(answer) and all(
            strict_equal(w, g) for w, g in zip(expected, answer)
        )
    if isinstance(expected, Mapping | list | tuple) or isinstance(answer, Mapping | list | tuple):
        return False
    if isinstance(expected, bool) or isinstance(answer, bool):
        return type(expected) is type(answer) and expected == answer
    return expected == answer


def same_items(expected: list | tuple, answer: list | tuple) -> bool:
    """Multiset comparison under strict_equal; input order is irrelevant."""
    if len(expected) != len(answer):
        return False
    remaining = list(answer)
    for item in expected:
        for i, candidate in enumerate(remaining):
            if strict_equal(item, candidate):
                del remaining[i]
                break
        else:
            return False
    return True
