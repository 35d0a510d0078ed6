"""
Single-choice handler.

MCQ, TRUE_FALSE and YES_NO all carry one expected value; the learner
answer is correct when both render to the same trimmed string.
"""

from typing import Any

from . import WidgetType, register


def as_choice_text(value: Any) -> str | None:
    """Render a scalar answer as comparable text. Containers are not choices."""
    if value is None or isinstance(value, list | tuple | dict | set):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


@register(WidgetType.MCQ, WidgetType.TRUE_FALSE, WidgetType.YES_NO)
class SingleChoiceHandler:
    """Handler for single-value questions."""

    def validate(self, expected: Any) -> bool:
        return bool(as_choice_text(expected))

    def check(self, expected: Any, answer: Any) -> bool:
        want = as_choice_text(expected)
        got = as_choice_text(answer)
        if want is None or got is None:
            return False
        return want == got
