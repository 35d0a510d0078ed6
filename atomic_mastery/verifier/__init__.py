"""
Answer verifier handlers.

Each widget type (MCQ, ordering, matching, etc.) has a handler with:
- validate(): Check that a correct-answer spec is usable for this type
- check(): Compare a learner answer with the correct-answer spec

check_answer() is the single entry point; it is deterministic and never raises.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from .base import AnswerChecker, QuestionRecord


class WidgetType(str, Enum):
    """Supported question widget types."""
    MCQ = "MCQ"
    TRUE_FALSE = "TRUE_FALSE"
    YES_NO = "YES_NO"
    MCM = "MCM"
    ORDERING = "ORDERING"
    MATCHING = "MATCHING"
    FILL_BLANKS = "FILL_BLANKS"


# Handler registry - populated by @register decorator
HANDLERS: dict[WidgetType, "AnswerChecker"] = {}


def register(*widget_types: WidgetType):
    """Decorator to register a handler for one or more widget types."""
    def decorator(cls):
        instance = cls()
        for widget_type in widget_types:
            HANDLERS[widget_type] = instance
        return cls
    return decorator


def get_handler(widget_type: str | WidgetType | None) -> "AnswerChecker | None":
    """Get the handler for a widget type."""
    if widget_type is None:
        return None
    if isinstance(widget_type, str) and not isinstance(widget_type, WidgetType):
        try:
            widget_type = WidgetType(widget_type.strip().upper())
        except ValueError:
            return None
    return HANDLERS.get(widget_type)


def check_answer(question: "QuestionRecord", answer: Any, widget_type: str | None = None) -> bool:
    """
    Check a learner answer against a question.

    Args:
        question: Question record carrying the correct-answer spec
        answer: Raw learner answer
        widget_type: Fallback type when the question record has none

    Returns:
        True only for a correct answer; unknown types and malformed
        answers are simply incorrect.
    """
    handler = get_handler(question.widget_type or widget_type)
    if handler is None:
        logger.debug("No handler for widget type {} (question {})", question.widget_type or widget_type, question.id)
        return False
    try:
        return bool(handler.check(question.correct_answer_spec, answer))
    except (TypeError, ValueError, AttributeError) as e:
        logger.debug("Malformed answer for question {}: {}", question.id, e)
        return False


def is_gradable(question: "QuestionRecord", widget_type: str | None = None) -> bool:
    """Check that a question has a known type and a usable correct-answer spec."""
    handler = get_handler(question.widget_type or widget_type)
    return handler is not None and handler.validate(question.correct_answer_spec)


# Import handlers to trigger registration
from . import choice
from . import multi_select
from . import sequence
from . import matching

__all__ = [
    "WidgetType",
    "HANDLERS",
    "check_answer",
    "get_handler",
    "is_gradable",
    "register",
]
