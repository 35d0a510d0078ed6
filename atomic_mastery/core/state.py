"""
Canonical mastery state.

Design:
- Element / LessonStructure: the read-only atomic decomposition of a lesson
- ElementState: spaced-repetition state of one element for one learner
- MasteryRecord: every element state of one learner in one lesson
- encode_elements / decode_elements: the storage codec

Stored element maps have gone through three shapes:

    v0  bare number                      42
    v1  grader object                    {"score": 42, "last_updated": "..."}
    v2  canonical state                  {"score": 42, "stability": 3.0, ...}

Only v2 is ever written. v0/v1 are upgraded when read.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_DIFFICULTY = 5.0


class MasteryStatus(str, Enum):
    """Lesson-level progress status."""

    NOT_STARTED = "not_started"
    STARTED = "started"
    COMPLETED = "completed"


class Element(BaseModel):
    """One atom of a lesson."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    weight: float = Field(default=1.0, ge=0)
    order: int = Field(ge=1)

    @field_validator("weight", mode="before")
    @classmethod
    def _default_weight(cls, value: Any) -> Any:
        return 1.0 if value is None else value


class LessonStructure(BaseModel):
    """Ordered element list of a lesson. Orders form a linear prerequisite chain."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    lesson_id: str = Field(alias="lessonId")
    elements: list[Element] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique(self) -> LessonStructure:
        ids = [e.id for e in self.elements]
        if len(ids) != len(set(ids)):
            raise ValueError("element ids must be unique within a lesson")
        orders = [e.order for e in self.elements]
        if len(orders) != len(set(orders)):
            raise ValueError("element orders must be unique within a lesson")
        return self

    def get(self, element_id: str) -> Element | None:
        for element in self.elements:
            if element.id == element_id:
                return element
        return None

    def ordered(self) -> list[Element]:
        return sorted(self.elements, key=lambda e: e.order)

    def predecessor(self, element: Element) -> Element | None:
        """Element whose order is directly before this one, if any."""
        if element.order <= 1:
            return None
        for candidate in self.elements:
            if candidate.order == element.order - 1:
                return candidate
        return None


@dataclass(frozen=True)
class ElementState:
    """Spaced-repetition state of a single element."""

    score: int = 0
    stability: float = 0.0  # days
    difficulty: float = DEFAULT_DIFFICULTY  # 1 (easy) to 10 (hard)
    reps: int = 0
    last_review: datetime | None = None
    next_review: datetime | None = None

    def with_score(self, score: int) -> ElementState:
        return replace(self, score=score)

    def to_dict(self) -> dict[str, Any]:
        """Canonical (v2) storage shape."""
        return {
            "score": self.score,
            "stability": self.stability,
            "difficulty": self.difficulty,
            "reps": self.reps,
            "lastReview": _format_ts(self.last_review),
            "nextReview": _format_ts(self.next_review),
        }


@dataclass
class MasteryRecord:
    """
    Per-learner, per-lesson mastery record.

    version is the optimistic-concurrency counter; 0 means never persisted.
    """

    user_id: str
    lesson_id: str
    elements: dict[str, ElementState] = field(default_factory=dict)
    global_mastery: int = 0
    status: MasteryStatus = MasteryStatus.NOT_STARTED
    last_updated: datetime | None = None
    version: int = 0

    def state_of(self, element_id: str) -> ElementState | None:
        return self.elements.get(element_id)

    def score_of(self, element_id: str) -> int:
        state = self.elements.get(element_id)
        return state.score if state else 0

    def copy(self) -> MasteryRecord:
        return replace(self, elements=dict(self.elements))

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "lessonId": self.lesson_id,
            "elements": encode_elements(self.elements),
            "globalMastery": self.global_mastery,
            "status": self.status.value,
            "lastUpdated": _format_ts(self.last_updated),
            "version": self.version,
        }


# ============================================================================
# Storage Codec
# ============================================================================


def clamp_score(value: float) -> int:
    """Clamp to an integer score in [0, 100] (half-up rounding)."""
    if not math.isfinite(value):
        return 100 if value == math.inf else 0
    return max(0, min(100, math.floor(value + 0.5)))


def encode_elements(elements: dict[str, ElementState]) -> dict[str, dict[str, Any]]:
    return {element_id: state.to_dict() for element_id, state in elements.items()}


def decode_elements(raw: dict[str, Any] | None) -> dict[str, ElementState]:
    if not raw:
        return {}
    return {str(element_id): decode_element_state(value) for element_id, value in raw.items()}


def decode_element_state(raw: Any) -> ElementState:
    """Upgrade any stored element shape to the canonical ElementState."""
    if isinstance(raw, bool) or raw is None:
        return ElementState()

    # v0: bare number
    if isinstance(raw, int | float):
        return ElementState(score=clamp_score(raw), stability=0.0, difficulty=DEFAULT_DIFFICULTY, reps=1)

    if not isinstance(raw, dict):
        return ElementState()

    score = _as_number(raw.get("score"), 0.0)

    # v1: grader object without scheduling fields
    if "reps" not in raw and "stability" not in raw:
        return ElementState(
            score=clamp_score(score),
            stability=0.0,
            difficulty=DEFAULT_DIFFICULTY,
            reps=1,
            last_review=parse_timestamp(raw.get("lastReview") or raw.get("last_updated")),
        )

    # v2: canonical
    return ElementState(
        score=clamp_score(score),
        stability=max(0.0, _as_number(raw.get("stability"), 0.0)),
        difficulty=min(10.0, max(1.0, _as_number(raw.get("difficulty"), DEFAULT_DIFFICULTY))),
        reps=max(0, int(_as_number(raw.get("reps"), 0))),
        last_review=parse_timestamp(raw.get("lastReview")),
        next_review=parse_timestamp(raw.get("nextReview")),
    )


def _as_number(value: Any, default: float) -> float:
    if isinstance(value, bool) or value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        try:
            ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


def _format_ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
