"""
Boundary payloads and result types.

Inbound payloads (update signals, answer submissions) are validated with
pydantic; results are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from atomic_mastery.core.state import MasteryStatus
from atomic_mastery.engine.interfaces import RewardOutcome


class SkipReason(str, Enum):
    STRUCTURE_MISSING = "structure_missing"
    DISABLED = "disabled"


class ElementPhase(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    MASTERED = "mastered"

    @classmethod
    def from_score(cls, score: int) -> ElementPhase:
        if score >= 80:
            return cls.MASTERED
        elif score > 0:
            return cls.IN_PROGRESS
        return cls.PENDING


# ============================================================================
# Inbound
# ============================================================================


class MasterySignal(BaseModel):
    """Update signal emitted by the conversational flow: {element_id, new_score, reason}."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    element_id: str = Field(validation_alias=AliasChoices("element_id", "elementId"))
    new_score: float = Field(ge=0, le=100, validation_alias=AliasChoices("new_score", "newScore"))
    reason: str | None = None


class AnswerSubmission(BaseModel):
    """One learner answer to a question-bank question."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question_id: str = Field(validation_alias=AliasChoices("question_id", "questionId"))
    widget_type: str | None = Field(default=None, validation_alias=AliasChoices("widget_type", "widgetType"))
    raw_answer: Any = Field(default=None, validation_alias=AliasChoices("raw_answer", "rawAnswer", "answer"))


# ============================================================================
# Results
# ============================================================================


@dataclass
class MasteryUpdateResult:
    global_mastery: int
    status: MasteryStatus
    element_id: str
    applied_score: int | None = None
    skipped: SkipReason | None = None
    reward: RewardOutcome | None = None

    @property
    def applied(self) -> bool:
        return self.skipped is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "global_mastery": self.global_mastery,
            "status": self.status.value,
            "element_id": self.element_id,
            "applied_score": self.applied_score,
            "skipped": self.skipped.value if self.skipped else None,
            "reward": self.reward.to_dict() if self.reward else None,
        }


@dataclass
class GradingResult:
    correct_count: int
    total_questions: int
    percentage: int
    per_atom_deltas: dict[str, int] = field(default_factory=dict)
    failed_atoms: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "correct_count": self.correct_count,
            "total_questions": self.total_questions,
            "percentage": self.percentage,
            "per_atom_deltas": dict(self.per_atom_deltas),
            "failed_atoms": list(self.failed_atoms),
        }


@dataclass
class ElementProgress:
    id: str
    title: str
    weight: float
    score: int
    phase: ElementPhase
    next_review: datetime | None = None


@dataclass
class LessonProgress:
    """Read model of one learner's progress through a lesson."""

    lesson_id: str
    global_mastery: int
    status: MasteryStatus
    elements: list[ElementProgress] = field(default_factory=list)
    next_focus: str | None = None
    due_elements: list[str] = field(default_factory=list)
