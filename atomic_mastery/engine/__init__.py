"""
Engine Module - Orchestration around the pure core.

Components:
- orchestrator: MasteryOrchestrator (apply_element_update, apply_element_delta,
  apply_signal, get_lesson_progress)
- grader: SubmissionGrader (grade_submission)
- rewards: LessonCompletionReward
- locks: KeyedLockRegistry
- memory: in-memory store and providers
- errors: MasteryError hierarchy
"""

from atomic_mastery.engine.errors import (
    InvalidInput,
    MasteryError,
    PersistenceFailure,
    RecordConflict,
    StructureMissing,
    TransientFailure,
)
from atomic_mastery.engine.grader import SubmissionGrader
from atomic_mastery.engine.interfaces import RewardOutcome
from atomic_mastery.engine.locks import KeyedLockRegistry
from atomic_mastery.engine.memory import InMemoryMasteryStore, InMemoryQuestionBank, InMemoryStructureProvider
from atomic_mastery.engine.orchestrator import ALL_ELEMENTS, MasteryOrchestrator
from atomic_mastery.engine.rewards import LessonCompletionReward
from atomic_mastery.engine.schemas import (
    AnswerSubmission,
    GradingResult,
    LessonProgress,
    MasterySignal,
    MasteryUpdateResult,
    SkipReason,
)

__all__ = [
    "ALL_ELEMENTS",
    "AnswerSubmission",
    "GradingResult",
    "InMemoryMasteryStore",
    "InMemoryQuestionBank",
    "InMemoryStructureProvider",
    "InvalidInput",
    "KeyedLockRegistry",
    "LessonCompletionReward",
    "LessonProgress",
    "MasteryError",
    "MasteryOrchestrator",
    "MasterySignal",
    "MasteryUpdateResult",
    "PersistenceFailure",
    "RecordConflict",
    "RewardOutcome",
    "SkipReason",
    "StructureMissing",
    "SubmissionGrader",
    "TransientFailure",
]
