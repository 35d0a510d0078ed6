"""
Mastery Update Orchestrator.

Transactional read-modify-write for one (user, lesson) mastery record:

    structure -> record -> guards -> transition -> aggregate -> upsert -> reward

Concurrency:
- Writers for the same key are serialized by a KeyedLockRegistry
  (single process).
- The upsert is a compare-and-swap on the record version (shared store);
  a lost race is retried from a fresh read with exponential backoff.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from typing import Any, TypeVar

from loguru import logger
from pydantic import ValidationError

from atomic_mastery.config import Settings, get_settings
from atomic_mastery.core.aggregation import aggregate
from atomic_mastery.core.guards import GuardParams, apply_guards
from atomic_mastery.core.state import (
    ElementState,
    LessonStructure,
    MasteryRecord,
    MasteryStatus,
    clamp_score,
)
from atomic_mastery.core.transition import MasteryScheduler, TransitionParams
from atomic_mastery.engine.errors import (
    InvalidInput,
    MasteryError,
    PersistenceFailure,
    RecordConflict,
    StructureMissing,
    TransientFailure,
)
from atomic_mastery.engine.interfaces import (
    LessonStructureProvider,
    MasteryStore,
    RewardOutcome,
    RewardTrigger,
)
from atomic_mastery.engine.locks import KeyedLockRegistry
from atomic_mastery.engine.schemas import (
    ElementPhase,
    ElementProgress,
    LessonProgress,
    MasterySignal,
    MasteryUpdateResult,
    SkipReason,
)

ALL_ELEMENTS = "ALL"

T = TypeVar("T")

# Resolves the requested score from the element's current stored score
ScoreResolver = Callable[[int], int]


def validate_score(value: Any, name: str = "new_score") -> int:
    """Accept a number in [0, 100]; floats are rounded half-up."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidInput(f"{name} must be a number, got {value!r}")
    if not 0 <= value <= 100:
        raise InvalidInput(f"{name} must be within 0-100, got {value}")
    return clamp_score(value)


class MasteryOrchestrator:
    """Single writer of MasteryRecords."""

    def __init__(
        self,
        structures: LessonStructureProvider,
        store: MasteryStore,
        reward_trigger: RewardTrigger | None = None,
        *,
        locks: KeyedLockRegistry | None = None,
        settings: Settings | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.structures = structures
        self.store = store
        self.reward_trigger = reward_trigger
        self.locks = locks or KeyedLockRegistry()
        self.settings = settings or get_settings()
        self.scheduler = MasteryScheduler(TransitionParams.from_settings(self.settings), rng=rng)
        self.guard_params = GuardParams.from_settings(self.settings)
        self.clock = clock or (lambda: datetime.now(UTC))

    # ========================================================================
    # Public operations
    # ========================================================================

    async def apply_element_update(
        self,
        user_id: str,
        lesson_id: str,
        element_id: str,
        new_score: float,
        reason: str | None = None,
    ) -> MasteryUpdateResult:
        """
        Apply an observed score to one element, or to every element with "ALL".

        Args:
            user_id: Learner ID
            lesson_id: Lesson ID
            element_id: Element ID, or "ALL" to assert full-lesson mastery
            new_score: Observed score 0-100
            reason: Update reason ("quiz_perfect" bypasses damping)

        Returns:
            MasteryUpdateResult (tagged no-op when the lesson has no structure)

        Raises:
            InvalidInput: bad score or unknown element; nothing is written
            TransientFailure: version conflicts outlasted the retries
            PersistenceFailure: store unavailable; nothing is written
        """
        score = validate_score(new_score)
        return await self._update(user_id, lesson_id, element_id, lambda _current: score, reason)

    async def apply_element_delta(
        self,
        user_id: str,
        lesson_id: str,
        element_id: str,
        delta: float,
        reason: str | None = None,
    ) -> MasteryUpdateResult:
        """Shift one element's stored score by delta (clamped to 0-100)."""
        if isinstance(delta, bool) or not isinstance(delta, int | float):
            raise InvalidInput(f"delta must be a number, got {delta!r}")
        if element_id == ALL_ELEMENTS:
            raise InvalidInput("delta updates need a single element id")
        return await self._update(
            user_id, lesson_id, element_id, lambda current: clamp_score(current + delta), reason
        )

    async def apply_signal(
        self,
        user_id: str,
        lesson_id: str,
        payload: Mapping[str, Any] | MasterySignal,
    ) -> MasteryUpdateResult | None:
        """
        Best-effort application of a conversational update signal.

        Failures are logged and reported as None; the calling flow continues.
        """
        try:
            signal = payload if isinstance(payload, MasterySignal) else MasterySignal.model_validate(payload)
        except ValidationError as e:
            logger.warning("Ignoring malformed mastery signal for {}/{}: {}", user_id, lesson_id, e)
            return None

        try:
            return await self.apply_element_update(
                user_id, lesson_id, signal.element_id, signal.new_score, signal.reason
            )
        except MasteryError as e:
            logger.error("Mastery signal failed for {}/{}: {}", user_id, lesson_id, e)
            return None

    async def get_lesson_progress(
        self,
        user_id: str,
        lesson_id: str,
        now: datetime | None = None,
    ) -> LessonProgress | None:
        """Read-only progress view; None when the lesson has no structure."""
        structure = await self._io(self.structures.get_structure(lesson_id))
        if structure is None:
            return None
        record = await self._io(self.store.get(user_id, lesson_id)) or MasteryRecord(user_id, lesson_id)
        now = now or self.clock()

        global_mastery, status = aggregate(
            structure, record.elements, record.status, self.settings.mastery_completion_threshold
        )
        progress = LessonProgress(lesson_id=lesson_id, global_mastery=global_mastery, status=status)

        for element in structure.ordered():
            state = record.state_of(element.id)
            score = state.score if state else 0
            next_review = state.next_review if state else None
            progress.elements.append(
                ElementProgress(
                    id=element.id,
                    title=element.title,
                    weight=element.weight,
                    score=score,
                    phase=ElementPhase.from_score(score),
                    next_review=next_review,
                )
            )
            # First element not yet understood
            if progress.next_focus is None and score < 60:
                progress.next_focus = element.id
            if next_review is not None and next_review <= now:
                progress.due_elements.append(element.id)

        return progress

    # ========================================================================
    # Read-modify-write
    # ========================================================================

    async def _update(
        self,
        user_id: str,
        lesson_id: str,
        element_id: str,
        resolve: ScoreResolver,
        reason: str | None,
    ) -> MasteryUpdateResult:
        if not self.settings.atomic_enabled:
            self._trace("Atomic system disabled; skipping update for {}/{}", user_id, lesson_id)
            return MasteryUpdateResult(0, MasteryStatus.NOT_STARTED, element_id, skipped=SkipReason.DISABLED)

        try:
            structure = await self._require_structure(lesson_id)
        except StructureMissing as e:
            self._trace("{}; update skipped", e)
            return MasteryUpdateResult(
                0, MasteryStatus.NOT_STARTED, element_id, skipped=SkipReason.STRUCTURE_MISSING
            )

        if element_id != ALL_ELEMENTS and structure.get(element_id) is None:
            raise InvalidInput(f"Element {element_id!r} is not part of lesson {lesson_id}")

        async with self.locks.hold((user_id, lesson_id)):
            max_retries = self.settings.mastery_max_retries
            for attempt in range(max_retries + 1):
                current = await self._io(self.store.get(user_id, lesson_id))
                current = current or MasteryRecord(user_id=user_id, lesson_id=lesson_id)
                updated, applied_score = self._compute(structure, current, element_id, resolve, reason)

                try:
                    updated.version = await self._io(self.store.upsert(updated, current.version))
                except RecordConflict as e:
                    if attempt >= max_retries:
                        raise TransientFailure(
                            f"Gave up on {user_id}/{lesson_id} after {attempt + 1} conflicting writes"
                        ) from e
                    delay = self.settings.mastery_retry_base_delay * (2**attempt)
                    logger.warning(
                        "Version conflict on {}/{} (attempt {}), retrying in {:.3f}s",
                        user_id,
                        lesson_id,
                        attempt + 1,
                        delay,
                    )
                    await asyncio.sleep(delay)
                    continue

                # Stored global may be stale on legacy rows
                before_global, _ = aggregate(
                    structure, current.elements, current.status, self.settings.mastery_completion_threshold
                )
                logger.debug(
                    "Mastery {}/{} element={} score={} global {} -> {} ({})",
                    user_id,
                    lesson_id,
                    element_id,
                    applied_score,
                    before_global,
                    updated.global_mastery,
                    updated.status.value,
                )
                reward = await self._maybe_reward(before_global, updated)
                return MasteryUpdateResult(
                    global_mastery=updated.global_mastery,
                    status=updated.status,
                    element_id=element_id,
                    applied_score=applied_score,
                    reward=reward,
                )

        # Unreachable: the loop either returns or raises
        raise TransientFailure(f"Update of {user_id}/{lesson_id} did not complete")

    def _compute(
        self,
        structure: LessonStructure,
        current: MasteryRecord,
        element_id: str,
        resolve: ScoreResolver,
        reason: str | None,
    ) -> tuple[MasteryRecord, int]:
        """Pure part of the update: returns the new record and the score applied."""
        now = self.clock()
        updated = current.copy()

        if element_id == ALL_ELEMENTS:
            applied = resolve(0)
            for element in structure.elements:
                state = updated.elements.get(element.id) or ElementState()
                updated.elements[element.id] = state.with_score(applied)
        else:
            element = structure.get(element_id)
            old_state = current.state_of(element_id)
            old_score = old_state.score if old_state else 0
            predecessor = structure.predecessor(element)
            predecessor_score = current.score_of(predecessor.id) if predecessor else None

            decision = apply_guards(resolve(old_score), old_score, predecessor_score, reason, self.guard_params)
            if decision.clamped:
                self._trace(
                    "Guard clamp on {}/{}: requested={} applied={} damped={} gated={}",
                    current.user_id,
                    element_id,
                    decision.requested,
                    decision.score,
                    decision.damped,
                    decision.gated,
                )
            updated.elements[element_id] = self.scheduler.transition(old_state, decision.score, now)
            applied = decision.score

        updated.global_mastery, updated.status = aggregate(
            structure, updated.elements, current.status, self.settings.mastery_completion_threshold
        )
        updated.last_updated = now
        return updated, applied

    async def _maybe_reward(self, before_global: int, after: MasteryRecord) -> RewardOutcome | None:
        """Fire the reward trigger on an upward crossing of the completion threshold only."""
        threshold = self.settings.mastery_completion_threshold
        if self.reward_trigger is None:
            return None
        if not (after.global_mastery >= threshold > before_global):
            return None

        logger.info(
            "Lesson {} mastered by {} ({}%)", after.lesson_id, after.user_id, after.global_mastery
        )
        try:
            return await self.reward_trigger.on_mastery_achieved(
                after.user_id, after.lesson_id, after.global_mastery
            )
        except Exception:  # Intentionally broad - the mastery update is already committed
            logger.exception("Reward trigger failed for {}/{}", after.user_id, after.lesson_id)
            return None

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _require_structure(self, lesson_id: str) -> LessonStructure:
        structure = await self._io(self.structures.get_structure(lesson_id))
        if structure is None:
            raise StructureMissing(lesson_id)
        return structure

    async def _io(self, operation: Awaitable[T]) -> T:
        """Await a store/provider call under the persistence timeout."""
        try:
            return await asyncio.wait_for(operation, timeout=self.settings.mastery_persist_timeout_seconds)
        except TimeoutError as e:
            raise PersistenceFailure("Mastery storage timed out") from e

    def _trace(self, message: str, *args: Any) -> None:
        if self.settings.atomic_debug:
            logger.info(message, *args)
        else:
            logger.debug(message, *args)
