"""
Submission grader.

1. Checks each answer against the question bank.
2. Computes the batch score.
3. Applies one accumulated delta per atom (not one per question).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger
from pydantic import ValidationError

from atomic_mastery.config import Settings
from atomic_mastery.core.aggregation import round_half_up
from atomic_mastery.engine.errors import InvalidInput, MasteryError
from atomic_mastery.engine.interfaces import QuestionBankProvider
from atomic_mastery.engine.orchestrator import MasteryOrchestrator
from atomic_mastery.engine.schemas import AnswerSubmission, GradingResult
from atomic_mastery.verifier import check_answer, is_gradable

QUIZ_REASON = "quiz"


class SubmissionGrader:
    """Grades answer batches and feeds per-atom deltas to the orchestrator."""

    def __init__(
        self,
        questions: QuestionBankProvider,
        orchestrator: MasteryOrchestrator,
        settings: Settings | None = None,
    ):
        self.questions = questions
        self.orchestrator = orchestrator
        self.settings = settings or orchestrator.settings

    async def grade_submission(
        self,
        user_id: str,
        lesson_id: str,
        submissions: Iterable[Mapping[str, Any] | AnswerSubmission],
    ) -> GradingResult:
        """
        Grade a batch of answers and update atom mastery.

        Args:
            user_id: Learner ID
            lesson_id: Lesson the questions belong to
            submissions: [{questionId, widgetType, rawAnswer}, ...]

        Returns:
            GradingResult; atoms whose mastery update failed are listed in
            failed_atoms but do not fail the grading itself.

        Raises:
            InvalidInput: empty or malformed submission batch
        """
        parsed = self._parse(submissions)
        question_ids = list(dict.fromkeys(s.question_id for s in parsed))
        questions = {q.id: q for q in await self.questions.get_questions(question_ids)}

        correct_count = 0
        atom_deltas: dict[str, int] = {}

        for submission in parsed:
            question = questions.get(submission.question_id)
            if question is None:
                logger.debug("Question {} not in bank; skipped", submission.question_id)
                continue
            if not is_gradable(question, submission.widget_type):
                logger.warning("Question {} has no usable answer spec", question.id)

            is_correct = check_answer(question, submission.raw_answer, submission.widget_type)
            if is_correct:
                correct_count += 1

            if question.atom_id:
                delta = (
                    self.settings.grading_correct_delta
                    if is_correct
                    else self.settings.grading_incorrect_delta
                )
                atom_deltas[question.atom_id] = atom_deltas.get(question.atom_id, 0) + delta

        total = len(parsed)
        result = GradingResult(
            correct_count=correct_count,
            total_questions=total,
            percentage=round_half_up(correct_count / total * 100),
            per_atom_deltas=atom_deltas,
        )

        reason = self.settings.mastery_damping_bypass_reason if correct_count == total else QUIZ_REASON
        for atom_id, delta in atom_deltas.items():
            try:
                await self.orchestrator.apply_element_delta(user_id, lesson_id, atom_id, delta, reason)
            except MasteryError as e:
                logger.warning("Atom update {} failed for {}/{}: {}", atom_id, user_id, lesson_id, e)
                result.failed_atoms.append(atom_id)

        logger.info(
            "Graded {}/{}: {}/{} correct ({}%), {} atoms updated",
            user_id,
            lesson_id,
            correct_count,
            total,
            result.percentage,
            len(atom_deltas) - len(result.failed_atoms),
        )
        return result

    def _parse(self, submissions: Iterable[Mapping[str, Any] | AnswerSubmission]) -> list[AnswerSubmission]:
        try:
            parsed = [
                s if isinstance(s, AnswerSubmission) else AnswerSubmission.model_validate(s)
                for s in submissions
            ]
        except ValidationError as e:
            raise InvalidInput(f"Malformed submission: {e}") from e
        if not parsed:
            raise InvalidInput("Empty submission")
        return parsed
