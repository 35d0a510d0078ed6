"""
In-memory collaborators for tests and single-instance deployments.

InMemoryMasteryStore keeps records in their stored (JSON) shape so reads
go through the same legacy-upgrading codec as the SQL store.
"""

from __future__ import annotations

import copy
from typing import Any

from atomic_mastery.core.state import (
    LessonStructure,
    MasteryRecord,
    MasteryStatus,
    decode_elements,
    encode_elements,
    parse_timestamp,
)
from atomic_mastery.engine.errors import RecordConflict
from atomic_mastery.verifier.base import QuestionRecord


class InMemoryStructureProvider:
    def __init__(self, structures: list[LessonStructure] | None = None):
        self._structures = {s.lesson_id: s for s in structures or []}

    def add(self, structure: LessonStructure) -> None:
        self._structures[structure.lesson_id] = structure

    async def get_structure(self, lesson_id: str) -> LessonStructure | None:
        return self._structures.get(lesson_id)


class InMemoryMasteryStore:
    """Compare-and-swap store keyed by (user_id, lesson_id)."""

    def __init__(self):
        self._rows: dict[tuple[str, str], dict[str, Any]] = {}
        self.writes = 0

    def seed(self, user_id: str, lesson_id: str, elements_scores: dict[str, Any], **columns: Any) -> None:
        """Insert a raw stored row (legacy element shapes allowed)."""
        self._rows[(user_id, lesson_id)] = {
            "elements_scores": copy.deepcopy(elements_scores),
            "global_mastery": columns.get("global_mastery", 0),
            "status": columns.get("status", MasteryStatus.NOT_STARTED.value),
            "last_updated": columns.get("last_updated"),
            "version": columns.get("version", 1),
        }

    def raw(self, user_id: str, lesson_id: str) -> dict[str, Any] | None:
        row = self._rows.get((user_id, lesson_id))
        return copy.deepcopy(row) if row else None

    async def get(self, user_id: str, lesson_id: str) -> MasteryRecord | None:
        row = self._rows.get((user_id, lesson_id))
        if row is None:
            return None
        return MasteryRecord(
            user_id=user_id,
            lesson_id=lesson_id,
            elements=decode_elements(row["elements_scores"]),
            global_mastery=int(row["global_mastery"] or 0),
            status=MasteryStatus(row["status"] or MasteryStatus.NOT_STARTED.value),
            last_updated=parse_timestamp(row["last_updated"]),
            version=max(1, int(row["version"] or 0)),
        )

    async def upsert(self, record: MasteryRecord, expected_version: int) -> int:
        key = (record.user_id, record.lesson_id)
        current = self._rows.get(key)
        current_version = max(1, int(current["version"] or 0)) if current else 0
        if current_version != expected_version:
            raise RecordConflict(
                f"{key}: expected version {expected_version}, found {current_version}"
            )
        new_version = current_version + 1
        self._rows[key] = {
            "elements_scores": encode_elements(record.elements),
            "global_mastery": record.global_mastery,
            "status": record.status.value,
            "last_updated": record.last_updated.isoformat() if record.last_updated else None,
            "version": new_version,
        }
        self.writes += 1
        return new_version


class InMemoryQuestionBank:
    def __init__(self, questions: list[QuestionRecord] | None = None):
        self._questions = {q.id: q for q in questions or []}

    def add(self, question: QuestionRecord) -> None:
        self._questions[question.id] = question

    async def get_questions(self, ids: list[str]) -> list[QuestionRecord]:
        return [self._questions[i] for i in ids if i in self._questions]
