"""
SQL implementations of the engine's collaborator protocols.

Each repository opens its own transactional scope per call
(async_session_scope by default) and issues text() statements.
SQLAlchemy errors surface as PersistenceFailure.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from contextlib import AbstractAsyncContextManager, contextmanager
from typing import Any

from loguru import logger
from pydantic import ValidationError
from sqlalchemy import bindparam, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from atomic_mastery.core.state import (
    LessonStructure,
    MasteryRecord,
    MasteryStatus,
    decode_elements,
    encode_elements,
    parse_timestamp,
)
from atomic_mastery.db.database import async_session_scope
from atomic_mastery.engine.errors import PersistenceFailure, RecordConflict
from atomic_mastery.verifier.base import QuestionRecord

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _load_json(value: Any) -> Any:
    """JSONB columns arrive decoded from asyncpg; plain drivers hand back text."""
    if isinstance(value, str | bytes):
        return json.loads(value)
    return value


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Database error during {}: {}", operation, e)
        raise PersistenceFailure(f"{operation} failed: {e}") from e


class _SqlRepository:
    def __init__(self, session_factory: SessionFactory | None = None):
        self._session_factory = session_factory or async_session_scope


class SqlLessonStructureProvider(_SqlRepository):
    """Reads lesson element lists from atomic_lesson_structures."""

    async def get_structure(self, lesson_id: str) -> LessonStructure | None:
        query = text(
            """
            SELECT elements
            FROM atomic_lesson_structures
            WHERE lesson_id = :lesson_id
            """
        )
        with _storage_errors("get_structure"):
            async with self._session_factory() as session:
                result = await session.execute(query, {"lesson_id": lesson_id})
                row = result.first()

        if row is None:
            return None
        elements = _load_json(row[0]) or []
        if not elements:
            return None
        try:
            return LessonStructure(lesson_id=lesson_id, elements=elements)
        except ValidationError as e:
            logger.error("Invalid atomic structure for lesson {}: {}", lesson_id, e)
            return None


class SqlMasteryStore(_SqlRepository):
    """
    Mastery records in atomic_user_mastery.

    upsert is a compare-and-swap on the version column:
    - expected 0: INSERT ... ON CONFLICT DO NOTHING
    - otherwise:  UPDATE ... WHERE version = :expected
    No affected row means another writer won the race. Existing rows
    written before the version column (0 or NULL) read and match as version 1.
    """

    async def get(self, user_id: str, lesson_id: str) -> MasteryRecord | None:
        query = text(
            """
            SELECT elements_scores, global_mastery, status, last_updated, version
            FROM atomic_user_mastery
            WHERE user_id = :user_id AND lesson_id = :lesson_id
            """
        )
        with _storage_errors("get mastery"):
            async with self._session_factory() as session:
                result = await session.execute(query, {"user_id": user_id, "lesson_id": lesson_id})
                row = result.first()

        if row is None:
            return None
        elements_scores, global_mastery, status, last_updated, version = row
        return MasteryRecord(
            user_id=user_id,
            lesson_id=lesson_id,
            elements=decode_elements(_load_json(elements_scores)),
            global_mastery=int(global_mastery or 0),
            status=MasteryStatus(status or MasteryStatus.NOT_STARTED.value),
            last_updated=parse_timestamp(last_updated),
            version=max(1, int(version or 0)),
        )

    async def upsert(self, record: MasteryRecord, expected_version: int) -> int:
        params = {
            "user_id": record.user_id,
            "lesson_id": record.lesson_id,
            "elements_scores": encode_elements(record.elements),
            "global_mastery": record.global_mastery,
            "status": record.status.value,
            "last_updated": record.last_updated,
            "expected": expected_version,
            "new_version": expected_version + 1,
        }

        if expected_version == 0:
            query = text(
                """
                INSERT INTO atomic_user_mastery
                    (user_id, lesson_id, elements_scores, global_mastery, status, last_updated, version)
                VALUES
                    (:user_id, :lesson_id, :elements_scores, :global_mastery, :status, :last_updated, :new_version)
                ON CONFLICT (user_id, lesson_id) DO NOTHING
                """
            )
        else:
            query = text(
                """
                UPDATE atomic_user_mastery
                SET elements_scores = :elements_scores,
                    global_mastery = :global_mastery,
                    status = :status,
                    last_updated = :last_updated,
                    version = :new_version
                WHERE user_id = :user_id
                  AND lesson_id = :lesson_id
                  AND COALESCE(NULLIF(version, 0), 1) = :expected
                """
            )
        query = query.bindparams(bindparam("elements_scores", type_=JSONB))

        with _storage_errors("upsert mastery"):
            async with self._session_factory() as session:
                result = await session.execute(query, params)
                affected = result.rowcount

        if affected != 1:
            raise RecordConflict(
                f"{record.user_id}/{record.lesson_id}: version {expected_version} is stale"
            )
        return expected_version + 1


class SqlQuestionBank(_SqlRepository):
    """Question bank rows; content["correctAnswer"] is the answer spec."""

    async def get_questions(self, ids: list[str]) -> list[QuestionRecord]:
        if not ids:
            return []
        query = text(
            """
            SELECT id, atom_id, widget_type, content
            FROM question_bank
            WHERE id IN :ids
            """
        ).bindparams(bindparam("ids", expanding=True))

        with _storage_errors("get_questions"):
            async with self._session_factory() as session:
                result = await session.execute(query, {"ids": list(ids)})
                rows = result.fetchall()

        questions = []
        for question_id, atom_id, widget_type, content in rows:
            content = _load_json(content) or {}
            questions.append(
                QuestionRecord(
                    id=str(question_id),
                    atom_id=str(atom_id) if atom_id is not None else None,
                    widget_type=widget_type,
                    correct_answer_spec=content.get("correctAnswer"),
                )
            )
        return questions


class SqlCoinWallet(_SqlRepository):
    """Coin ledger over coin_transactions; balance is the sum of amounts."""

    async def has_reward(self, user_id: str, lesson_id: str, reason: str) -> bool:
        query = text(
            """
            SELECT EXISTS (
                SELECT 1
                FROM coin_transactions
                WHERE user_id = :user_id
                  AND reason = :reason
                  AND meta ->> 'lesson_id' = :lesson_id
            )
            """
        )
        with _storage_errors("has_reward"):
            async with self._session_factory() as session:
                result = await session.execute(
                    query, {"user_id": user_id, "reason": reason, "lesson_id": lesson_id}
                )
                return bool(result.scalar_one())

    async def credit(self, user_id: str, amount: int, reason: str, meta: dict[str, Any]) -> int:
        insert = text(
            """
            INSERT INTO coin_transactions (user_id, amount, reason, meta)
            VALUES (:user_id, :amount, :reason, :meta)
            """
        ).bindparams(bindparam("meta", type_=JSONB))
        balance = text(
            """
            SELECT COALESCE(SUM(amount), 0)
            FROM coin_transactions
            WHERE user_id = :user_id
            """
        )

        with _storage_errors("credit coins"):
            async with self._session_factory() as session:
                await session.execute(
                    insert, {"user_id": user_id, "amount": amount, "reason": reason, "meta": meta}
                )
                result = await session.execute(balance, {"user_id": user_id})
                return int(result.scalar_one() or 0)
