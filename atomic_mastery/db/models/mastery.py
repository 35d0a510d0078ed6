"""
Atomic Mastery Models.

SQLAlchemy models for the atomic mastery engine:
- Lesson structures (ordered, weighted elements per lesson)
- Per-learner mastery records with an optimistic-concurrency version
- Question bank entries linked to atoms
- Coin transaction ledger used by the completion reward
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Integer, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class AtomicLessonStructure(Base):
    """
    Element list of a lesson.

    elements is a JSON array of {id, title, weight, order}.
    """

    __tablename__ = "atomic_lesson_structures"

    lesson_id: Mapped[str] = mapped_column(Text, primary_key=True)
    elements: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<AtomicLessonStructure {self.lesson_id}: {len(self.elements or [])} elements>"


class AtomicUserMastery(Base):
    """
    Mastery record per learner per lesson.

    elements_scores maps element id to its state. Older rows may hold bare
    numbers or {score, last_updated} objects; readers upgrade them.
    """

    __tablename__ = "atomic_user_mastery"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    lesson_id: Mapped[str] = mapped_column(Text, nullable=False)
    elements_scores: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    global_mastery: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="not_started")
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (UniqueConstraint("user_id", "lesson_id", name="uq_atomic_user_mastery_user_lesson"),)

    def __repr__(self) -> str:
        return f"<AtomicUserMastery {self.user_id}/{self.lesson_id}: {self.global_mastery}% v{self.version}>"


class QuestionBankItem(Base):
    """
    Question linked to an atom.

    content holds the widget payload; content["correctAnswer"] is the
    correct-answer spec used for grading.
    """

    __tablename__ = "question_bank"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    lesson_id: Mapped[str | None] = mapped_column(Text, index=True)
    atom_id: Mapped[str | None] = mapped_column(Text, index=True)
    widget_type: Mapped[str | None] = mapped_column(Text)
    content: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)


class CoinTransaction(Base):
    """Append-only coin ledger; a user's balance is the sum of amounts."""

    __tablename__ = "coin_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
