"""
Collaborator interfaces consumed by the engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from atomic_mastery.core.state import LessonStructure, MasteryRecord
from atomic_mastery.verifier.base import QuestionRecord


@dataclass(frozen=True)
class RewardOutcome:
    """What the reward trigger did for one threshold crossing."""

    reward_granted: bool
    coins_added: int = 0
    reason: str = ""
    new_balance: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "reward_granted": self.reward_granted,
            "coins_added": self.coins_added,
            "reason": self.reason,
            "new_balance": self.new_balance,
        }


class LessonStructureProvider(Protocol):
    async def get_structure(self, lesson_id: str) -> LessonStructure | None:
        """Return the lesson's element list, or None when it has none."""
        ...


class MasteryStore(Protocol):
    async def get(self, user_id: str, lesson_id: str) -> MasteryRecord | None:
        """Read a record, upgrading legacy element shapes."""
        ...

    async def upsert(self, record: MasteryRecord, expected_version: int) -> int:
        """
        Write a record if its stored version still equals expected_version.

        Returns:
            The new version

        Raises:
            RecordConflict: the stored version moved on
            PersistenceFailure: storage unavailable
        """
        ...


class QuestionBankProvider(Protocol):
    async def get_questions(self, ids: list[str]) -> list[QuestionRecord]:
        ...


class RewardTrigger(Protocol):
    async def on_mastery_achieved(self, user_id: str, lesson_id: str, final_score: int) -> RewardOutcome:
        ...


class CoinWallet(Protocol):
    async def has_reward(self, user_id: str, lesson_id: str, reason: str) -> bool:
        ...

    async def credit(self, user_id: str, amount: int, reason: str, meta: dict[str, Any]) -> int:
        """Add coins and return the new balance."""
        ...
