# SQLAlchemy models
from .base import Base
from .mastery import AtomicLessonStructure, AtomicUserMastery, CoinTransaction, QuestionBankItem

__all__ = [
    "AtomicLessonStructure",
    "AtomicUserMastery",
    "Base",
    "CoinTransaction",
    "QuestionBankItem",
]
