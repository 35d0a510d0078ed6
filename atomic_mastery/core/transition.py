"""
Element state transition - FSRS-style scheduling.

Turns an observed 0-100 score into a 1-4 rating and advances the
element's stability/difficulty, then schedules the next review.

Based on:
- Ye (FSRS algorithm): stability/difficulty memory model
- Wozniak (SM algorithms): rating-driven interval growth
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from atomic_mastery.config import Settings
from atomic_mastery.core.state import DEFAULT_DIFFICULTY, ElementState, clamp_score


# =============================================================================
# FSRS CONSTANTS
# =============================================================================

# Stability-formula weights. Taken from the FSRS-4 default weight vector
# (w9=0.14, w10=0.94, w11=2.18); overridable through Settings.fsrs_w*.
FSRS_WEIGHTS = {
    "w9": 0.14,   # growth factor: e^w9
    "w10": 0.94,  # saturation: S^-w10
    "w11": 2.18,  # rating factor: e^((1 - rating) * w11) - 1
}

# Initial stability (days) by first-encounter rating
INITIAL_STABILITY = {1: 0.5, 2: 1.0, 3: 3.0, 4: 7.0}

MIN_STABILITY = 0.5
MAX_STABILITY = 365.0
MIN_INTERVAL_DAYS = 0.5
SCHEDULE_FUZZ = 0.05

# Rating mapping for scores
RATING_FAIL = 1
RATING_HARD = 2
RATING_GOOD = 3
RATING_EASY = 4


@dataclass(frozen=True)
class TransitionParams:
    """Numeric configuration of the transition function."""

    w9: float = FSRS_WEIGHTS["w9"]
    w10: float = FSRS_WEIGHTS["w10"]
    w11: float = FSRS_WEIGHTS["w11"]
    max_stability: float = MAX_STABILITY
    fuzz: float = SCHEDULE_FUZZ

    @classmethod
    def from_settings(cls, settings: Settings) -> TransitionParams:
        return cls(
            **settings.get_fsrs_weights(),
            max_stability=settings.fsrs_max_stability,
            fuzz=settings.fsrs_schedule_fuzz,
        )


def derive_rating(score: int) -> int:
    """Convert a 0-100 score to a rating (1=Fail, 2=Hard, 3=Good, 4=Easy)."""
    if score >= 95:
        return RATING_EASY
    if score >= 80:
        return RATING_GOOD
    if score >= 60:
        return RATING_HARD
    return RATING_FAIL


def days_between(earlier: datetime | None, later: datetime) -> float:
    """Non-negative days elapsed between two timestamps (0 if earlier is unknown)."""
    if earlier is None:
        return 0.0

    # Handle timezone awareness
    if earlier.tzinfo is None:
        earlier = earlier.replace(tzinfo=UTC)
    if later.tzinfo is None:
        later = later.replace(tzinfo=UTC)

    return max(0.0, (later - earlier).total_seconds() / 86400.0)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class MasteryScheduler:
    """
    Pure element state machine.

    The only nondeterministic input is the scheduling fuzz, drawn from the
    injected RNG so tests can seed it.
    """

    def __init__(self, params: TransitionParams | None = None, rng: random.Random | None = None):
        self.params = params or TransitionParams()
        self.rng = rng or random.Random()

    def transition(
        self,
        old_state: ElementState | None,
        new_score: float,
        now: datetime | None = None,
    ) -> ElementState:
        """
        Process one observation and return the new element state.

        Args:
            old_state: Stored state (None for an element never seen)
            new_score: Guard-clamped score 0-100
            now: Review timestamp (defaults to UTC now)

        Returns:
            New ElementState with reps incremented and next review scheduled
        """
        now = now or datetime.now(UTC)
        score = clamp_score(new_score)
        rating = derive_rating(score)
        state = old_state or ElementState(reps=0, stability=0.0, difficulty=DEFAULT_DIFFICULTY)

        if state.reps == 0:
            difficulty = self._initial_difficulty(rating)
            stability = self._initial_stability(rating)
        else:
            elapsed = days_between(state.last_review, now)
            # Legacy records carry stability 0
            prior_stability = max(MIN_STABILITY, state.stability)
            difficulty = self._next_difficulty(state.difficulty, rating)
            if rating > RATING_FAIL:
                stability = self._next_recall_stability(difficulty, prior_stability, rating, elapsed)
            else:
                stability = self._next_forget_stability(difficulty, prior_stability)

        return ElementState(
            score=score,
            stability=stability,
            difficulty=difficulty,
            reps=state.reps + 1,
            last_review=now,
            next_review=self._schedule(now, stability),
        )

    def _initial_difficulty(self, rating: int) -> float:
        return _clamp(5 - (rating - 3), 1.0, 10.0)

    def _initial_stability(self, rating: int) -> float:
        return INITIAL_STABILITY[rating]

    def _next_difficulty(self, d: float, rating: int) -> float:
        lapse_penalty = 2.0 if rating == RATING_FAIL else 0.0
        return _clamp(d - 0.8 + 0.004 * (4 - rating) + lapse_penalty, 1.0, 10.0)

    def _next_recall_stability(self, d: float, s: float, rating: int, elapsed_days: float) -> float:
        """Stability after a successful review."""
        p = self.params
        growth = (
            math.exp(p.w9)
            * (11 - d)
            * math.pow(s, -p.w10)
            * (math.exp((1 - rating) * p.w11) - 1)
        )
        overdue_bonus = (elapsed_days / s) * 0.5
        return _clamp(s * (1 + growth + overdue_bonus), MIN_STABILITY, p.max_stability)

    def _next_forget_stability(self, d: float, s: float) -> float:
        """Stability after a failed review."""
        new_s = 0.5 * math.pow(d, -0.5) * math.pow(s, 0.1)
        return _clamp(new_s, MIN_STABILITY, self.params.max_stability)

    def _schedule(self, now: datetime, stability: float) -> datetime:
        fuzz = self.rng.uniform(-self.params.fuzz, self.params.fuzz)
        interval = max(MIN_INTERVAL_DAYS, stability * (1 + fuzz))
        return now + timedelta(days=interval)
