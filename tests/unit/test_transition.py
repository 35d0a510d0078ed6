"""
Unit tests for the element state transition.

Tests:
- Score to rating mapping
- First-encounter initialisation
- Recall / forget stability updates
- Scheduling bounds and RNG reproducibility
"""

import random
from datetime import timedelta

import pytest

from atomic_mastery.core.state import ElementState
from atomic_mastery.core.transition import (
    MAX_STABILITY,
    MIN_STABILITY,
    MasteryScheduler,
    TransitionParams,
    days_between,
    derive_rating,
)


@pytest.fixture
def scheduler(rng):
    return MasteryScheduler(rng=rng)


class TestRating:
    @pytest.mark.parametrize(
        "score,rating",
        [(100, 4), (95, 4), (94, 3), (80, 3), (79, 2), (60, 2), (59, 1), (0, 1)],
    )
    def test_thresholds(self, score, rating):
        assert derive_rating(score) == rating


class TestFirstEncounter:
    @pytest.mark.parametrize(
        "score,stability,difficulty",
        [(30, 0.5, 7.0), (70, 1.0, 6.0), (90, 3.0, 5.0), (100, 7.0, 4.0)],
    )
    def test_initial_state_by_rating(self, scheduler, fixed_now, score, stability, difficulty):
        state = scheduler.transition(None, score, fixed_now)

        assert state.score == score
        assert state.stability == stability
        assert state.difficulty == difficulty
        assert state.reps == 1
        assert state.last_review == fixed_now

    def test_reps_zero_record_counts_as_first_encounter(self, scheduler, fixed_now):
        state = scheduler.transition(ElementState(score=20, stability=12.0, difficulty=9.0), 95, fixed_now)

        assert state.stability == 7.0
        assert state.difficulty == 4.0


class TestSubsequentEncounter:
    def test_recall_stability_with_elapsed_time(self, scheduler, fixed_now):
        old = ElementState(
            score=90,
            stability=3.0,
            difficulty=5.0,
            reps=1,
            last_review=fixed_now - timedelta(days=30),
        )

        state = scheduler.transition(old, 100, fixed_now)

        # d' = 5 - 0.8 = 4.2; growth term ~ -2.781; overdue bonus = 30/3 * 0.5
        assert state.difficulty == pytest.approx(4.2)
        assert state.stability == pytest.approx(9.657, abs=0.01)
        assert state.reps == 2

    def test_failed_review_raises_difficulty_and_floors_stability(self, scheduler, fixed_now):
        old = ElementState(score=90, stability=3.0, difficulty=5.0, reps=3, last_review=fixed_now)

        state = scheduler.transition(old, 30, fixed_now)

        assert state.difficulty == pytest.approx(6.212)
        assert state.stability == MIN_STABILITY
        assert state.reps == 4

    def test_difficulty_is_clamped(self, scheduler, fixed_now):
        hard = ElementState(score=10, stability=1.0, difficulty=9.9, reps=5, last_review=fixed_now)
        easy = ElementState(score=100, stability=1.0, difficulty=1.2, reps=5, last_review=fixed_now)

        assert scheduler.transition(hard, 0, fixed_now).difficulty == 10.0
        assert scheduler.transition(easy, 100, fixed_now).difficulty == 1.0

    def test_stability_capped_at_max(self, scheduler, fixed_now):
        old = ElementState(
            score=100,
            stability=300.0,
            difficulty=1.0,
            reps=10,
            last_review=fixed_now - timedelta(days=3650),
        )

        state = scheduler.transition(old, 100, fixed_now)

        assert state.stability == MAX_STABILITY

    def test_legacy_zero_stability_is_usable(self, scheduler, fixed_now):
        # v0 records upgrade to reps=1, stability=0
        old = ElementState(score=40, stability=0.0, difficulty=5.0, reps=1)

        state = scheduler.transition(old, 85, fixed_now)

        assert MIN_STABILITY <= state.stability <= MAX_STABILITY
        assert state.reps == 2

    def test_custom_weights_are_used(self, fixed_now):
        old = ElementState(
            score=90, stability=3.0, difficulty=5.0, reps=1, last_review=fixed_now - timedelta(days=30)
        )
        default = MasteryScheduler(rng=random.Random(1)).transition(old, 100, fixed_now)
        tuned = MasteryScheduler(TransitionParams(w11=0.0), rng=random.Random(1)).transition(old, 100, fixed_now)

        # w11 = 0 cancels the rating term, leaving only the overdue bonus
        assert tuned.stability == pytest.approx(3.0 * (1 + 5.0))
        assert tuned.stability != default.stability


class TestScheduling:
    def test_next_review_within_fuzz(self, scheduler, fixed_now):
        state = scheduler.transition(None, 100, fixed_now)
        interval_days = (state.next_review - fixed_now).total_seconds() / 86400

        assert 7.0 * 0.95 <= interval_days <= 7.0 * 1.05

    def test_short_interval_is_floored(self, fixed_now):
        scheduler = MasteryScheduler(TransitionParams(fuzz=0.0), rng=random.Random(0))
        state = scheduler.transition(None, 10, fixed_now)

        assert state.next_review - fixed_now == timedelta(days=0.5)

    def test_same_seed_same_schedule(self, fixed_now):
        first = MasteryScheduler(rng=random.Random(7)).transition(None, 90, fixed_now)
        second = MasteryScheduler(rng=random.Random(7)).transition(None, 90, fixed_now)

        assert first == second

    def test_bounds_hold_across_inputs(self, fixed_now):
        scheduler = MasteryScheduler(rng=random.Random(3))
        priors = [
            None,
            ElementState(score=50, stability=0.0, difficulty=5.0, reps=1),
            ElementState(score=90, stability=30.0, difficulty=2.0, reps=4, last_review=fixed_now - timedelta(days=2)),
            ElementState(score=10, stability=365.0, difficulty=10.0, reps=9, last_review=fixed_now - timedelta(days=400)),
        ]

        for prior in priors:
            for score in range(0, 101, 5):
                state = scheduler.transition(prior, score, fixed_now)
                assert MIN_STABILITY <= state.stability <= MAX_STABILITY
                assert 1.0 <= state.difficulty <= 10.0
                assert state.next_review > fixed_now


class TestDaysBetween:
    def test_unknown_start_is_zero(self, fixed_now):
        assert days_between(None, fixed_now) == 0.0

    def test_future_start_is_zero(self, fixed_now):
        assert days_between(fixed_now + timedelta(days=1), fixed_now) == 0.0

    def test_naive_timestamps_treated_as_utc(self, fixed_now):
        naive = (fixed_now - timedelta(days=2)).replace(tzinfo=None)

        assert days_between(naive, fixed_now) == pytest.approx(2.0)
