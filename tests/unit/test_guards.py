"""
Unit tests for the anti-gaming guards (damping and prerequisite gating).
"""

import pytest

from atomic_mastery.core.guards import GuardParams, apply_guards, damp, gate


@pytest.fixture
def params():
    return GuardParams()


class TestDamping:
    def test_large_jump_is_limited(self, params):
        assert damp(90, 0, None, params) == 60

    def test_jump_of_exactly_max_delta_passes(self, params):
        assert damp(80, 20, None, params) == 80

    def test_bypass_reason_skips_damping(self, params):
        assert damp(100, 0, "quiz_perfect", params) == 100

    def test_other_reasons_are_damped(self, params):
        assert damp(100, 0, "quiz", params) == 60

    def test_decrease_is_untouched(self, params):
        assert damp(10, 90, None, params) == 10

    def test_result_never_exceeds_100(self):
        wide = GuardParams(damping_max_delta=80)

        assert damp(100, 30, None, wide) == 100


class TestGating:
    def test_no_predecessor_no_gate(self, params):
        assert gate(100, None, params) == 100

    def test_weak_predecessor_caps_score(self, params):
        assert gate(90, 29, params) == 50

    def test_predecessor_at_minimum_lifts_gate(self, params):
        assert gate(90, 30, params) == 90

    def test_score_under_cap_passes(self, params):
        assert gate(40, 0, params) == 40


class TestApplyGuards:
    def test_damping_then_gating(self, params):
        decision = apply_guards(90, 0, 0, None, params)

        assert decision.requested == 90
        assert decision.score == 50
        assert decision.damped is True
        assert decision.gated is True
        assert decision.clamped

    def test_bypass_still_gated(self, params):
        decision = apply_guards(100, 0, 10, "quiz_perfect", params)

        assert decision.score == 50
        assert decision.damped is False
        assert decision.gated is True

    def test_nothing_fires(self, params):
        decision = apply_guards(70, 40, 80, None, params)

        assert decision.score == 70
        assert not decision.clamped

    def test_idempotent(self, params):
        once = apply_guards(95, 10, 5, None, params).score
        twice = apply_guards(once, 10, 5, None, params).score

        assert once == twice

    def test_defaults_match_settings(self, settings):
        assert GuardParams.from_settings(settings) == GuardParams()

    def test_gated_element_never_stored_above_cap(self, params):
        for old in range(0, 51, 10):
            for requested in range(0, 101, 7):
                for reason in (None, "quiz_perfect"):
                    decision = apply_guards(requested, old, 29, reason, params)
                    assert decision.score <= 50
                    if reason is None:
                        assert decision.score - old <= 60
