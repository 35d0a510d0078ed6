"""
Anti-gaming guards.

Two clamps run on a requested score before the state transition sees it:

- Damping: a single update may not raise a stored score by more than
  `damping_max_delta` points, unless the update reason is the bypass reason.
- Gating: an element may not go above `gated_cap` while its predecessor
  in the lesson chain is below `prerequisite_min`.

Both are idempotent and never raise.
"""

from __future__ import annotations

from dataclasses import dataclass

from atomic_mastery.config import Settings


@dataclass(frozen=True)
class GuardParams:
    damping_max_delta: int = 60
    damping_bypass_reason: str = "quiz_perfect"
    prerequisite_min: int = 30
    gated_cap: int = 50

    @classmethod
    def from_settings(cls, settings: Settings) -> GuardParams:
        return cls(**settings.get_guard_config())


@dataclass(frozen=True)
class GuardDecision:
    """Outcome of running the guards on one requested score."""

    requested: int
    score: int
    damped: bool = False
    gated: bool = False

    @property
    def clamped(self) -> bool:
        return self.damped or self.gated


def damp(requested: int, old_score: int, reason: str | None, params: GuardParams) -> int:
    if reason == params.damping_bypass_reason:
        return requested
    if requested - old_score > params.damping_max_delta:
        return min(100, old_score + params.damping_max_delta)
    return requested


def gate(requested: int, predecessor_score: int | None, params: GuardParams) -> int:
    """predecessor_score is None when the element has no predecessor."""
    if predecessor_score is None:
        return requested
    if predecessor_score < params.prerequisite_min and requested > params.gated_cap:
        return params.gated_cap
    return requested


def apply_guards(
    requested: int,
    old_score: int,
    predecessor_score: int | None,
    reason: str | None = None,
    params: GuardParams | None = None,
) -> GuardDecision:
    """Damping first, then gating."""
    params = params or GuardParams()
    damped = damp(requested, old_score, reason, params)
    gated = gate(damped, predecessor_score, params)
    return GuardDecision(
        requested=requested,
        score=gated,
        damped=damped != requested,
        gated=gated != damped,
    )
