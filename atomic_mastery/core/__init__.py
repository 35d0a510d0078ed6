"""
Core Module - Pure mastery logic.

Components:
- state: Canonical state types and the storage codec
- transition: FSRS-style element state machine (MasteryScheduler)
- guards: Damping and prerequisite gating clamps
- aggregation: Weighted lesson mastery and status

Nothing in this package performs I/O or raises on valid-typed input.
"""

from atomic_mastery.core.aggregation import aggregate, compute_global_mastery, derive_status, round_half_up
from atomic_mastery.core.guards import GuardDecision, GuardParams, apply_guards
from atomic_mastery.core.state import (
    Element,
    ElementState,
    LessonStructure,
    MasteryRecord,
    MasteryStatus,
    decode_element_state,
    decode_elements,
    encode_elements,
)
from atomic_mastery.core.transition import MasteryScheduler, TransitionParams, derive_rating

__all__ = [
    # State
    "Element",
    "ElementState",
    "LessonStructure",
    "MasteryRecord",
    "MasteryStatus",
    "decode_element_state",
    "decode_elements",
    "encode_elements",
    # Transition
    "MasteryScheduler",
    "TransitionParams",
    "derive_rating",
    # Guards
    "GuardDecision",
    "GuardParams",
    "apply_guards",
    # Aggregation
    "aggregate",
    "compute_global_mastery",
    "derive_status",
    "round_half_up",
]
