"""
Lesson-level aggregation.

Formula: global = round(Σ(score_i × weight_i) / Σ(weight_i))

Every element of the lesson structure takes part; an element with no
recorded state contributes a score of 0.
"""

from __future__ import annotations

import math

from atomic_mastery.core.state import ElementState, LessonStructure, MasteryStatus

COMPLETION_THRESHOLD = 95


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def compute_global_mastery(structure: LessonStructure, elements: dict[str, ElementState]) -> int:
    total_weight = 0.0
    weighted_sum = 0.0

    for element in structure.elements:
        state = elements.get(element.id)
        score = state.score if state else 0
        weighted_sum += score * element.weight
        total_weight += element.weight

    if total_weight <= 0:
        return 0
    return max(0, min(100, round_half_up(weighted_sum / total_weight)))


def derive_status(
    global_mastery: int,
    structure: LessonStructure,
    elements: dict[str, ElementState],
    previous: MasteryStatus = MasteryStatus.NOT_STARTED,
    completion_threshold: int = COMPLETION_THRESHOLD,
) -> MasteryStatus:
    """Status never regresses once completed."""
    if previous == MasteryStatus.COMPLETED or global_mastery >= completion_threshold:
        return MasteryStatus.COMPLETED

    for element in structure.elements:
        state = elements.get(element.id)
        if state and state.reps > 0:
            return MasteryStatus.STARTED
    return MasteryStatus.NOT_STARTED


def aggregate(
    structure: LessonStructure,
    elements: dict[str, ElementState],
    previous: MasteryStatus = MasteryStatus.NOT_STARTED,
    completion_threshold: int = COMPLETION_THRESHOLD,
) -> tuple[int, MasteryStatus]:
    global_mastery = compute_global_mastery(structure, elements)
    status = derive_status(global_mastery, structure, elements, previous, completion_threshold)
    return global_mastery, status
