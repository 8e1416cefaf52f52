"""XP, levels and milestones.

Everything here is a pure function of a :class:`ProgressState` value and
returns a new one; the caller owns the live instance.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Iterable, List, Tuple

from studysync.core.errors import ValidationError
from studysync.models.domain import DomainSnapshot, ProgressState

LEVEL_THRESHOLD = 1000

XP_CREATE_CLASS = 100
XP_UPLOAD_DOCUMENT = 50
XP_GENERATE_MATERIAL = 30
XP_COMPLETE_QUIZ = 150
XP_PERFECT_QUIZ_BONUS = 100
ASSIGNMENT_GRADE_MULTIPLIER = 5

QUIZ_PASS_SCORE = 80
HIGH_GRADE = 90


@dataclass(frozen=True)
class Milestone:
    id: str
    title: str
    description: str
    icon: str
    xp_reward: int
    predicate: Callable[[DomainSnapshot, ProgressState], bool]


MILESTONES: Tuple[Milestone, ...] = (
    Milestone(
        "first_class", "The Journey Begins", "Create your first class", "🌱", 200,
        lambda snap, _: snap.classes_created >= 1,
    ),
    Milestone(
        "study_bug", "Study Bug", "Upload 5 documents", "📚", 500,
        lambda snap, _: snap.documents_uploaded >= 5,
    ),
    Milestone(
        "quiz_master", "Quiz Master", f"Complete 3 quizzes scoring {QUIZ_PASS_SCORE}% or more", "👑", 1000,
        lambda snap, _: snap.quizzes_passed >= 3,
    ),
    Milestone(
        "high_achiever", "High Achiever", f"Log an assignment grade of {HIGH_GRADE}% or higher", "🎯", 750,
        lambda snap, _: snap.best_assignment_grade is not None and snap.best_assignment_grade >= HIGH_GRADE,
    ),
)

MILESTONES_BY_ID = {m.id: m for m in MILESTONES}


def add_xp(state: ProgressState, amount: int) -> ProgressState:
    if amount < 0:
        raise ValidationError(f"XP amount must be non-negative, got {amount}")
    if amount == 0:
        return state
    return state.model_copy(update={"total_xp": state.total_xp + amount})


def level_of(total_xp: int) -> int:
    return total_xp // LEVEL_THRESHOLD + 1


def xp_into_level(total_xp: int) -> int:
    return total_xp % LEVEL_THRESHOLD


def xp_to_next_level(total_xp: int) -> int:
    return LEVEL_THRESHOLD - xp_into_level(total_xp)


def assignment_xp(grade: float) -> int:
    """Grade scales XP continuously: 95 -> 475, 0 -> 0."""
    return int(math.floor(grade * ASSIGNMENT_GRADE_MULTIPLIER))


def quiz_completion_xp(score: int) -> int:
    return XP_COMPLETE_QUIZ + (XP_PERFECT_QUIZ_BONUS if score == 100 else 0)


def evaluate_milestones(snapshot: DomainSnapshot, state: ProgressState) -> List[Milestone]:
    """Milestones whose predicate holds now and that are not unlocked yet.

    Predicates see the state as passed in; XP granted by milestones in this
    batch does not feed back into the same evaluation.
    """
    return [
        m for m in MILESTONES
        if m.id not in state.unlocked_milestone_ids and m.predicate(snapshot, state)
    ]


def unlock_milestones(state: ProgressState, milestones: Iterable[Milestone]) -> ProgressState:
    for m in milestones:
        if m.id in state.unlocked_milestone_ids:
            continue
        state = add_xp(state, m.xp_reward)
        state = state.model_copy(update={"unlocked_milestone_ids": state.unlocked_milestone_ids | {m.id}})
    return state


def apply_event(
    state: ProgressState, snapshot: DomainSnapshot, xp: int = 0
) -> Tuple[ProgressState, List[Milestone]]:
    """Award ``xp`` for an action, then unlock whatever milestones now hold."""
    state = add_xp(state, xp)
    unlocked = evaluate_milestones(snapshot, state)
    return unlock_milestones(state, unlocked), unlocked
