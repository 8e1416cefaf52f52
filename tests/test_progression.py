import pytest

from studysync.core.errors import ValidationError
from studysync.models.domain import DomainSnapshot, ProgressState
from studysync.services import progression
from studysync.services.progression import (
    LEVEL_THRESHOLD,
    add_xp,
    apply_event,
    assignment_xp,
    evaluate_milestones,
    level_of,
    quiz_completion_xp,
    unlock_milestones,
    xp_into_level,
    xp_to_next_level,
)


def test_add_xp_accumulates_and_returns_new_state() -> None:
    state = ProgressState()
    after = add_xp(state, 250)
    assert after.total_xp == 250
    assert state.total_xp == 0


def test_add_xp_rejects_negative_amount() -> None:
    with pytest.raises(ValidationError):
        add_xp(ProgressState(total_xp=10), -1)


@pytest.mark.parametrize("start", [0, 1, 999, 1000, 1999, 12345])
@pytest.mark.parametrize("amount", [0, 1, 500, 1000, 4321])
def test_level_never_decreases(start: int, amount: int) -> None:
    state = ProgressState(total_xp=start)
    assert level_of(add_xp(state, amount).total_xp) >= level_of(state.total_xp)


def test_level_boundaries() -> None:
    assert level_of(0) == 1
    assert level_of(999) == 1
    assert level_of(1000) == 2
    assert level_of(2500) == 3


@pytest.mark.parametrize("total", [0, 1, 999, 1000, 1001, 5999, 123456])
def test_xp_into_level_stays_within_threshold(total: int) -> None:
    assert 0 <= xp_into_level(total) < LEVEL_THRESHOLD
    assert xp_into_level(total) + xp_to_next_level(total) == LEVEL_THRESHOLD


def test_assignment_xp_scales_with_grade() -> None:
    assert assignment_xp(95) == 475
    assert assignment_xp(100) > assignment_xp(0)
    assert assignment_xp(0) == 0
    assert assignment_xp(72.5) == 362


def test_quiz_completion_xp_adds_perfect_bonus() -> None:
    assert quiz_completion_xp(80) == 150
    assert quiz_completion_xp(100) == 250


def test_first_class_milestone_unlocks_once() -> None:
    snap = DomainSnapshot(classes_created=1)
    state = ProgressState(total_xp=100)

    unlocked = evaluate_milestones(snap, state)
    assert [m.id for m in unlocked] == ["first_class"]

    state = unlock_milestones(state, unlocked)
    assert state.total_xp == 300
    assert "first_class" in state.unlocked_milestone_ids

    assert evaluate_milestones(snap, state) == []


def test_evaluate_is_idempotent_without_state_change() -> None:
    snap = DomainSnapshot(classes_created=2, documents_uploaded=5)
    state = ProgressState()
    state, first = apply_event(state, snap)
    assert {m.id for m in first} == {"first_class", "study_bug"}
    _, second = apply_event(state, snap)
    assert second == []


def test_milestone_thresholds() -> None:
    state = ProgressState()
    assert evaluate_milestones(DomainSnapshot(documents_uploaded=4), state) == []
    assert [m.id for m in evaluate_milestones(DomainSnapshot(quizzes_passed=3), state)] == ["quiz_master"]
    assert evaluate_milestones(DomainSnapshot(best_assignment_grade=89.9), state) == []
    assert [m.id for m in evaluate_milestones(DomainSnapshot(best_assignment_grade=90), state)] == ["high_achiever"]


def test_batch_rewards_are_summed_without_cascading() -> None:
    snap = DomainSnapshot(classes_created=1, documents_uploaded=5, quizzes_passed=3, best_assignment_grade=95)
    state, unlocked = apply_event(ProgressState(), snap, xp=10)
    assert len(unlocked) == len(progression.MILESTONES)
    assert state.total_xp == 10 + sum(m.xp_reward for m in progression.MILESTONES)


def test_unlock_skips_already_unlocked() -> None:
    state = ProgressState(total_xp=0, unlocked_milestone_ids=frozenset({"first_class"}))
    after = unlock_milestones(state, [progression.MILESTONES_BY_ID["first_class"]])
    assert after == state


def test_total_xp_is_never_negative() -> None:
    with pytest.raises(Exception):
        ProgressState(total_xp=-5)
