# tests/test_task_status.py
from __future__ import annotations

import pytest

from communiserver.domain.task_status import InvalidTransition, TaskStatus, can_transition, transition


@pytest.mark.parametrize(
    "current,target",
    [
        ("pending", "ongoing"),
        ("pending", "cancelled"),
        ("ongoing", "completed"),
        ("ongoing", "cancelled"),
    ],
)
def test_allowed_moves(current, target):
    assert can_transition(current, target)
    assert transition(current, target) == TaskStatus(target)


def test_pending_cannot_jump_to_completed():
    with pytest.raises(InvalidTransition) as e:
        transition("pending", "completed")
    assert "pending" in str(e.value)


@pytest.mark.parametrize("terminal", ["completed", "cancelled"])
def test_terminal_states_are_final(terminal):
    for target in TaskStatus:
        with pytest.raises(InvalidTransition):
            transition(terminal, target)


def test_reapplying_current_status_is_a_noop():
    assert transition("ongoing", "ongoing") == TaskStatus.ONGOING


def test_status_parsing_is_case_insensitive():
    assert transition("PENDING", "Ongoing") == TaskStatus.ONGOING
