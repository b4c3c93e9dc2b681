# communiserver/domain/task_status.py
from __future__ import annotations

from enum import Enum


class TaskStatus(str, Enum):
    PENDING = "pending"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# pending -> ongoing -> completed; cancelled from pending or ongoing.
# completed and cancelled are terminal.
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.ONGOING, TaskStatus.CANCELLED}),
    TaskStatus.ONGOING: frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}

TERMINAL = frozenset(s for s, nxt in ALLOWED_TRANSITIONS.items() if not nxt)


class InvalidTransition(ValueError):
    def __init__(self, current: TaskStatus, target: TaskStatus) -> None:
        self.current = current
        self.target = target
        if current in TERMINAL:
            msg = f"task is {current.value}; no further status changes are allowed"
        else:
            msg = f"cannot move task from {current.value} to {target.value}"
        super().__init__(msg)


def parse_status(value: str | TaskStatus) -> TaskStatus:
    if isinstance(value, TaskStatus):
        return value
    return TaskStatus(str(value).strip().lower())


def can_transition(current: str | TaskStatus, target: str | TaskStatus) -> bool:
    cur = parse_status(current)
    tgt = parse_status(target)
    return tgt in ALLOWED_TRANSITIONS[cur]


def transition(current: str | TaskStatus, target: str | TaskStatus) -> TaskStatus:
    """
    Returns the new status or raises InvalidTransition.

    Re-applying the current status of a non-terminal task is a no-op, so a
    client that retries a PATCH does not get an error.
    """
    cur = parse_status(current)
    tgt = parse_status(target)
    if cur == tgt and cur not in TERMINAL:
        return cur
    if tgt not in ALLOWED_TRANSITIONS[cur]:
        raise InvalidTransition(cur, tgt)
    return tgt
