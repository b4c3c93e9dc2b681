# communiserver/domain/leadership.py
"""
Leadership positions held by a profile.

A profile can lead a cell, a village and an isibo at the same time. The
storage keeps one flag and one location reference per level; every write
goes through assign()/clear() so the pair never drifts, and readers get the
positions as a list of LeadershipAssignment.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .permissions import Role


class LocationLevel(str, Enum):
    CELL = "cell"
    VILLAGE = "village"
    ISIBO = "isibo"


# level -> (profile flag attribute, profile reference attribute, leader role)
_LEVEL_FIELDS: dict[LocationLevel, tuple[str, str, Role]] = {
    LocationLevel.CELL: ("is_cell_leader", "cell_id", Role.CELL_LEADER),
    LocationLevel.VILLAGE: ("is_village_leader", "village_id", Role.VILLAGE_LEADER),
    LocationLevel.ISIBO: ("is_isibo_leader", "isibo_id", Role.ISIBO_LEADER),
}

# most senior first; used to pick the role left after a position is removed
_SENIORITY = (LocationLevel.CELL, LocationLevel.VILLAGE, LocationLevel.ISIBO)


@dataclass(frozen=True)
class LeadershipAssignment:
    level: LocationLevel
    location_id: uuid.UUID
    role: str = "LEADER"

    def as_dict(self) -> dict:
        return {"level": self.level.value, "role": self.role, "location_id": str(self.location_id)}


def leader_role_for(level: LocationLevel) -> Role:
    return _LEVEL_FIELDS[level][2]


def assignments(profile) -> list[LeadershipAssignment]:
    out: list[LeadershipAssignment] = []
    for level in _SENIORITY:
        flag, ref, _ = _LEVEL_FIELDS[level]
        loc = getattr(profile, ref, None)
        if getattr(profile, flag, False) and loc is not None:
            out.append(LeadershipAssignment(level=level, location_id=loc))
    return out


def holds(profile, level: LocationLevel, location_id: uuid.UUID) -> bool:
    return any(a.level == level and a.location_id == location_id for a in assignments(profile))


def assign(profile, level: LocationLevel, location_id: uuid.UUID) -> None:
    flag, ref, _ = _LEVEL_FIELDS[level]
    setattr(profile, flag, True)
    setattr(profile, ref, location_id)


def clear(profile, level: LocationLevel) -> None:
    """Drops the leader flag; the membership reference stays (the person still lives there)."""
    flag, _, _ = _LEVEL_FIELDS[level]
    setattr(profile, flag, False)


def effective_role(profile, current_role: str) -> str:
    """
    Role a user should carry given the positions the profile still holds.
    ADMIN is never downgraded.
    """
    if current_role == Role.ADMIN.value:
        return current_role
    held = {a.level for a in assignments(profile)}
    for level in _SENIORITY:
        if level in held:
            return leader_role_for(level).value
    if current_role == Role.HOUSE_REPRESENTATIVE.value:
        return current_role
    return Role.CITIZEN.value


def level_of(model_name: str) -> Optional[LocationLevel]:
    try:
        return LocationLevel(model_name.lower())
    except ValueError:
        return None
