# communiserver/services/scope.py
"""
The slice of the location tree a principal works in.

Analytics turn a Scope into SQL clauses; write endpoints resolve the target
node's ancestors and ask whether the Scope covers them.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import false, select, true
from sqlalchemy.orm import Session

from ..auth import Principal
from ..domain.permissions import Role
from ..models import Activity, Cell, Isibo, Profile, Report, Task, User, Village, live


@dataclass(frozen=True)
class Scope:
    """
    Location slice a principal may aggregate over and write to.

    level None means unrestricted; a leader role without a location
    reference matches nothing.
    """

    level: Optional[str]
    location_id: Optional[uuid.UUID] = None

    @property
    def unrestricted(self) -> bool:
        return self.level is None

    @property
    def empty(self) -> bool:
        return self.level is not None and self.location_id is None

    def _village_ids(self):
        if self.level == "cell":
            return select(Village.id).where(Village.cell_id == self.location_id)
        if self.level == "village":
            return select(Village.id).where(Village.id == self.location_id)
        return select(Isibo.village_id).where(Isibo.id == self.location_id)

    def _isibo_ids(self):
        if self.level == "cell":
            return (
                select(Isibo.id)
                .join(Village, Isibo.village_id == Village.id)
                .where(Village.cell_id == self.location_id)
            )
        if self.level == "village":
            return select(Isibo.id).where(Isibo.village_id == self.location_id)
        return select(Isibo.id).where(Isibo.id == self.location_id)

    def cells(self):
        if self.unrestricted:
            return true()
        if self.empty:
            return false()
        if self.level == "cell":
            return Cell.id == self.location_id
        return Cell.id.in_(select(Village.cell_id).where(Village.id.in_(self._village_ids())))

    def villages(self):
        if self.unrestricted:
            return true()
        if self.empty:
            return false()
        return Village.id.in_(self._village_ids())

    def isibos(self):
        if self.unrestricted:
            return true()
        if self.empty:
            return false()
        return Isibo.id.in_(self._isibo_ids())

    def tasks(self):
        if self.unrestricted:
            return true()
        if self.empty:
            return false()
        return Task.isibo_id.in_(self._isibo_ids())

    def activities(self):
        if self.unrestricted:
            return true()
        if self.empty:
            return false()
        if self.level == "isibo":
            # an isibo sees the activities it has a task in
            return Activity.id.in_(
                select(Task.activity_id).where(Task.isibo_id == self.location_id, live(Task))
            )
        return Activity.village_id.in_(self._village_ids())

    def reports(self):
        if self.unrestricted:
            return true()
        if self.empty:
            return false()
        return Report.task_id.in_(select(Task.id).where(self.tasks()))

    def users(self):
        if self.unrestricted:
            return true()
        if self.empty:
            return false()
        ref = {"cell": Profile.cell_id, "village": Profile.village_id, "isibo": Profile.isibo_id}[self.level]
        return User.profile_id.in_(select(Profile.id).where(ref == self.location_id))

    def covers(self, chain: dict[str, uuid.UUID]) -> bool:
        """`chain` is a node's lineage(); nodes above the scope level are never covered."""
        if self.unrestricted:
            return True
        if self.empty:
            return False
        return chain.get(self.level) == self.location_id


_ROLE_SCOPE = {
    Role.CELL_LEADER.value: ("cell", "cell_id"),
    Role.VILLAGE_LEADER.value: ("village", "village_id"),
    Role.ISIBO_LEADER.value: ("isibo", "isibo_id"),
}


def scope_for(principal: Principal) -> Scope:
    if principal.is_admin:
        return Scope(level=None)
    level, attr = _ROLE_SCOPE.get(principal.role, ("isibo", None))
    return Scope(level=level, location_id=getattr(principal, attr) if attr else None)


# tier -> (parent column, parent tier, parent model); the walk stops at the cell
_UP = {
    "house": ("isibo_id", "isibo", Isibo),
    "isibo": ("village_id", "village", Village),
    "village": ("cell_id", "cell", Cell),
}


def lineage(db: Session, tier: str, node) -> dict[str, uuid.UUID]:
    """Ids of `node` and its ancestors up to the cell, keyed by tier."""
    chain = {tier: node.id}
    while tier in _UP and node is not None:
        attr, parent_tier, parent_model = _UP[tier]
        parent_id = getattr(node, attr, None)
        if parent_id is None:
            break
        chain[parent_tier] = parent_id
        tier, node = parent_tier, db.get(parent_model, parent_id)
    return chain


def ensure_covers(db: Session, principal: Optional[Principal], tier: str, node) -> None:
    """403 unless `node` falls inside the principal's scope. No principal means an internal caller."""
    if principal is None:
        return
    scope = scope_for(principal)
    if scope.covers(lineage(db, tier, node)):
        return
    where = f"your {scope.level}" if scope.level else "your area"
    raise HTTPException(status_code=403, detail=f"You can only manage locations inside {where}")
