# communiserver/services/locations_service.py
"""
CRUD for the seven location tiers plus leader / representative assignment.

Every tier is described once in TIERS (model, parent column, display label,
searchable column), and the generic functions below work off that table.
Leader assignment writes the node side and the profile side in the same
session and commits once.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy import Select, case, func, select
from sqlalchemy.orm import Session

from ..domain import leadership
from ..domain.leadership import LocationLevel
from ..domain.pagination import PageRequest, page_envelope, paginate
from ..domain.permissions import Role
from ..models import Cell, District, House, Isibo, Profile, Province, Sector, User, Village, live
from .scope import ensure_covers

log = logging.getLogger("communiserver.locations")


@dataclass(frozen=True)
class Tier:
    key: str
    model: type
    label: str
    parent: Optional[str] = None  # key of the parent tier
    parent_attr: Optional[str] = None  # FK column on this model
    name_attr: str = "name"
    globally_unique: bool = False


TIERS: dict[str, Tier] = {
    "province": Tier("province", Province, "Province", globally_unique=True),
    "district": Tier("district", District, "District", parent="province", parent_attr="province_id"),
    "sector": Tier("sector", Sector, "Sector", parent="district", parent_attr="district_id"),
    "cell": Tier("cell", Cell, "Cell", parent="sector", parent_attr="sector_id", globally_unique=True),
    "village": Tier("village", Village, "Village", parent="cell", parent_attr="cell_id"),
    "isibo": Tier("isibo", Isibo, "Isibo", parent="village", parent_attr="village_id"),
    "house": Tier("house", House, "House", parent="isibo", parent_attr="isibo_id", name_attr="code"),
}

PARENT_FILTERS = ("province_id", "district_id", "sector_id", "cell_id", "village_id", "isibo_id")


# -----------------------------
# Lookups
# -----------------------------
def must_get(db: Session, t: Tier, node_id: uuid.UUID, *, include_deleted: bool = False):
    stmt = select(t.model).where(t.model.id == node_id)
    if not include_deleted:
        stmt = stmt.where(live(t.model))
    row = db.scalar(stmt)
    if row is None:
        raise HTTPException(status_code=404, detail=f"{t.label} not found")
    return row


def must_get_user(db: Session, user_id: uuid.UUID) -> User:
    user = db.scalar(select(User).where(User.id == user_id, live(User)))
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _ensure_unique_name(
    db: Session, t: Tier, value: str, *, parent_id: Optional[uuid.UUID], exclude_id: Optional[uuid.UUID] = None
) -> None:
    col = getattr(t.model, t.name_attr)
    stmt = select(t.model.id).where(func.upper(col) == value.upper(), live(t.model))
    if not t.globally_unique and t.parent_attr:
        stmt = stmt.where(getattr(t.model, t.parent_attr) == parent_id)
    if exclude_id is not None:
        stmt = stmt.where(t.model.id != exclude_id)
    if db.scalar(stmt.limit(1)) is not None:
        where = "" if t.globally_unique or not t.parent else f" in this {TIERS[t.parent].label.lower()}"
        raise HTTPException(status_code=409, detail=f"{t.label} '{value}' already exists{where}")


# -----------------------------
# CRUD
# -----------------------------
def create_node(db: Session, t: Tier, data: dict[str, Any], *, principal=None):
    parent_id = None
    if t.parent_attr:
        parent_id = data.get(t.parent_attr)
        parent = must_get(db, TIERS[t.parent], parent_id)
        ensure_covers(db, principal, t.parent, parent)

    _ensure_unique_name(db, t, str(data[t.name_attr]), parent_id=parent_id)

    row = t.model(**data)
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("location created", extra={"entity_type": t.key, "entity_id": str(row.id)})
    return row


def update_node(db: Session, t: Tier, node_id: uuid.UUID, changes: dict[str, Any], *, principal=None):
    row = must_get(db, t, node_id)
    ensure_covers(db, principal, t.key, row)
    # parent reference is fixed at creation
    if t.parent_attr:
        changes.pop(t.parent_attr, None)

    new_name = changes.get(t.name_attr)
    if new_name is not None and new_name != getattr(row, t.name_attr):
        parent_id = getattr(row, t.parent_attr) if t.parent_attr else None
        _ensure_unique_name(db, t, str(new_name), parent_id=parent_id, exclude_id=row.id)

    for k, v in changes.items():
        setattr(row, k, v)

    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def delete_node(db: Session, t: Tier, node_id: uuid.UUID, *, principal=None) -> None:
    row = must_get(db, t, node_id)
    ensure_covers(db, principal, t.key, row)
    level = leadership.level_of(t.key)
    if level is not None and row.has_leader:
        _release_leader(db, level, row)
    if t.key == "house" and row.representative_id is not None:
        _release_representative(db, row)
    row.soft_delete()
    db.add(row)
    db.commit()
    log.info("location deleted", extra={"entity_type": t.key, "entity_id": str(row.id)})


def _apply_parent_filter(stmt: Select, t: Tier, key: str, value: uuid.UUID, joined: set[str]) -> Select:
    cur = t
    while cur.parent_attr:
        if cur.parent_attr == key:
            return stmt.where(getattr(cur.model, key) == value)
        parent = TIERS[cur.parent]
        if parent.key not in joined:
            stmt = stmt.join(parent.model, getattr(cur.model, cur.parent_attr) == parent.model.id)
            joined.add(parent.key)
        cur = parent
    raise HTTPException(status_code=400, detail=f"{key} is not a valid filter for {t.label.lower()} lists")


def list_nodes(
    db: Session,
    t: Tier,
    req: PageRequest,
    *,
    q: Optional[str] = None,
    filters: Optional[dict[str, Optional[uuid.UUID]]] = None,
    serialize=None,
) -> dict[str, Any]:
    stmt = select(t.model).where(live(t.model))
    joined: set[str] = set()
    for key, value in (filters or {}).items():
        if value is not None:
            stmt = _apply_parent_filter(stmt, t, key, value, joined)

    needle = (q or "").strip()
    if needle:
        stmt = stmt.where(getattr(t.model, t.name_attr).icontains(needle, autoescape=True))

    stmt = stmt.order_by(getattr(t.model, t.name_attr).asc(), t.model.id.asc())
    return paginate(db, stmt, req, serialize=serialize)


def replace_members(db: Session, isibo_id: uuid.UUID, members: list[dict[str, Any]], *, principal=None) -> Isibo:
    row = must_get(db, TIERS["isibo"], isibo_id)
    ensure_covers(db, principal, "isibo", row)
    row.members = list(members)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# -----------------------------
# Leaders
# -----------------------------
def _ensure_profile(db: Session, user: User) -> Profile:
    if user.profile is not None:
        return user.profile
    prof = Profile(names=str(user.email).split("@")[0])
    db.add(prof)
    db.flush()
    user.profile = prof
    user.profile_id = prof.id
    return prof


def _user_for_profile(db: Session, profile_id: uuid.UUID) -> Optional[User]:
    return db.scalar(select(User).where(User.profile_id == profile_id))


def _finish(db: Session, node, commit: bool) -> None:
    if commit:
        db.commit()
        db.refresh(node)
    else:
        db.flush()


def assign_leader(
    db: Session,
    level: LocationLevel,
    node_id: uuid.UUID,
    user_id: uuid.UUID,
    *,
    principal=None,
    commit: bool = True,
):
    """
    With commit=False the writes are only flushed, so a caller that has staged
    other rows (a freshly created account) commits or rolls back all of it.
    """
    t = TIERS[level.value]
    node = must_get(db, t, node_id)
    ensure_covers(db, principal, t.key, node)
    user = must_get_user(db, user_id)
    profile = _ensure_profile(db, user)

    if node.has_leader and node.leader_id == profile.id:
        # already the leader; re-assert the profile side in case it drifted
        if not leadership.holds(profile, level, node.id):
            leadership.assign(profile, level, node.id)
        _finish(db, node, commit)
        return node

    if node.has_leader:
        raise HTTPException(status_code=409, detail=f"This {t.label.lower()} already has a leader")

    current = next((a for a in leadership.assignments(profile) if a.level == level), None)
    if current is not None and current.location_id != node.id:
        raise HTTPException(status_code=409, detail=f"User already leads another {t.label.lower()}")

    node.has_leader = True
    node.leader_id = profile.id
    leadership.assign(profile, level, node.id)
    user.role = leadership.effective_role(profile, str(user.role))

    db.add_all([node, profile, user])
    _finish(db, node, commit)
    log.info(
        "leader assigned",
        extra={"entity_type": t.key, "entity_id": str(node.id), "user_id": str(user.id), "role": user.role},
    )
    return node


def _release_leader(db: Session, level: LocationLevel, node) -> None:
    profile = db.get(Profile, node.leader_id) if node.leader_id else None
    node.has_leader = False
    node.leader_id = None
    if profile is None:
        return
    if leadership.holds(profile, level, node.id):
        leadership.clear(profile, level)
    user = _user_for_profile(db, profile.id)
    if user is not None:
        user.role = leadership.effective_role(profile, str(user.role))
        db.add(user)
    db.add(profile)


def remove_leader(db: Session, level: LocationLevel, node_id: uuid.UUID, *, principal=None):
    t = TIERS[level.value]
    node = must_get(db, t, node_id)
    ensure_covers(db, principal, t.key, node)
    if not node.has_leader:
        raise HTTPException(status_code=404, detail=f"This {t.label.lower()} does not have a leader")

    _release_leader(db, level, node)
    db.add(node)
    db.commit()
    db.refresh(node)
    log.info("leader removed", extra={"entity_type": t.key, "entity_id": str(node.id)})
    return node


# -----------------------------
# House representatives
# -----------------------------
def assign_representative(db: Session, house_id: uuid.UUID, user_id: uuid.UUID, *, principal=None) -> House:
    house = must_get(db, TIERS["house"], house_id)
    ensure_covers(db, principal, "house", house)
    user = must_get_user(db, user_id)
    profile = _ensure_profile(db, user)

    if house.representative_id == profile.id:
        return house
    if house.representative_id is not None:
        raise HTTPException(status_code=409, detail="This house already has a representative")

    house.representative_id = profile.id
    profile.house_id = house.id
    profile.isibo_id = profile.isibo_id or house.isibo_id
    if user.role == Role.CITIZEN.value:
        user.role = Role.HOUSE_REPRESENTATIVE.value

    db.add_all([house, profile, user])
    db.commit()
    db.refresh(house)
    return house


def _release_representative(db: Session, house: House) -> None:
    profile = db.get(Profile, house.representative_id) if house.representative_id else None
    house.representative_id = None
    if profile is None:
        return
    user = _user_for_profile(db, profile.id)
    if user is not None and user.role == Role.HOUSE_REPRESENTATIVE.value:
        user.role = Role.CITIZEN.value
        db.add(user)


def remove_representative(db: Session, house_id: uuid.UUID, *, principal=None) -> House:
    house = must_get(db, TIERS["house"], house_id)
    ensure_covers(db, principal, "house", house)
    if house.representative_id is None:
        raise HTTPException(status_code=404, detail="This house does not have a representative")
    _release_representative(db, house)
    db.add(house)
    db.commit()
    db.refresh(house)
    return house


# -----------------------------
# Global search
# -----------------------------
def _relevance(q: str, name: str) -> int:
    q = q.lower()
    n = (name or "").lower()
    if n == q:
        return 3
    if n.startswith(q):
        return 2
    if q in n:
        return 1
    return 0


def _relevance_order(col, needle: str):
    low = func.lower(col)
    return case((low == needle.lower(), 3), (low.startswith(needle.lower(), autoescape=True), 2), else_=1)


def search_locations(
    db: Session,
    req: PageRequest,
    *,
    q: Optional[str] = None,
    types: Optional[list[str]] = None,
) -> dict[str, Any]:
    """
    Ranked search across tiers.

    Each tier is counted in full and contributes at most offset+size of its
    best rows, which is all the merged page can draw from.
    """
    keys = [k for k in (types or list(TIERS)) if k in TIERS]
    needle = (q or "").strip()
    window = req.offset + req.size
    total = 0
    hits: list[tuple[tuple, dict[str, Any]]] = []

    for key in keys:
        t = TIERS[key]
        col = getattr(t.model, t.name_attr)
        stmt = select(t.model).where(live(t.model))
        if needle:
            stmt = stmt.where(col.icontains(needle, autoescape=True))
        total += int(db.scalar(select(func.count()).select_from(stmt.subquery())) or 0)

        if needle:
            stmt = stmt.order_by(_relevance_order(col, needle).desc(), t.model.created_at.desc())
        else:
            stmt = stmt.order_by(t.model.created_at.desc())
        for row in db.scalars(stmt.limit(window)).all():
            name = getattr(row, t.name_attr)
            rank = (_relevance(needle, name), row.created_at) if needle else (0, row.created_at)
            hits.append(
                (
                    rank,
                    {
                        "type": key,
                        "id": row.id,
                        "name": name,
                        "parent_id": getattr(row, t.parent_attr) if t.parent_attr else None,
                    },
                )
            )

    hits.sort(key=lambda h: h[0], reverse=True)
    items = [h[1] for h in hits[req.offset : window]]
    return page_envelope(items, total=total, req=req)
