# communiserver/services/users_service.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..domain import leadership
from ..domain.leadership import LocationLevel
from ..domain.pagination import PageRequest, paginate
from ..domain.permissions import Permission, Role, has_permission, parse_role
from ..models import Profile, User, live, utcnow
from . import auth_service, locations_service
from .scope import ensure_covers

log = logging.getLogger("communiserver.users")

# role being created -> permission the creator needs
_CREATE_ROLE_PERMISSION: dict[Role, Permission] = {
    Role.CELL_LEADER: Permission.CREATE_CELL_LEADER,
    Role.VILLAGE_LEADER: Permission.CREATE_VILLAGE_LEADER,
    Role.ISIBO_LEADER: Permission.CREATE_ISIBO_LEADER,
    Role.HOUSE_REPRESENTATIVE: Permission.ADD_CITIZENS,
    Role.CITIZEN: Permission.ADD_CITIZENS,
}

_LEADER_LEVEL: dict[Role, tuple[LocationLevel, str]] = {
    Role.CELL_LEADER: (LocationLevel.CELL, "cell_id"),
    Role.VILLAGE_LEADER: (LocationLevel.VILLAGE, "village_id"),
    Role.ISIBO_LEADER: (LocationLevel.ISIBO, "isibo_id"),
}


def must_get_user(db: Session, user_id: uuid.UUID, *, include_deleted: bool = False) -> User:
    stmt = select(User).where(User.id == user_id)
    if not include_deleted:
        stmt = stmt.where(live(User))
    user = db.scalar(stmt)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def must_get_profile(db: Session, profile_id: uuid.UUID) -> Profile:
    prof = db.scalar(select(Profile).where(Profile.id == profile_id, live(Profile)))
    if prof is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return prof


def _scope_filter(stmt, principal):
    """Leaders only see people registered under their own location."""
    if principal.is_admin or has_permission(principal.role, Permission.VIEW_ALL_USERS):
        return stmt
    if principal.role == Role.CELL_LEADER.value and principal.cell_id:
        return stmt.where(Profile.cell_id == principal.cell_id)
    if principal.role == Role.VILLAGE_LEADER.value and principal.village_id:
        return stmt.where(Profile.village_id == principal.village_id)
    if principal.role == Role.ISIBO_LEADER.value and principal.isibo_id:
        return stmt.where(Profile.isibo_id == principal.isibo_id)
    return stmt.where(User.id == principal.user_id)


def list_users(
    db: Session,
    req: PageRequest,
    principal,
    *,
    q: Optional[str] = None,
    role: Optional[str] = None,
    serialize=None,
) -> dict[str, Any]:
    stmt = select(User).join(Profile, User.profile_id == Profile.id, isouter=True).where(live(User))
    stmt = _scope_filter(stmt, principal)

    needle = (q or "").strip()
    if needle:
        stmt = stmt.where(
            or_(
                Profile.names.icontains(needle, autoescape=True),
                User.email.icontains(needle, autoescape=True),
                User.phone.icontains(needle, autoescape=True),
            )
        )
    if role:
        r = parse_role(role)
        if r is None:
            raise HTTPException(status_code=400, detail=f"Unknown role: {role}")
        stmt = stmt.where(User.role == r.value)

    stmt = stmt.order_by(User.created_at.desc(), User.id.asc())
    return paginate(db, stmt, req, serialize=serialize)


def create_user(db: Session, principal, data: dict[str, Any]) -> User:
    role = parse_role(data.get("role") or Role.CITIZEN.value)
    if role is None:
        raise HTTPException(status_code=400, detail=f"Unknown role: {data.get('role')}")

    if role == Role.ADMIN:
        if not principal.is_admin:
            raise HTTPException(status_code=403, detail="Only ADMIN can create ADMIN accounts")
    elif not has_permission(principal.role, _CREATE_ROLE_PERMISSION[role]):
        raise HTTPException(status_code=403, detail=f"Missing permission: {_CREATE_ROLE_PERMISSION[role].value}")

    if role in _LEADER_LEVEL and data.get(_LEADER_LEVEL[role][1]) is None:
        raise HTTPException(status_code=400, detail=f"{_LEADER_LEVEL[role][1]} is required for {role.value}")

    # referenced locations must be live, and inside the creator's scope, before anything is written
    deepest = None
    for key in ("cell_id", "village_id", "isibo_id", "house_id"):
        if data.get(key) is not None:
            deepest = (key[:-3], locations_service.must_get(db, locations_service.TIERS[key[:-3]], data[key]))
    if deepest is not None:
        ensure_covers(db, principal, *deepest)

    user = auth_service.create_user(
        db,
        email=data["email"],
        phone=data["phone"],
        names=data["names"],
        password=data.get("password"),
        role=Role.CITIZEN.value if role in _LEADER_LEVEL else role.value,
    )
    user.verified_at = utcnow()
    prof = user.profile
    for key in ("cell_id", "village_id", "isibo_id", "house_id"):
        if data.get(key) is not None:
            setattr(prof, key, data[key])
    db.flush()

    # account and leadership land in one commit; a refused assignment leaves no account behind
    if role in _LEADER_LEVEL:
        level, key = _LEADER_LEVEL[role]
        try:
            locations_service.assign_leader(db, level, data[key], user.id, principal=principal, commit=False)
        except HTTPException:
            db.rollback()
            raise

    db.commit()
    db.refresh(user)
    log.info("user created", extra={"user_id": str(user.id), "role": user.role})
    return user


def update_user(db: Session, user_id: uuid.UUID, changes: dict[str, Any]) -> User:
    user = must_get_user(db, user_id)
    if "phone" in changes and changes["phone"] is not None:
        phone = str(changes["phone"]).strip()
        clash = db.scalar(select(User.id).where(User.phone == phone, User.id != user.id))
        if clash is not None:
            raise HTTPException(status_code=409, detail="Phone already registered")
        user.phone = phone
    if changes.get("activated") is not None:
        user.activated = bool(changes["activated"])
    if changes.get("names") and user.profile is not None:
        user.profile.names = str(changes["names"]).strip()
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: uuid.UUID) -> None:
    user = must_get_user(db, user_id)
    prof = user.profile
    if prof is not None:
        # free every node this profile leads before the account disappears
        for a in leadership.assignments(prof):
            node = db.get(locations_service.TIERS[a.level.value].model, a.location_id)
            if node is not None and node.leader_id == prof.id:
                node.has_leader = False
                node.leader_id = None
            leadership.clear(prof, a.level)
        prof.soft_delete()
    user.refresh_token = None
    user.activated = False
    user.soft_delete()
    db.commit()
    log.info("user deleted", extra={"user_id": str(user.id)})


def update_profile(db: Session, profile: Profile, changes: dict[str, Any]) -> Profile:
    for key in ("cell_id", "village_id", "isibo_id", "house_id"):
        if changes.get(key) is not None:
            locations_service.must_get(db, locations_service.TIERS[key[:-3]], changes[key])
    if changes.get("names"):
        profile.names = str(changes["names"]).strip()
    for key in ("cell_id", "village_id", "isibo_id", "house_id"):
        if key not in changes:
            continue
        level = leadership.level_of(key[:-3])
        # a held leadership pins its location reference
        if level is not None and any(a.level == level for a in leadership.assignments(profile)):
            if changes[key] != getattr(profile, key):
                raise HTTPException(status_code=409, detail=f"Remove the {key[:-3]} leadership before moving")
            continue
        setattr(profile, key, changes[key])
    db.commit()
    db.refresh(profile)
    return profile


def get_visible_user(db: Session, principal, user_id: uuid.UUID, *, include_deleted: bool = False) -> User:
    if principal.is_admin or principal.user_id == user_id:
        return must_get_user(db, user_id, include_deleted=include_deleted)
    stmt = select(User).join(Profile, User.profile_id == Profile.id, isouter=True).where(User.id == user_id, live(User))
    user = db.scalar(_scope_filter(stmt, principal))
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user
