# communiserver/auth.py
from __future__ import annotations

import hmac
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .domain.permissions import Permission, Role, get_permissions_for_role, has_permission
from .models import User, live
from .services.auth_service import ACCESS, decode_token, parse_subject


@dataclass(frozen=True)
class Principal:
    user_id: Optional[uuid.UUID]
    email: str
    role: str
    profile_id: Optional[uuid.UUID] = None
    cell_id: Optional[uuid.UUID] = None
    village_id: Optional[uuid.UUID] = None
    isibo_id: Optional[uuid.UUID] = None
    system: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def permissions(self) -> list[str]:
        return sorted(p.value for p in get_permissions_for_role(self.role))


SYSTEM_PRINCIPAL = Principal(user_id=None, email="system", role=Role.ADMIN.value, system=True)


def _principal_from_user(user: User) -> Principal:
    prof = user.profile
    return Principal(
        user_id=user.id,
        email=str(user.email),
        role=str(user.role),
        profile_id=prof.id if prof else None,
        cell_id=prof.cell_id if prof else None,
        village_id=prof.village_id if prof else None,
        isibo_id=prof.isibo_id if prof else None,
    )


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and str(authorization).lower().startswith("bearer "):
        return str(authorization).split(" ", 1)[1].strip() or None
    return None


def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Auth modes (in priority order):
      1) system token (server-side callers with no user session) -> ADMIN
      2) Authorization: Bearer <access JWT>
    """
    token = _bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    if settings.system_api_token and hmac.compare_digest(token, settings.system_api_token):
        request.state.principal = SYSTEM_PRINCIPAL
        return SYSTEM_PRINCIPAL

    claims = decode_token(token, kind=ACCESS)
    user = db.scalar(select(User).where(User.id == parse_subject(claims.get("sub")), live(User)))
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    if not user.activated:
        raise HTTPException(status_code=403, detail="Account is deactivated")

    p = _principal_from_user(user)
    request.state.principal = p
    return p


def require_permission(*perms: Permission):
    """Dependency factory: the principal's role must hold every listed permission."""

    def _dep(p: Principal = Depends(get_principal)) -> Principal:
        missing = [perm.value for perm in perms if not has_permission(p.role, perm)]
        if missing:
            raise HTTPException(status_code=403, detail=f"Missing permission: {', '.join(missing)}")
        return p

    return _dep


def require_any_permission(*perms: Permission):
    def _dep(p: Principal = Depends(get_principal)) -> Principal:
        if not any(has_permission(p.role, perm) for perm in perms):
            raise HTTPException(status_code=403, detail=f"Requires one of: {', '.join(x.value for x in perms)}")
        return p

    return _dep


def require_admin(p: Principal = Depends(get_principal)) -> Principal:
    if not p.is_admin:
        raise HTTPException(status_code=403, detail="Requires role ADMIN")
    return p
