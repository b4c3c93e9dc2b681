# communiserver/routers/users.py
from __future__ import annotations

import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_admin
from ..db import get_db
from ..domain.pagination import DEFAULT_SIZE, MAX_SIZE, PageRequest
from ..schemas import ProfileOut, ProfileUpdate, UserCreate, UserOut, UserUpdate
from ..services import users_service as svc

router = APIRouter(prefix="/users", tags=["users"])
profiles_router = APIRouter(prefix="/profiles", tags=["users"])


@router.get("")
def list_users(
    page: int = Query(default=1, ge=1),
    size: int = Query(default=DEFAULT_SIZE, ge=1, le=MAX_SIZE),
    q: Optional[str] = Query(default=None),
    role: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
) -> dict[str, Any]:
    return svc.list_users(db, PageRequest(page=page, size=size), p, q=q, role=role, serialize=UserOut.model_validate)


@router.post("", response_model=UserOut, status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.create_user(db, p, payload.model_dump())


# declared before /{user_id}, which would otherwise capture "me"
@router.delete("/me")
def delete_me(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    if p.system:
        raise HTTPException(status_code=400, detail="The system token has no account")
    svc.delete_user(db, p.user_id)
    return {"ok": True}


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: uuid.UUID,
    include_deleted: bool = Query(default=False),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    if include_deleted and not p.is_admin:
        raise HTTPException(status_code=403, detail="include_deleted requires role ADMIN")
    return svc.get_visible_user(db, p, user_id, include_deleted=include_deleted)


@router.patch("/{user_id}", response_model=UserOut)
def update_user(user_id: uuid.UUID, payload: UserUpdate, db: Session = Depends(get_db), p=Depends(require_admin)):
    return svc.update_user(db, user_id, payload.model_dump(exclude_unset=True))


@router.delete("/{user_id}")
def delete_user(user_id: uuid.UUID, db: Session = Depends(get_db), p=Depends(require_admin)):
    svc.delete_user(db, user_id)
    return {"ok": True}


@profiles_router.get("/me", response_model=ProfileOut)
def my_profile(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    if p.profile_id is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return svc.must_get_profile(db, p.profile_id)


@profiles_router.patch("/me", response_model=ProfileOut)
def update_my_profile(payload: ProfileUpdate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    if p.profile_id is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    prof = svc.must_get_profile(db, p.profile_id)
    return svc.update_profile(db, prof, payload.model_dump(exclude_unset=True))


@profiles_router.get("/{profile_id}", response_model=ProfileOut)
def get_profile(profile_id: uuid.UUID, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.must_get_profile(db, profile_id)
