# communiserver/routers/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import (
    ForgotPasswordIn,
    MeOut,
    RefreshIn,
    ResetPasswordIn,
    SignInIn,
    SignUpIn,
    TokenOut,
    UserOut,
)
from ..services import auth_service, verification_service
from ..services.users_service import must_get_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/sign-up", response_model=TokenOut, status_code=201)
def sign_up(payload: SignUpIn, db: Session = Depends(get_db)):
    return auth_service.sign_up(
        db, email=payload.email, phone=payload.phone, names=payload.names, password=payload.password
    )


@router.post("/sign-in", response_model=TokenOut)
def sign_in(payload: SignInIn, db: Session = Depends(get_db)):
    return auth_service.sign_in(db, email=payload.email, password=payload.password)


@router.post("/refresh", response_model=TokenOut)
def refresh(payload: RefreshIn, db: Session = Depends(get_db)):
    return auth_service.refresh(db, refresh_token=payload.refresh_token)


@router.post("/logout")
def logout(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    # the system token has no session to end
    if not p.system:
        auth_service.logout(db, must_get_user(db, p.user_id))
    return {"ok": True}


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordIn, db: Session = Depends(get_db)):
    verification_service.request_password_reset(db, payload.email)
    return {"ok": True}


@router.post("/reset-password")
def reset_password(payload: ResetPasswordIn, db: Session = Depends(get_db)):
    verification_service.reset_password(db, payload.email, payload.code, payload.password)
    return {"ok": True}


@router.get("/me", response_model=MeOut)
def me(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    user = None if p.system else UserOut.model_validate(must_get_user(db, p.user_id))
    return MeOut(user=user, role=p.role, permissions=p.permissions(), system=p.system)
