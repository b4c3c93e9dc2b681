# communiserver/services/auth_service.py
from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..config import settings
from ..models import Profile, User, live
from ..domain.permissions import Role

log = logging.getLogger("communiserver.auth")

ACCESS = "access"
REFRESH = "refresh"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(16)
    iters = int(settings.password_pbkdf2_iters)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iters)
    return f"pbkdf2_sha256${iters}${base64.b64encode(salt).decode()}${base64.b64encode(dk).decode()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algo, iters_s, salt_b64, dk_b64 = stored.split("$", 3)
    except ValueError:
        return False
    if algo != "pbkdf2_sha256":
        return False
    salt = base64.b64decode(salt_b64.encode())
    dk = base64.b64decode(dk_b64.encode())
    test = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, int(iters_s))
    return hmac.compare_digest(test, dk)


def _encode(user: User, *, kind: str, minutes: int) -> str:
    now = _now()
    payload: dict[str, Any] = {
        "sub": str(user.id),
        "role": str(user.role),
        "typ": kind,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=int(minutes))).timestamp()),
    }
    # refresh tokens are stored on the user; jti keeps two issued in the same second distinct
    if kind == REFRESH:
        payload["jti"] = secrets.token_hex(8)
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def create_access_token(user: User) -> str:
    return _encode(user, kind=ACCESS, minutes=settings.jwt_exp_minutes)


def create_refresh_token(user: User) -> str:
    return _encode(user, kind=REFRESH, minutes=settings.jwt_refresh_exp_minutes)


def decode_token(token: str, *, kind: str = ACCESS) -> dict[str, Any]:
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if claims.get("typ") != kind:
        raise HTTPException(status_code=401, detail="Invalid token type")
    return claims


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(func.lower(User.email) == normalize_email(email), live(User)))


def ensure_unique_identity(db: Session, *, email: str, phone: str) -> None:
    if get_user_by_email(db, email) is not None:
        raise HTTPException(status_code=409, detail="Email already registered")
    if db.scalar(select(User).where(User.phone == phone.strip())) is not None:
        raise HTTPException(status_code=409, detail="Phone already registered")


def create_user(
    db: Session,
    *,
    email: str,
    phone: str,
    names: str,
    password: str | None,
    role: str = Role.CITIZEN.value,
) -> User:
    """Adds user + profile to the session; caller commits."""
    ensure_unique_identity(db, email=email, phone=phone)
    profile = Profile(names=names.strip())
    user = User(
        email=normalize_email(email),
        phone=phone.strip(),
        password=hash_password(password or secrets.token_urlsafe(16)),
        role=role,
        activated=True,
        profile=profile,
    )
    db.add_all([profile, user])
    db.flush()
    return user


def _issue(db: Session, user: User) -> dict[str, Any]:
    access = create_access_token(user)
    refresh = create_refresh_token(user)
    user.refresh_token = refresh
    db.add(user)
    db.commit()
    db.refresh(user)
    return {"access_token": access, "refresh_token": refresh, "token_type": "bearer", "user": user}


def sign_up(db: Session, *, email: str, phone: str, names: str, password: str) -> dict[str, Any]:
    user = create_user(db, email=email, phone=phone, names=names, password=password)
    log.info("user signed up", extra={"user_id": str(user.id), "role": user.role})
    return _issue(db, user)


def sign_in(db: Session, *, email: str, password: str) -> dict[str, Any]:
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, str(user.password)):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.activated:
        raise HTTPException(status_code=403, detail="Account is deactivated")
    return _issue(db, user)


def refresh(db: Session, *, refresh_token: str) -> dict[str, Any]:
    claims = decode_token(refresh_token, kind=REFRESH)
    user = db.scalar(select(User).where(User.id == parse_subject(claims.get("sub")), live(User)))
    if user is None or not user.refresh_token or not hmac.compare_digest(user.refresh_token, refresh_token):
        raise HTTPException(status_code=401, detail="Refresh token revoked")
    return _issue(db, user)


def parse_subject(raw: Any) -> uuid.UUID:
    try:
        return uuid.UUID(str(raw))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Token missing sub")


def logout(db: Session, user: User) -> None:
    """Revokes the stored refresh token; access tokens run out on their own."""
    user.refresh_token = None
    db.add(user)
    db.commit()
    log.info("user signed out", extra={"user_id": str(user.id)})
