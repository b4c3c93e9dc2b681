# communiserver/services/verification_service.py
"""
One-time email codes, used for address verification and password resets.

Codes are stored and logged; delivery (SES/SMTP) happens outside this service.
"""
from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..models import User, Verification, utcnow
from .auth_service import get_user_by_email, hash_password

log = logging.getLogger("communiserver.verification")

_INVALID = "Invalid or expired verification code. Please request a new one."


def _generate_code(db: Session) -> str:
    n = int(settings.verification_code_length)
    low, span = 10 ** (n - 1), 9 * 10 ** (n - 1)
    while True:
        code = str(low + secrets.randbelow(span))
        if db.scalar(select(Verification.id).where(Verification.code == code)) is None:
            return code


def issue_code(db: Session, email: str) -> Verification:
    user = get_user_by_email(db, email)
    if user is None:
        raise HTTPException(status_code=400, detail="User with this email does not exist.")

    row = db.scalar(select(Verification).where(Verification.user_id == user.id))
    if row is None:
        row = Verification(user_id=user.id)
        db.add(row)

    row.code = _generate_code(db)
    row.expires_at = utcnow() + timedelta(minutes=int(settings.verification_code_ttl_minutes))
    db.commit()
    db.refresh(row)

    log.info(
        "verification code issued code=%s",
        row.code,
        extra={"user_id": str(user.id), "entity_type": "verification", "entity_id": str(row.id)},
    )
    return row


def _consume(db: Session, email: str, code: str) -> User:
    """Deletes the matching unexpired code and returns its user; caller commits."""
    user = get_user_by_email(db, email)
    if user is None:
        raise HTTPException(status_code=400, detail=_INVALID)

    row = db.scalar(
        select(Verification).where(Verification.user_id == user.id, Verification.code == code.strip())
    )
    if row is None or row.expires_at < utcnow():
        raise HTTPException(status_code=400, detail=_INVALID)

    db.delete(row)
    return user


def verify_code(db: Session, email: str, code: str) -> User:
    user = _consume(db, email, code)
    user.verified_at = utcnow()
    db.commit()
    db.refresh(user)
    log.info("user verified", extra={"user_id": str(user.id)})
    return user


def request_password_reset(db: Session, email: str) -> None:
    """Issues a code when the account exists; unknown addresses get the same silent answer."""
    if get_user_by_email(db, email) is None:
        log.info("password reset requested for unknown email")
        return
    issue_code(db, email)


def reset_password(db: Session, email: str, code: str, new_password: str) -> User:
    user = _consume(db, email, code)
    user.password = hash_password(new_password)
    # outstanding sessions end with the old password
    user.refresh_token = None
    if user.verified_at is None:
        user.verified_at = utcnow()
    db.commit()
    db.refresh(user)
    log.info("password reset", extra={"user_id": str(user.id)})
    return user
