# communiserver/routers/verification.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import UserOut, VerificationIssueIn, VerificationVerifyIn
from ..services import verification_service as svc

router = APIRouter(prefix="/verification", tags=["verification"])


@router.post("", status_code=201)
def issue(payload: VerificationIssueIn, db: Session = Depends(get_db)):
    row = svc.issue_code(db, payload.email)
    return {"ok": True, "expires_at": row.expires_at}


@router.post("/verify", response_model=UserOut)
def verify(payload: VerificationVerifyIn, db: Session = Depends(get_db)):
    return svc.verify_code(db, payload.email, payload.code)
