# communiserver/routers/settings.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal, require_permission
from ..db import get_db
from ..domain.permissions import Permission as P
from ..schemas import SettingOut, SettingPatch
from ..services import settings_service as svc

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("")
def get_settings(
    name: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    if name:
        return SettingOut.model_validate(svc.get_setting(db, name))
    return [SettingOut.model_validate(s) for s in svc.list_settings(db)]


@router.patch("", response_model=SettingOut)
def patch_setting(payload: SettingPatch, db: Session = Depends(get_db), p=Depends(require_permission(P.MANAGE_SETTINGS))):
    return svc.update_setting(db, payload.name, payload.value)
