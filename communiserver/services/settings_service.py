# communiserver/services/settings_service.py
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings as app_settings
from ..domain.permissions import Role
from ..models import Cell, District, Isibo, Province, Sector, Setting, Village, live, utcnow
from . import auth_service

log = logging.getLogger("communiserver.settings")

DEFAULT_SETTINGS: dict[str, str] = {
    "Disbursement": "OFF",
    "SourcePaymentChannel": "BK",
    "ServiceFeePercentage": "0",
}


def get_setting(db: Session, name: str) -> Setting:
    row = db.scalar(select(Setting).where(Setting.name == name, live(Setting)))
    if row is None:
        raise HTTPException(status_code=404, detail="Setting not found")
    return row


def list_settings(db: Session) -> list[Setting]:
    return list(db.scalars(select(Setting).where(live(Setting)).order_by(Setting.name)).all())


def update_setting(db: Session, name: str, value: str) -> Setting:
    row = get_setting(db, name)
    row.value = value
    db.commit()
    db.refresh(row)
    log.info("setting updated", extra={"entity_type": "setting", "entity_id": row.name})
    return row


# -----------------------------
# Seeding (idempotent)
# -----------------------------
def seed_settings(db: Session) -> int:
    """Inserts missing default settings; existing values are never overwritten."""
    existing = set(db.scalars(select(Setting.name)).all())
    created = 0
    for name, value in DEFAULT_SETTINGS.items():
        if name in existing:
            continue
        db.add(Setting(name=name, value=value))
        created += 1
    db.commit()
    return created


def seed_admin(db: Session) -> bool:
    if auth_service.get_user_by_email(db, app_settings.admin_email) is not None:
        return False
    user = auth_service.create_user(
        db,
        email=app_settings.admin_email,
        phone=app_settings.admin_phone,
        names=app_settings.admin_names,
        password=app_settings.admin_password,
        role=Role.ADMIN.value,
    )
    user.verified_at = utcnow()
    db.commit()
    log.info("admin seeded", extra={"user_id": str(user.id), "role": user.role})
    return True


def _get_or_add(db: Session, model, **fields):
    row = db.scalar(select(model).filter_by(**fields).where(live(model)))
    if row is None:
        row = model(**fields)
        db.add(row)
        db.flush()
    return row


def seed_demo_locations(db: Session) -> dict[str, Any]:
    """One Province > District > Sector > Cell > Village > Isibo chain."""
    province = _get_or_add(db, Province, name="KIGALI")
    district = _get_or_add(db, District, name="GASABO", province_id=province.id)
    sector = _get_or_add(db, Sector, name="KIMIRONKO", district_id=district.id)
    cell = _get_or_add(db, Cell, name="BIBARE", sector_id=sector.id)
    village = _get_or_add(db, Village, name="INGENZI", cell_id=cell.id)
    isibo = _get_or_add(db, Isibo, name="INDATWA", village_id=village.id)
    db.commit()
    return {
        "province_id": province.id,
        "district_id": district.id,
        "sector_id": sector.id,
        "cell_id": cell.id,
        "village_id": village.id,
        "isibo_id": isibo.id,
    }


def seed_all(db: Session, *, demo: bool = False) -> dict[str, Optional[Any]]:
    out: dict[str, Optional[Any]] = {
        "settings_created": seed_settings(db),
        "admin_created": seed_admin(db),
        "demo": None,
    }
    if demo:
        out["demo"] = seed_demo_locations(db)
    return out
