# tests/test_settings_and_verification.py
from __future__ import annotations

from datetime import timedelta

from sqlalchemy import select

from communiserver.db import SessionLocal
from communiserver.models import Setting, User, Verification, utcnow
from communiserver.services.settings_service import DEFAULT_SETTINGS, seed_all

API = "/api/v1"


def _seed(demo: bool = False):
    db = SessionLocal()
    try:
        return seed_all(db, demo=demo)
    finally:
        db.close()


def test_seed_is_idempotent():
    first = _seed(demo=True)
    assert first["settings_created"] == len(DEFAULT_SETTINGS)
    assert first["admin_created"] is True
    assert first["demo"]["isibo_id"] is not None

    second = _seed(demo=True)
    assert second["settings_created"] == 0
    assert second["admin_created"] is False
    assert second["demo"] == first["demo"]


def test_seed_keeps_existing_values():
    db = SessionLocal()
    try:
        db.add(Setting(name="Disbursement", value="ON"))
        db.commit()
    finally:
        db.close()

    assert _seed()["settings_created"] == len(DEFAULT_SETTINGS) - 1

    db = SessionLocal()
    try:
        assert db.scalar(select(Setting.value).where(Setting.name == "Disbursement")) == "ON"
    finally:
        db.close()


def test_settings_read_and_patch(client, system_headers, sign_up):
    _seed()
    _, citizen = sign_up("set@example.com", "0788400001")

    r = client.get(f"{API}/settings", params={"name": "SourcePaymentChannel"}, headers=citizen)
    assert r.status_code == 200
    assert r.json() == {"name": "SourcePaymentChannel", "value": "BK"}

    r = client.get(f"{API}/settings", headers=citizen)
    assert [s["name"] for s in r.json()] == sorted(DEFAULT_SETTINGS)

    assert client.get(f"{API}/settings", params={"name": "Nope"}, headers=citizen).status_code == 404

    r = client.patch(f"{API}/settings", json={"name": "Disbursement", "value": "ON"}, headers=citizen)
    assert r.status_code == 403

    r = client.patch(f"{API}/settings", json={"name": "Disbursement", "value": "ON"}, headers=system_headers)
    assert r.status_code == 200
    assert r.json()["value"] == "ON"


def _code_for(email: str) -> str:
    db = SessionLocal()
    try:
        return db.scalar(select(Verification.code).join(User, Verification.user_id == User.id).where(User.email == email))
    finally:
        db.close()


def test_verification_flow(client, sign_up):
    sign_up("ver@example.com", "0788400002")

    r = client.post(f"{API}/verification", json={"email": "ver@example.com"})
    assert r.status_code == 201, r.text
    first = _code_for("ver@example.com")
    assert len(first) == 6 and first.isdigit()

    # re-issuing replaces the code
    client.post(f"{API}/verification", json={"email": "ver@example.com"})
    code = _code_for("ver@example.com")

    r = client.post(f"{API}/verification/verify", json={"email": "ver@example.com", "code": "nope"})
    assert r.status_code == 400

    r = client.post(f"{API}/verification/verify", json={"email": "ver@example.com", "code": code})
    assert r.status_code == 200, r.text
    assert r.json()["verified_at"] is not None

    # single use
    r = client.post(f"{API}/verification/verify", json={"email": "ver@example.com", "code": code})
    assert r.status_code == 400


def test_expired_code_is_rejected(client, sign_up):
    sign_up("exp@example.com", "0788400003")
    client.post(f"{API}/verification", json={"email": "exp@example.com"})

    db = SessionLocal()
    try:
        row = db.scalar(select(Verification))
        row.expires_at = utcnow() - timedelta(minutes=1)
        db.commit()
        code = row.code
    finally:
        db.close()

    r = client.post(f"{API}/verification/verify", json={"email": "exp@example.com", "code": code})
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid or expired verification code. Please request a new one."


def test_unknown_email_cannot_request_code(client):
    r = client.post(f"{API}/verification", json={"email": "ghost@example.com"})
    assert r.status_code == 400
    assert r.json()["detail"] == "User with this email does not exist."
