# tests/test_auth.py
from __future__ import annotations

from sqlalchemy import select

from communiserver.db import SessionLocal
from communiserver.models import User, Verification


def test_sign_up_sign_in_and_me(client, sign_up):
    user, headers = sign_up("Jane@Example.com", "0788000001", names="Jane Doe")
    assert user["email"] == "jane@example.com"
    assert user["role"] == "CITIZEN"
    assert user["verified_at"] is None

    r = client.post("/api/v1/auth/sign-in", json={"email": "jane@example.com", "password": "secret-pass-1"})
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]

    r = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["role"] == "CITIZEN"
    assert body["system"] is False
    assert "VIEW_PROFILE" in body["permissions"]
    assert body["user"]["profile"]["names"] == "Jane Doe"


def test_duplicate_email_is_conflict(client, sign_up):
    sign_up("dup@example.com", "0788000002")
    r = client.post(
        "/api/v1/auth/sign-up",
        json={"email": "DUP@example.com", "phone": "0788000003", "names": "X", "password": "secret-pass-1"},
    )
    assert r.status_code == 409


def test_bad_password_is_401(client, sign_up):
    sign_up("pw@example.com", "0788000004")
    r = client.post("/api/v1/auth/sign-in", json={"email": "pw@example.com", "password": "wrong-password"})
    assert r.status_code == 401


def test_missing_or_garbage_token(client):
    assert client.get("/api/v1/auth/me").status_code == 401
    r = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_refresh_rotates_token(client):
    r = client.post(
        "/api/v1/auth/sign-up",
        json={"email": "rot@example.com", "phone": "0788000005", "names": "Rot", "password": "secret-pass-1"},
    )
    first = r.json()["refresh_token"]

    r = client.post("/api/v1/auth/refresh", json={"refresh_token": first})
    assert r.status_code == 200, r.text

    # only the latest refresh token is accepted
    r = client.post("/api/v1/auth/refresh", json={"refresh_token": first})
    assert r.status_code == 401


def test_system_token_is_admin(client, system_headers):
    r = client.get("/api/v1/auth/me", headers=system_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["system"] is True
    assert body["role"] == "ADMIN"
    assert body["user"] is None


def test_citizen_cannot_create_province(client, sign_up):
    _, headers = sign_up("cit@example.com", "0788000006")
    r = client.post("/api/v1/provinces", json={"name": "north"}, headers=headers)
    assert r.status_code == 403


def _sign_up_tokens(client, email: str, phone: str) -> dict:
    r = client.post(
        "/api/v1/auth/sign-up",
        json={"email": email, "phone": phone, "names": "Someone", "password": "secret-pass-1"},
    )
    assert r.status_code == 201, r.text
    return r.json()


def _reset_code(email: str):
    db = SessionLocal()
    try:
        return db.scalar(select(Verification.code).join(User, Verification.user_id == User.id).where(User.email == email))
    finally:
        db.close()


def test_logout_revokes_refresh_token(client, system_headers):
    tokens = _sign_up_tokens(client, "out@example.com", "0788000010")
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    r = client.post("/api/v1/auth/logout", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"ok": True}

    r = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 401
    assert r.json()["detail"] == "Refresh token revoked"

    assert client.post("/api/v1/auth/logout").status_code == 401
    assert client.post("/api/v1/auth/logout", headers=system_headers).status_code == 200


def test_forgot_password_issues_code_without_revealing_accounts(client):
    _sign_up_tokens(client, "forgot@example.com", "0788000011")

    r = client.post("/api/v1/auth/forgot-password", json={"email": "forgot@example.com"})
    assert r.status_code == 200
    assert _reset_code("forgot@example.com") is not None

    r = client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_reset_password_with_code(client):
    tokens = _sign_up_tokens(client, "reset@example.com", "0788000012")
    client.post("/api/v1/auth/forgot-password", json={"email": "reset@example.com"})
    code = _reset_code("reset@example.com")

    body = {"email": "reset@example.com", "code": "000000", "password": "brand-new-pass"}
    assert client.post("/api/v1/auth/reset-password", json=body).status_code == 400

    r = client.post("/api/v1/auth/reset-password", json={**body, "code": code})
    assert r.status_code == 200, r.text

    r = client.post("/api/v1/auth/sign-in", json={"email": "reset@example.com", "password": "secret-pass-1"})
    assert r.status_code == 401
    r = client.post("/api/v1/auth/sign-in", json={"email": "reset@example.com", "password": "brand-new-pass"})
    assert r.status_code == 200
    assert r.json()["user"]["verified_at"] is not None

    # sessions opened before the reset cannot be refreshed, and the code is spent
    assert client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401
    assert client.post("/api/v1/auth/reset-password", json={**body, "code": code}).status_code == 400


def test_reset_password_enforces_length(client):
    r = client.post(
        "/api/v1/auth/reset-password",
        json={"email": "x@example.com", "code": "123456", "password": "short"},
    )
    assert r.status_code == 422
