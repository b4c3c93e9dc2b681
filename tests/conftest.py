# tests/conftest.py
from __future__ import annotations

import os

# must be set before communiserver.config is imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["APP_ENV"] = "test"
os.environ["PASSWORD_PBKDF2_ITERS"] = "1000"
os.environ["SYSTEM_API_TOKEN"] = "test-system-token"
os.environ["SEED_ON_STARTUP"] = "false"

import pytest
from fastapi.testclient import TestClient

from communiserver import models  # noqa: F401  (registers tables)
from communiserver.db import Base, engine
from communiserver.main import create_app

SYSTEM_HEADERS = {"Authorization": "Bearer test-system-token"}


@pytest.fixture(autouse=True)
def db_session():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


@pytest.fixture
def system_headers() -> dict[str, str]:
    return dict(SYSTEM_HEADERS)


@pytest.fixture
def location_chain(client, system_headers):
    """Province > District > Sector > Cell > Village > Isibo; returns the ids."""

    def _make(suffix: str = "A") -> dict[str, str]:
        ids: dict[str, str] = {}
        steps = [
            ("provinces", "province_id", {"name": f"prov {suffix}"}),
            ("districts", "district_id", {"name": f"dist {suffix}", "province_id": None}),
            ("sectors", "sector_id", {"name": f"sect {suffix}", "district_id": None}),
            ("cells", "cell_id", {"name": f"cell {suffix}", "sector_id": None}),
            ("villages", "village_id", {"name": f"vill {suffix}", "cell_id": None}),
            ("isibos", "isibo_id", {"name": f"isibo {suffix}", "village_id": None}),
        ]
        for path, key, body in steps:
            body = {k: (ids[k] if v is None else v) for k, v in body.items()}
            r = client.post(f"/api/v1/{path}", json=body, headers=system_headers)
            assert r.status_code == 201, r.text
            ids[key] = r.json()["id"]
        return ids

    return _make


@pytest.fixture
def sign_up(client):
    """Registers a citizen; returns (user json, auth headers)."""

    def _make(email: str, phone: str, names: str = "Test Person", password: str = "secret-pass-1"):
        r = client.post(
            "/api/v1/auth/sign-up",
            json={"email": email, "phone": phone, "names": names, "password": password},
        )
        assert r.status_code == 201, r.text
        data = r.json()
        return data["user"], {"Authorization": f"Bearer {data['access_token']}"}

    return _make


@pytest.fixture
def leader(client, system_headers):
    """Creates a leader through the admin API and signs in; returns (user json, auth headers)."""

    def _make(role: str, location: dict[str, str], email: str, phone: str, password: str = "leader-pass-1"):
        key = {"CELL_LEADER": "cell_id", "VILLAGE_LEADER": "village_id", "ISIBO_LEADER": "isibo_id"}[role]
        r = client.post(
            "/api/v1/users",
            json={"email": email, "phone": phone, "names": role.title(), "role": role, key: location[key],
                  "password": password},
            headers=system_headers,
        )
        assert r.status_code == 201, r.text
        tokens = client.post("/api/v1/auth/sign-in", json={"email": email, "password": password}).json()
        return r.json(), {"Authorization": f"Bearer {tokens['access_token']}"}

    return _make
