# tests/test_users.py
from __future__ import annotations

API = "/api/v1"


def test_admin_creates_village_leader(client, system_headers, location_chain):
    ids = location_chain()
    r = client.post(
        f"{API}/users",
        json={
            "email": "vl@example.com",
            "phone": "0788500001",
            "names": "Village Lead",
            "role": "VILLAGE_LEADER",
            "village_id": ids["village_id"],
        },
        headers=system_headers,
    )
    assert r.status_code == 201, r.text
    user = r.json()
    assert user["role"] == "VILLAGE_LEADER"
    assert user["verified_at"] is not None
    assert user["profile"]["is_village_leader"] is True

    village = client.get(f"{API}/villages/{ids['village_id']}", headers=system_headers).json()
    assert village["leader_id"] == user["profile_id"]


def test_leader_role_requires_location(client, system_headers):
    r = client.post(
        f"{API}/users",
        json={"email": "x@example.com", "phone": "0788500002", "names": "X", "role": "CELL_LEADER"},
        headers=system_headers,
    )
    assert r.status_code == 400


def test_citizen_cannot_create_users(client, sign_up):
    _, headers = sign_up("c@example.com", "0788500003")
    r = client.post(
        f"{API}/users",
        json={"email": "y@example.com", "phone": "0788500004", "names": "Y"},
        headers=headers,
    )
    assert r.status_code == 403


def test_leader_list_is_scoped_to_location(client, system_headers, location_chain):
    a = location_chain("A")
    b = location_chain("B")
    client.post(
        f"{API}/users",
        json={"email": "il@example.com", "phone": "0788500005", "names": "IL", "role": "ISIBO_LEADER",
              "isibo_id": a["isibo_id"], "password": "leader-pass-1"},
        headers=system_headers,
    )
    for i, ids in enumerate((a, b)):
        client.post(
            f"{API}/users",
            json={"email": f"m{i}@example.com", "phone": f"078850001{i}", "names": f"M{i}", "isibo_id": ids["isibo_id"]},
            headers=system_headers,
        )
    token = client.post(f"{API}/auth/sign-in", json={"email": "il@example.com", "password": "leader-pass-1"}).json()
    headers = {"Authorization": f"Bearer {token['access_token']}"}

    emails = {u["email"] for u in client.get(f"{API}/users", headers=headers).json()["items"]}
    assert emails == {"il@example.com", "m0@example.com"}


def test_deleted_user_frees_leadership(client, system_headers, location_chain, sign_up):
    ids = location_chain()
    user, headers = sign_up("gone@example.com", "0788500020")
    client.post(f"{API}/cells/{ids['cell_id']}/leader", json={"user_id": user["id"]}, headers=system_headers)

    assert client.delete(f"{API}/users/{user['id']}", headers=system_headers).status_code == 200
    cell = client.get(f"{API}/cells/{ids['cell_id']}", headers=system_headers).json()
    assert cell["has_leader"] is False
    assert client.get("/api/v1/auth/me", headers=headers).status_code == 401


def test_profile_me(client, sign_up, location_chain):
    ids = location_chain()
    _, headers = sign_up("me@example.com", "0788500030", names="Me Myself")
    r = client.patch(f"{API}/profiles/me", json={"village_id": ids["village_id"]}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["village_id"] == ids["village_id"]
    assert client.get(f"{API}/profiles/me", headers=headers).json()["names"] == "Me Myself"


def test_refused_leader_assignment_leaves_no_account(client, system_headers, location_chain):
    ids = location_chain()
    body = {"names": "Village Lead", "role": "VILLAGE_LEADER", "village_id": ids["village_id"]}
    r = client.post(f"{API}/users", json={**body, "email": "a@x.io", "phone": "0788500040"}, headers=system_headers)
    assert r.status_code == 201, r.text

    second = {**body, "email": "b@x.io", "phone": "0788500041"}
    r = client.post(f"{API}/users", json=second, headers=system_headers)
    assert r.status_code == 409
    assert r.json()["detail"] == "This village already has a leader"

    listing = client.get(f"{API}/users", params={"q": "b@x.io"}, headers=system_headers).json()
    assert listing["totalItems"] == 0

    # neither the email nor the phone is held by a leftover account
    r = client.post(f"{API}/users", json={**second, "role": "CITIZEN"}, headers=system_headers)
    assert r.status_code == 201, r.text
    assert r.json()["role"] == "CITIZEN"


def test_cell_leader_creates_village_leaders_only_in_own_cell(client, location_chain, leader):
    a = location_chain("A")
    b = location_chain("B")
    _, headers = leader("CELL_LEADER", a, "cl@example.com", "0788500050")

    body = {"names": "VL", "role": "VILLAGE_LEADER"}
    r = client.post(
        f"{API}/users",
        json={**body, "email": "vlb@example.com", "phone": "0788500051", "village_id": b["village_id"]},
        headers=headers,
    )
    assert r.status_code == 403

    r = client.post(
        f"{API}/users",
        json={**body, "email": "vla@example.com", "phone": "0788500052", "village_id": a["village_id"]},
        headers=headers,
    )
    assert r.status_code == 201, r.text


def test_user_search_treats_wildcards_literally(client, system_headers):
    for i, email in enumerate(("ab_cd@example.com", "abxcd@example.com")):
        client.post(
            f"{API}/users",
            json={"email": email, "phone": f"078850006{i}", "names": f"U{i}"},
            headers=system_headers,
        )
    emails = [u["email"] for u in client.get(f"{API}/users", params={"q": "ab_cd"}, headers=system_headers).json()["items"]]
    assert emails == ["ab_cd@example.com"]

    assert client.get(f"{API}/users", params={"q": "%"}, headers=system_headers).json()["totalItems"] == 0


def test_delete_me(client, sign_up, system_headers):
    user, headers = sign_up("leaving@example.com", "0788500070")
    r = client.delete(f"{API}/users/me", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"ok": True}

    assert client.get("/api/v1/auth/me", headers=headers).status_code == 401
    r = client.get(f"{API}/users/{user['id']}", params={"include_deleted": True}, headers=system_headers)
    assert r.json()["deleted_at"] is not None

    assert client.delete(f"{API}/users/me", headers=system_headers).status_code == 400
