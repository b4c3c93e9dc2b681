# tests/test_client.py
from __future__ import annotations

import httpx
import pytest

from communiserver.clients.communiserver_client import (
    SAMPLE_PUBLIC_ACTIVITIES,
    ApiError,
    CommuniserverClient,
    ProfileFetchRateLimiter,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_rate_limiter_min_gap_and_window():
    clock = FakeClock()
    rl = ProfileFetchRateLimiter(max_calls=3, window_seconds=30, min_gap_seconds=2, clock=clock)

    assert rl.try_acquire()
    assert not rl.try_acquire()  # inside the 2s gap
    clock.advance(2)
    assert rl.try_acquire()
    clock.advance(2)
    assert rl.try_acquire()
    clock.advance(2)
    assert not rl.allowed()  # 3 attempts in the last 30s

    clock.advance(24)  # first attempt is now 30s old
    assert rl.try_acquire()


def test_rate_limiter_ages_out_attempts_one_by_one():
    clock = FakeClock()
    rl = ProfileFetchRateLimiter(max_calls=3, window_seconds=30, min_gap_seconds=2, clock=clock)
    for _ in range(3):  # t=0, t=10, t=20
        assert rl.try_acquire()
        clock.advance(10)

    assert rl.try_acquire()  # t=30: only the t=0 attempt has expired
    clock.advance(2)
    assert not rl.allowed()  # t=10, t=20 and t=30 are still inside the window
    clock.advance(8)
    assert rl.allowed()  # t=40: t=10 has aged out


def test_rate_limiter_reset():
    clock = FakeClock()
    rl = ProfileFetchRateLimiter(clock=clock)
    rl.try_acquire()
    assert not rl.allowed()
    rl.reset()
    assert rl.allowed()


def _client(handler, **kw) -> CommuniserverClient:
    return CommuniserverClient("http://api.test", transport=httpx.MockTransport(handler), api_prefix="/api/v1", **kw)


def test_profile_is_cached_while_rate_limited():
    hits = []

    def handler(request: httpx.Request) -> httpx.Response:
        hits.append(request.url.path)
        return httpx.Response(200, json={"id": "p1", "names": f"call {len(hits)}"})

    clock = FakeClock()
    c = _client(handler, token="t", rate_limiter=ProfileFetchRateLimiter(clock=clock))
    assert c.profile()["names"] == "call 1"
    assert c.profile()["names"] == "call 1"
    assert hits == ["/api/v1/profiles/me"]

    clock.advance(5)
    assert c.profile()["names"] == "call 2"


def test_bearer_token_and_sign_in():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("authorization"))
        if request.url.path.endswith("/auth/sign-in"):
            return httpx.Response(200, json={"access_token": "abc", "refresh_token": "r", "user": {}})
        return httpx.Response(200, json={"role": "CITIZEN"})

    c = _client(handler)
    c.sign_in("a@example.com", "pw")
    assert c.me() == {"role": "CITIZEN"}
    assert seen == [None, "Bearer abc"]


def test_public_activities_fall_back_when_backend_is_down():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    data = _client(handler).public_activities()
    assert data == SAMPLE_PUBLIC_ACTIVITIES
    # callers get a copy
    data["items"].clear()
    assert len(SAMPLE_PUBLIC_ACTIVITIES["items"]) == 2


def test_public_activities_fall_back_on_server_error():
    c = _client(lambda request: httpx.Response(503, json={"detail": "down"}))
    assert c.public_activities()["totalItems"] == 2


def test_client_errors_are_raised():
    c = _client(lambda request: httpx.Response(403, json={"detail": "Missing permission: X"}))
    with pytest.raises(ApiError) as e:
        c.public_activities()
    assert e.value.status == 403
    assert e.value.message == "Missing permission: X"


def test_pdf_download_returns_bytes():
    c = _client(lambda request: httpx.Response(200, content=b"%PDF-1.4", headers={"content-type": "application/pdf"}))
    assert c.report_pdf("r1") == b"%PDF-1.4"


def test_upload_evidence_sends_multipart():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'name="folder"' in request.content
        return httpx.Response(201, json={"urls": ["https://cdn/x.jpg"]})

    c = _client(handler, token="t")
    assert c.upload_evidence([("x.jpg", b"123", "image/jpeg")]) == ["https://cdn/x.jpg"]
