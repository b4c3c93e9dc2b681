# communiserver/clients/communiserver_client.py
"""
Typed httpx client for the Communiserver REST API.

Used by server-side callers (render jobs, scripts) that talk to a running
instance either with a user session or with the system bearer token.
"""
from __future__ import annotations

import copy
import logging
import time
from collections import deque
from typing import Any, Callable, Optional

import httpx

from ..config import settings

log = logging.getLogger("communiserver.client")


class ApiError(Exception):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


class ProfileFetchRateLimiter:
    """
    Sliding-log limiter for profile fetches.

    Each attempt timestamp is kept and aged out on its own, so at most
    `max_calls` attempts fall inside any `window_seconds` span, with at least
    `min_gap_seconds` between two attempts. The clock is injectable.
    """

    def __init__(
        self,
        max_calls: int = 3,
        window_seconds: float = 30.0,
        min_gap_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self.min_gap_seconds = min_gap_seconds
        self._clock = clock
        self._attempts: deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._attempts and now - self._attempts[0] >= self.window_seconds:
            self._attempts.popleft()

    def _allowed_at(self, now: float) -> bool:
        self._prune(now)
        if self._attempts and now - self._attempts[-1] < self.min_gap_seconds:
            return False
        return len(self._attempts) < self.max_calls

    def allowed(self) -> bool:
        return self._allowed_at(self._clock())

    def try_acquire(self) -> bool:
        now = self._clock()
        if not self._allowed_at(now):
            return False
        self._attempts.append(now)
        return True

    def reset(self) -> None:
        self._attempts.clear()


SAMPLE_PUBLIC_ACTIVITIES: dict[str, Any] = {
    "items": [
        {
            "id": "sample-1",
            "title": "Community Garden Cleanup",
            "description": "Morning cleanup of the community garden. Bring gloves.",
            "date": "2024-01-15T09:00:00Z",
            "village": {"id": "village-1", "name": "KIMISAGARA"},
            "tasks": [
                {
                    "id": "task-1",
                    "title": "Weeding",
                    "description": "Remove weeds from garden beds",
                    "status": "pending",
                    "isibo": {"id": "isibo-1", "name": "GREEN TEAM"},
                }
            ],
        },
        {
            "id": "sample-2",
            "title": "Youth Football Tournament",
            "description": "Annual tournament for youth aged 12-18.",
            "date": "2024-01-20T14:00:00Z",
            "village": {"id": "village-2", "name": "KACYIRU"},
            "tasks": [],
        },
    ],
    "totalItems": 2,
    "itemCount": 2,
    "itemsPerPage": 20,
    "totalPages": 1,
    "currentPage": 1,
}


def _error_message(r: httpx.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text or r.reason_phrase
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return str(detail)
    return r.reason_phrase or "request failed"


class CommuniserverClient:
    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        rate_limiter: Optional[ProfileFetchRateLimiter] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 20.0,
        api_prefix: Optional[str] = None,
    ) -> None:
        prefix = (api_prefix if api_prefix is not None else settings.api_prefix).rstrip("/")
        self.token = token
        self.rate_limiter = rate_limiter or ProfileFetchRateLimiter()
        self._profile: Optional[dict[str, Any]] = None
        self._http = httpx.Client(base_url=base_url.rstrip("/") + prefix, transport=transport, timeout=timeout)

    # ---- plumbing ----
    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "CommuniserverClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(self, method: str, path: str, **kwargs) -> Any:
        r = self._http.request(method, path, headers=self._headers(), **kwargs)
        if r.status_code >= 400:
            raise ApiError(r.status_code, _error_message(r))
        if r.headers.get("content-type", "").startswith("application/json"):
            return r.json()
        return r.content

    # ---- auth ----
    def sign_in(self, email: str, password: str) -> dict[str, Any]:
        data = self._request("POST", "/auth/sign-in", json={"email": email, "password": password})
        self.token = data["access_token"]
        return data

    def me(self) -> dict[str, Any]:
        return self._request("GET", "/auth/me")

    def profile(self) -> Optional[dict[str, Any]]:
        """Fetches /profiles/me unless rate limited, in which case the last result is returned."""
        if not self.rate_limiter.try_acquire():
            log.info("profile fetch rate limited")
            return self._profile
        self._profile = self._request("GET", "/profiles/me")
        return self._profile

    # ---- locations ----
    def list_locations(self, tier: str, *, page: int = 1, size: int = 10, **filters: Any) -> dict[str, Any]:
        params = {"page": page, "size": size, **{k: v for k, v in filters.items() if v is not None}}
        return self._request("GET", f"/{tier}", params=params)

    def search_locations(self, q: str, *, page: int = 1, size: int = 10) -> dict[str, Any]:
        return self._request("GET", "/search/locations", params={"q": q, "page": page, "size": size})

    # ---- activities ----
    def list_activities(
        self,
        *,
        page: int = 1,
        size: int = 10,
        q: Optional[str] = None,
        village_id: Optional[str] = None,
        cell_id: Optional[str] = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"page": page, "size": size}
        if q:
            params["q"] = q
        if village_id:
            params["village_id"] = village_id
        if cell_id:
            params["cell_id"] = cell_id
        return self._request("GET", "/activities", params=params)

    def public_activities(self, **kwargs: Any) -> dict[str, Any]:
        """Activities for the public page; static sample data when the backend is down."""
        try:
            return self.list_activities(**kwargs)
        except httpx.TransportError as e:
            log.warning("backend unreachable, serving sample activities: %s", e)
        except ApiError as e:
            if e.status < 500:
                raise
            log.warning("backend error %s, serving sample activities", e.status)
        return copy.deepcopy(SAMPLE_PUBLIC_ACTIVITIES)

    def create_report(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/reports", json=payload)

    def report_pdf(self, report_id: str) -> bytes:
        return self._request("GET", f"/reports/{report_id}/pdf")

    def upload_evidence(self, files: list[tuple[str, bytes, str]], *, folder: str = "reports") -> list[str]:
        multipart = [("files", (name, content, ctype)) for name, content, ctype in files]
        data = self._request("POST", "/uploads", files=multipart, data={"folder": folder})
        return list(data["urls"])

    # ---- analytics ----
    def dashboard_summary(self, *, time_range: str = "30d") -> dict[str, Any]:
        return self._request("GET", "/analytics/dashboard-summary", params={"time_range": time_range})
