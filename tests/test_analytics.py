# tests/test_analytics.py
from __future__ import annotations

API = "/api/v1"


def _leader(client, system_headers, *, email, phone, role, **location):
    r = client.post(
        f"{API}/users",
        json={"email": email, "phone": phone, "names": email, "role": role, "password": "leader-pass-1", **location},
        headers=system_headers,
    )
    assert r.status_code == 201, r.text
    r = client.post(f"{API}/auth/sign-in", json={"email": email, "password": "leader-pass-1"})
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def _activity(client, headers, ids, title="Cleanup"):
    r = client.post(
        f"{API}/activities",
        json={
            "title": title,
            "date": "2024-05-04T09:00:00",
            "village_id": ids["village_id"],
            "tasks": [{"title": "Sweep", "isibo_id": ids["isibo_id"], "estimated_cost": 500}],
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_empty_database_has_zero_rates(client, system_headers):
    r = client.get(f"{API}/analytics/core-metrics", headers=system_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["userStats"] == []
    assert body["locationStats"]["leadershipCoveragePercentage"] == 0
    assert body["activityStats"]["taskCompletionRate"] == 0
    assert body["activityStats"]["activityReportingRate"] == 0
    assert body["reportStats"]["evidencePercentage"] == 0
    assert body["financialAnalytics"]["budgetEfficiency"] == 0
    assert body["participationAnalytics"]["participationRate"] == 0


def test_bad_window_is_400(client, system_headers):
    r = client.get(f"{API}/analytics/core-metrics", params={"time_range": "2w"}, headers=system_headers)
    assert r.status_code == 400
    r = client.get(f"{API}/analytics/core-metrics", params={"start_date": "2024-01-01"}, headers=system_headers)
    assert r.status_code == 400
    r = client.get(
        f"{API}/analytics/time-series",
        params={"start_date": "2024-02-01", "end_date": "2024-01-01"},
        headers=system_headers,
    )
    assert r.status_code == 400


def test_citizen_cannot_view_analytics(client, sign_up):
    _, headers = sign_up("cit@example.com", "0788200001")
    assert client.get(f"{API}/analytics/core-metrics", headers=headers).status_code == 403


def test_village_leader_sees_only_own_village(client, system_headers, location_chain):
    a = location_chain("A")
    b = location_chain("B")
    _activity(client, system_headers, a, "In A")
    _activity(client, system_headers, b, "In B")

    headers = _leader(
        client, system_headers, email="vl@example.com", phone="0788200002", role="VILLAGE_LEADER",
        village_id=a["village_id"],
    )
    body = client.get(f"{API}/analytics/core-metrics", headers=headers).json()
    assert body["activityStats"]["totalActivities"] == 1
    assert body["activityStats"]["totalTasks"] == 1
    assert body["locationStats"]["totalVillages"] == 1
    assert body["locationStats"]["villagesWithLeaders"] == 1
    assert body["locationStats"]["leadershipCoveragePercentage"] == 100

    admin = client.get(f"{API}/analytics/core-metrics", headers=system_headers).json()
    assert admin["activityStats"]["totalActivities"] == 2
    assert admin["locationStats"]["leadershipCoveragePercentage"] == 50


def test_financial_rollup_uses_report_figures(client, system_headers, location_chain):
    ids = location_chain()
    activity = _activity(client, system_headers, ids)
    client.post(
        f"{API}/reports",
        json={
            "task_id": activity["tasks"][0]["id"],
            "activity_id": activity["id"],
            "estimated_cost": 1000,
            "actual_cost": 800,
            "expected_participants": 10,
            "actual_participants": 8,
            "evidence_urls": ["https://cdn.example.com/a.jpg"],
        },
        headers=system_headers,
    )
    body = client.get(f"{API}/analytics/core-metrics", headers=system_headers).json()
    fin = body["financialAnalytics"]
    assert fin["totalEstimatedCost"] == 1000
    assert fin["totalActualCost"] == 800
    assert fin["costVariance"] == -200
    assert fin["budgetEfficiency"] == 125
    assert body["participationAnalytics"]["participationRate"] == 80
    assert body["reportStats"]["evidencePercentage"] == 100


def test_time_series_has_one_row_per_day(client, system_headers):
    r = client.get(
        f"{API}/analytics/time-series",
        params={"start_date": "2024-01-01", "end_date": "2024-01-07"},
        headers=system_headers,
    )
    rows = r.json()
    assert len(rows) == 7
    assert rows[0] == {"date": "2024-01-01", "activities": 0, "tasks": 0, "reports": 0, "completedTasks": 0}


def test_location_performance_per_isibo(client, system_headers, location_chain):
    ids = location_chain()
    _activity(client, system_headers, ids)
    rows = client.get(f"{API}/analytics/location-performance", headers=system_headers).json()
    assert len(rows) == 1
    assert rows[0]["locationId"] == ids["isibo_id"]
    assert rows[0]["totalTasks"] == 1
    assert rows[0]["completionRate"] == 0


def test_dashboard_summary_and_pdf(client, system_headers, location_chain):
    ids = location_chain()
    _activity(client, system_headers, ids)

    body = client.get(f"{API}/analytics/dashboard-summary", params={"time_range": "7d"}, headers=system_headers).json()
    assert set(body) >= {"coreMetrics", "timeSeriesData", "locationPerformance", "engagementMetrics", "timeRange"}
    assert body["timeRange"] == "7d"
    assert len(body["timeSeriesData"]) == 8

    r = client.get(f"{API}/analytics/report.pdf", headers=system_headers)
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert b"Community Dashboard Report" in r.content
