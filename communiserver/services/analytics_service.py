# communiserver/services/analytics_service.py
"""
Read-only rollups for the dashboard.

Everything is computed per request from live rows; nothing is cached or
materialized. Keys are camelCase because the dashboard consumes them as-is.
"""
from __future__ import annotations

from collections import Counter
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..auth import Principal
from ..domain.metrics import TimeWindow, budget_efficiency, safe_avg, safe_pct, safe_ratio_pct
from ..domain.task_status import TaskStatus
from ..models import Activity, Cell, Isibo, Report, Task, User, Village, live, utcnow
from .scope import Scope, scope_for


# -----------------------------
# Helpers
# -----------------------------
def _count(db: Session, model, *where) -> int:
    return int(db.scalar(select(func.count()).select_from(model).where(*where)) or 0)


def _in_window(model, window: TimeWindow):
    return model.created_at.between(window.start, window.end)


def _reports_in_window(db: Session, window: TimeWindow, scope: Scope) -> list[Report]:
    return list(
        db.scalars(
            select(Report)
            .join(Task, Report.task_id == Task.id)
            .where(live(Report), live(Task), _in_window(Report, window), scope.reports())
        ).all()
    )


# -----------------------------
# Core metrics
# -----------------------------
def user_role_stats(db: Session, scope: Scope) -> list[dict[str, Any]]:
    rows = db.execute(
        select(User.role, func.count())
        .where(live(User), scope.users())
        .group_by(User.role)
        .order_by(User.role)
    ).all()
    total = sum(int(n) for _, n in rows)
    return [{"role": role, "count": int(n), "percentage": safe_pct(n, total)} for role, n in rows]


def location_stats(db: Session, scope: Scope) -> dict[str, Any]:
    total_villages = _count(db, Village, live(Village), scope.villages())
    villages_led = _count(db, Village, live(Village), scope.villages(), Village.has_leader.is_(True))
    total_isibos = _count(db, Isibo, live(Isibo), scope.isibos())
    isibos_led = _count(db, Isibo, live(Isibo), scope.isibos(), Isibo.has_leader.is_(True))
    total_cells = _count(db, Cell, live(Cell), scope.cells())

    return {
        "totalVillages": total_villages,
        "villagesWithLeaders": villages_led,
        "villagesWithoutLeaders": total_villages - villages_led,
        "leadershipCoveragePercentage": safe_pct(villages_led, total_villages),
        "totalIsibos": total_isibos,
        "isibosWithLeaders": isibos_led,
        "isibosWithoutLeaders": total_isibos - isibos_led,
        "isiboLeadershipPercentage": safe_pct(isibos_led, total_isibos),
        "totalCells": total_cells,
    }


def _task_status_counts(db: Session, window: TimeWindow, scope: Scope) -> Counter:
    rows = db.execute(
        select(Task.status, func.count())
        .where(live(Task), _in_window(Task, window), scope.tasks())
        .group_by(Task.status)
    ).all()
    return Counter({str(s): int(n) for s, n in rows})


def _activity_count(db: Session, window: TimeWindow, scope: Scope) -> int:
    return _count(db, Activity, live(Activity), _in_window(Activity, window), scope.activities())


def activity_stats(db: Session, window: TimeWindow, scope: Scope) -> dict[str, Any]:
    total_activities = _activity_count(db, window, scope)
    with_reports = int(
        db.scalar(
            select(func.count(func.distinct(Report.activity_id)))
            .select_from(Report)
            .join(Activity, Report.activity_id == Activity.id)
            .where(
                live(Report),
                live(Activity),
                _in_window(Activity, window),
                scope.activities(),
                scope.reports(),
            )
        )
        or 0
    )

    statuses = _task_status_counts(db, window, scope)
    total_tasks = sum(statuses.values())
    completed = statuses[TaskStatus.COMPLETED.value]

    return {
        "totalActivities": total_activities,
        "activitiesWithReports": with_reports,
        "activitiesWithoutReports": total_activities - with_reports,
        "totalTasks": total_tasks,
        "pendingTasks": statuses[TaskStatus.PENDING.value],
        "activeTasks": statuses[TaskStatus.ONGOING.value],
        "completedTasks": completed,
        "cancelledTasks": statuses[TaskStatus.CANCELLED.value],
        "taskCompletionRate": safe_pct(completed, total_tasks),
        "activityReportingRate": safe_pct(with_reports, total_activities),
    }


def report_stats(reports: list[Report]) -> dict[str, Any]:
    total = len(reports)
    with_evidence = sum(1 for r in reports if r.evidence_urls)
    attendees = sum(len(r.attendance or []) for r in reports)
    evidence_items = sum(len(r.evidence_urls or []) for r in reports)

    return {
        "totalReports": total,
        "reportsWithEvidence": with_evidence,
        "reportsWithoutEvidence": total - with_evidence,
        "evidencePercentage": safe_pct(with_evidence, total),
        "averageAttendance": safe_avg(attendees, total),
        "totalAttendees": attendees,
        "reportsWithChallenges": sum(1 for r in reports if (r.challenges_faced or "").strip()),
        "reportsWithSuggestions": sum(1 for r in reports if (r.suggestions or "").strip()),
        "reportsWithMaterials": sum(1 for r in reports if r.materials_used),
        "averageEvidencePerReport": safe_avg(evidence_items, total),
    }


def financial_analytics(reports: list[Report], activity_count: int) -> dict[str, Any]:
    """Sums the as-executed figures recorded on reports."""
    est_cost = sum(float(r.estimated_cost or 0) for r in reports)
    act_cost = sum(float(r.actual_cost or 0) for r in reports)
    est_impact = sum(float(r.expected_financial_impact or 0) for r in reports)
    act_impact = sum(float(r.actual_financial_impact or 0) for r in reports)

    cost_variance = act_cost - est_cost
    impact_variance = act_impact - est_impact

    return {
        "totalEstimatedCost": est_cost,
        "totalActualCost": act_cost,
        "costVariance": cost_variance,
        "costVariancePercentage": safe_ratio_pct(cost_variance, est_cost),
        "totalEstimatedImpact": est_impact,
        "totalActualImpact": act_impact,
        "impactVariance": impact_variance,
        "impactVariancePercentage": safe_ratio_pct(impact_variance, est_impact),
        "averageCostPerActivity": safe_avg(act_cost, activity_count),
        "averageCostPerTask": safe_avg(act_cost, len(reports)),
        "budgetEfficiency": budget_efficiency(est_cost, act_cost),
    }


def participation_analytics(reports: list[Report], activity_count: int) -> dict[str, Any]:
    expected = sum(int(r.expected_participants or 0) for r in reports)
    actual = sum(int(r.actual_participants or 0) for r in reports)
    return {
        "totalExpectedParticipants": expected,
        "totalActualParticipants": actual,
        "participationRate": safe_pct(actual, expected),
        "averageParticipantsPerActivity": round(safe_avg(actual, activity_count)),
        "averageParticipantsPerTask": round(safe_avg(actual, len(reports))),
    }


def task_performance(db: Session, window: TimeWindow, scope: Scope, activity_count: int) -> dict[str, Any]:
    statuses = _task_status_counts(db, window, scope)
    total = sum(statuses.values())
    completed = statuses[TaskStatus.COMPLETED.value]
    return {
        "totalTasks": total,
        "completedTasks": completed,
        "ongoingTasks": statuses[TaskStatus.ONGOING.value],
        "pendingTasks": statuses[TaskStatus.PENDING.value],
        "cancelledTasks": statuses[TaskStatus.CANCELLED.value],
        "taskCompletionRate": safe_pct(completed, total),
        "averageTasksPerActivity": safe_avg(total, activity_count),
    }


def core_metrics(db: Session, principal: Principal, window: TimeWindow) -> dict[str, Any]:
    scope = scope_for(principal)
    reports = _reports_in_window(db, window, scope)
    activity_count = _activity_count(db, window, scope)

    return {
        "userStats": user_role_stats(db, scope),
        "locationStats": location_stats(db, scope),
        "activityStats": activity_stats(db, window, scope),
        "reportStats": report_stats(reports),
        "financialAnalytics": financial_analytics(reports, activity_count),
        "participationAnalytics": participation_analytics(reports, activity_count),
        "taskPerformance": task_performance(db, window, scope, activity_count),
    }


# -----------------------------
# Time series
# -----------------------------
def time_series(db: Session, principal: Principal, window: TimeWindow) -> list[dict[str, Any]]:
    scope = scope_for(principal)

    def _days(stmt) -> Counter:
        return Counter(ts.date() for ts in db.scalars(stmt).all())

    activities = _days(
        select(Activity.created_at).where(live(Activity), _in_window(Activity, window), scope.activities())
    )
    tasks = _days(select(Task.created_at).where(live(Task), _in_window(Task, window), scope.tasks()))
    completed = _days(
        select(Task.created_at).where(
            live(Task),
            _in_window(Task, window),
            scope.tasks(),
            Task.status == TaskStatus.COMPLETED.value,
        )
    )
    reports = _days(select(Report.created_at).where(live(Report), _in_window(Report, window), scope.reports()))

    return [
        {
            "date": d.isoformat(),
            "activities": activities[d],
            "tasks": tasks[d],
            "reports": reports[d],
            "completedTasks": completed[d],
        }
        for d in window.days()
    ]


# -----------------------------
# Location performance
# -----------------------------
def location_performance(db: Session, principal: Principal, window: TimeWindow) -> list[dict[str, Any]]:
    scope = scope_for(principal)
    isibos = db.scalars(select(Isibo).where(live(Isibo), scope.isibos()).order_by(Isibo.name)).all()
    if not isibos:
        return []

    ids = [i.id for i in isibos]
    task_rows = db.execute(
        select(Task.isibo_id, Task.status, Task.activity_id).where(
            live(Task), _in_window(Task, window), Task.isibo_id.in_(ids)
        )
    ).all()
    report_rows = db.execute(
        select(Task.isibo_id, func.count())
        .select_from(Report)
        .join(Task, Report.task_id == Task.id)
        .where(live(Report), _in_window(Report, window), Task.isibo_id.in_(ids))
        .group_by(Task.isibo_id)
    ).all()
    reports_by_isibo = {iid: int(n) for iid, n in report_rows}

    out: list[dict[str, Any]] = []
    for isibo in isibos:
        mine = [r for r in task_rows if r.isibo_id == isibo.id]
        done = sum(1 for r in mine if r.status == TaskStatus.COMPLETED.value)
        out.append(
            {
                "locationId": str(isibo.id),
                "locationName": isibo.name,
                "locationType": "isibo",
                "totalActivities": len({r.activity_id for r in mine}),
                "totalTasks": len(mine),
                "completedTasks": done,
                "completionRate": safe_pct(done, len(mine)),
                "totalReports": reports_by_isibo.get(isibo.id, 0),
            }
        )
    return out


def engagement_metrics(db: Session, principal: Principal, window: TimeWindow) -> dict[str, Any]:
    scope = scope_for(principal)
    isibos = db.scalars(select(Isibo).where(live(Isibo), scope.isibos())).all()
    citizens = sum(len(i.members or []) for i in isibos)

    reports = _reports_in_window(db, window, scope)
    ranked = sorted(
        location_performance(db, principal, window),
        key=lambda row: (row["totalTasks"], row["totalReports"]),
        reverse=True,
    )

    return {
        "totalCitizens": citizens,
        "averageCitizensPerIsibo": safe_avg(citizens, len(isibos)),
        "mostActiveIsibos": ranked[:5],
        "reportSubmissionFrequency": safe_avg(len(reports), len(window.days())),
    }


def dashboard_summary(db: Session, principal: Principal, window: TimeWindow) -> dict[str, Any]:
    return {
        "coreMetrics": core_metrics(db, principal, window),
        "timeSeriesData": time_series(db, principal, window),
        "locationPerformance": location_performance(db, principal, window),
        "engagementMetrics": engagement_metrics(db, principal, window),
        "generatedAt": utcnow().isoformat(),
        "timeRange": window.label,
        "startDate": window.start.isoformat(),
        "endDate": window.end.isoformat(),
    }
