# communiserver/services/report_documents.py
"""Builds ReportDocument section lists from reports and analytics rollups."""
from __future__ import annotations

from typing import Any

from ..domain.metrics import TimeWindow, safe_pct
from ..models import Report, utcnow
from .report_renderer import Metric, ReportDocument, Section


def _money(v: float | int | None) -> str:
    return f"{float(v or 0):,.0f} RWF"


def _trend(delta: float) -> str:
    if delta > 0:
        return "up"
    if delta < 0:
        return "down"
    return "neutral"


def _signed(v: float | int) -> str:
    return f"{v:+,.0f}"


def report_document(report: Report, *, generated_by: str) -> ReportDocument:
    task = report.task
    activity = report.activity
    isibo_name = task.isibo.name if task is not None and task.isibo is not None else "N/A"

    overview = (
        f'Report for task "{task.title if task else "Unknown Task"}" of activity '
        f'"{activity.title if activity else "Unknown Activity"}", carried out by isibo {isibo_name}'
    )
    if activity is not None:
        overview += f" on {activity.date:%Y-%m-%d}"
    overview += f". Task status: {task.status if task else 'unknown'}."

    cost_delta = float(report.actual_cost or 0) - float(report.estimated_cost or 0)
    part_delta = int(report.actual_participants or 0) - int(report.expected_participants or 0)
    impact_delta = float(report.actual_financial_impact or 0) - float(report.expected_financial_impact or 0)

    metrics = [
        Metric("Actual Cost", _money(report.actual_cost), _signed(cost_delta), _trend(-cost_delta)),
        Metric("Participants", int(report.actual_participants or 0), _signed(part_delta), _trend(part_delta)),
        Metric(
            "Financial Impact",
            _money(report.actual_financial_impact),
            _signed(impact_delta),
            _trend(impact_delta),
        ),
        Metric(
            "Participation Rate",
            f"{safe_pct(report.actual_participants, report.expected_participants)}%",
        ),
    ]

    financials = [
        {"Metric": "Estimated Cost", "Amount (RWF)": f"{float(report.estimated_cost or 0):,.0f}", "Status": "Planned"},
        {"Metric": "Actual Cost", "Amount (RWF)": f"{float(report.actual_cost or 0):,.0f}", "Status": "Actual"},
        {
            "Metric": "Cost Variance",
            "Amount (RWF)": f"{cost_delta:,.0f}",
            "Status": "Over Budget" if cost_delta > 0 else "Under Budget",
        },
        {
            "Metric": "Expected Impact",
            "Amount (RWF)": f"{float(report.expected_financial_impact or 0):,.0f}",
            "Status": "Planned",
        },
        {
            "Metric": "Actual Impact",
            "Amount (RWF)": f"{float(report.actual_financial_impact or 0):,.0f}",
            "Status": "Achieved",
        },
    ]

    sections = [
        Section("Overview", "text", overview),
        Section("Outcome", "metrics", metrics),
        Section("Financial Analysis", "table", financials),
    ]

    attendance = [
        {"Name": a.get("names", ""), "Email": a.get("email") or "", "Phone": a.get("phone") or ""}
        for a in (report.attendance or [])
    ]
    if attendance:
        sections.append(Section("Attendance", "table", attendance))

    notes = []
    if report.comment:
        notes.append(f"Comments: {report.comment}")
    if report.challenges_faced:
        notes.append(f"Challenges: {report.challenges_faced}")
    if report.suggestions:
        notes.append(f"Suggestions: {report.suggestions}")
    if report.materials_used:
        notes.append(f"Materials Used: {', '.join(report.materials_used)}")
    if report.evidence_urls:
        notes.append(f"Evidence Files: {len(report.evidence_urls)} file(s) attached")
    if notes:
        sections.append(Section("Implementation Notes", "text", "\n".join(notes)))

    return ReportDocument(
        title="Activity Report",
        subtitle=activity.title if activity is not None else None,
        generated_by=generated_by,
        generated_at=utcnow(),
        sections=sections,
    )


def analytics_document(summary: dict[str, Any], window: TimeWindow, *, generated_by: str) -> ReportDocument:
    core = summary.get("coreMetrics") or {}
    activity = core.get("activityStats") or {}
    reports = core.get("reportStats") or {}
    finance = core.get("financialAnalytics") or {}
    locations = core.get("locationStats") or {}
    users = core.get("userStats") or []

    completion = activity.get("taskCompletionRate", 0)
    evidence = reports.get("evidencePercentage", 0)

    intro = (
        "Overview of community engagement and performance between "
        f"{window.start:%Y-%m-%d} and {window.end:%Y-%m-%d}: activities, tasks and reports "
        "across the locations visible to the requesting account."
    )

    kpis = [
        Metric("Total Users", sum(int(u.get("count", 0)) for u in users)),
        Metric(
            "Task Completion Rate",
            f"{completion}%",
            "on track" if completion >= 70 else "behind",
            "up" if completion >= 70 else "down",
        ),
        Metric(
            "Evidence Submission Rate",
            f"{evidence}%",
            "on track" if evidence >= 60 else "behind",
            "up" if evidence >= 60 else "down",
        ),
        Metric("Total Reports", reports.get("totalReports", 0)),
        Metric("Activities With Reports", activity.get("activitiesWithReports", 0)),
        Metric("Leadership Coverage", f"{locations.get('leadershipCoveragePercentage', 0)}%"),
        Metric(
            "Actual Cost",
            _money(finance.get("totalActualCost")),
            _signed(finance.get("costVariance", 0)),
            _trend(-float(finance.get("costVariance", 0))),
        ),
        Metric("Budget Efficiency", f"{finance.get('budgetEfficiency', 0)}%"),
    ]

    role_rows = [
        {
            "Role": str(u.get("role", "")).replace("_", " ").title(),
            "Count": u.get("count", 0),
            "Percentage": f"{u.get('percentage', 0)}%",
        }
        for u in users
    ]

    location_rows = [
        {
            "Location": row["locationName"],
            "Type": str(row["locationType"]).capitalize(),
            "Activities": row["totalActivities"],
            "Tasks": f"{row['completedTasks']}/{row['totalTasks']}",
            "Completion Rate": f"{row['completionRate']}%",
            "Reports": row["totalReports"],
        }
        for row in (summary.get("locationPerformance") or [])[:10]
    ]

    return ReportDocument(
        title="Community Dashboard Report",
        subtitle="Comprehensive Analytics Overview",
        generated_by=generated_by,
        generated_at=utcnow(),
        sections=[
            Section("Executive Summary", "text", intro),
            Section("Key Performance Indicators", "metrics", kpis),
            Section("User Distribution by Role", "table", role_rows),
            Section("Location Performance Summary", "table", location_rows),
        ],
    )
