# communiserver/services/activities_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.pagination import PageRequest, paginate
from ..domain.task_status import InvalidTransition, TaskStatus, transition
from ..models import Activity, Isibo, Report, Task, Village, live
from .scope import ensure_covers

log = logging.getLogger("communiserver.activities")


# -----------------------------
# Lookups
# -----------------------------
def must_get_activity(db: Session, activity_id: uuid.UUID, *, include_deleted: bool = False) -> Activity:
    stmt = select(Activity).where(Activity.id == activity_id)
    if not include_deleted:
        stmt = stmt.where(live(Activity))
    row = db.scalar(stmt)
    if row is None:
        raise HTTPException(status_code=404, detail="Activity not found")
    return row


def must_get_task(db: Session, task_id: uuid.UUID, *, include_deleted: bool = False) -> Task:
    stmt = select(Task).where(Task.id == task_id)
    if not include_deleted:
        stmt = stmt.where(live(Task))
    row = db.scalar(stmt)
    if row is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return row


def must_get_report(db: Session, report_id: uuid.UUID, *, include_deleted: bool = False) -> Report:
    stmt = select(Report).where(Report.id == report_id)
    if not include_deleted:
        stmt = stmt.where(live(Report))
    row = db.scalar(stmt)
    if row is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return row


def _must_get_isibo(db: Session, isibo_id: uuid.UUID) -> Isibo:
    row = db.scalar(select(Isibo).where(Isibo.id == isibo_id, live(Isibo)))
    if row is None:
        raise HTTPException(status_code=404, detail="Isibo not found")
    return row


def _apply_status(task: Task, target: TaskStatus | str) -> None:
    try:
        task.status = transition(task.status, target).value
    except InvalidTransition as e:
        raise HTTPException(status_code=400, detail=str(e))


def _check_activity(db: Session, principal, activity: Activity) -> None:
    ensure_covers(db, principal, "village", db.get(Village, activity.village_id))


def _check_task(db: Session, principal, task: Task) -> None:
    ensure_covers(db, principal, "isibo", db.get(Isibo, task.isibo_id))


# -----------------------------
# Tasks
# -----------------------------
def _new_task(db: Session, activity: Activity, data: dict[str, Any], principal=None) -> Task:
    isibo = _must_get_isibo(db, data["isibo_id"])
    ensure_covers(db, principal, "isibo", isibo)

    dup = db.scalar(
        select(Task.id).where(Task.activity_id == activity.id, Task.isibo_id == isibo.id, live(Task))
    )
    if dup is not None:
        raise HTTPException(status_code=409, detail="A task for this activity is already assigned to this Isibo")

    expected = data.get("expected_participants")
    if expected is None:
        expected = len(isibo.members or [])

    task = Task(
        title=str(data["title"]).strip(),
        description=data.get("description") or "",
        status=TaskStatus.PENDING.value,
        activity_id=activity.id,
        isibo_id=isibo.id,
        estimated_cost=float(data.get("estimated_cost") or 0),
        actual_cost=0,
        expected_participants=int(expected),
        actual_participants=0,
        expected_financial_impact=float(data.get("expected_financial_impact") or 0),
        actual_financial_impact=0,
    )
    db.add(task)
    db.flush()
    return task


def create_task(db: Session, data: dict[str, Any], *, principal=None) -> Task:
    activity = must_get_activity(db, data["activity_id"])
    _check_activity(db, principal, activity)
    task = _new_task(db, activity, data, principal)
    db.commit()
    db.refresh(task)
    log.info("task created", extra={"entity_type": "task", "entity_id": str(task.id)})
    return task


def update_task(db: Session, task_id: uuid.UUID, changes: dict[str, Any], *, principal=None) -> Task:
    task = must_get_task(db, task_id)
    _check_task(db, principal, task)
    status = changes.pop("status", None)
    if status is not None:
        _apply_status(task, status)
    for k, v in changes.items():
        if v is not None:
            setattr(task, k, v)
    db.commit()
    db.refresh(task)
    return task


def delete_task(db: Session, task_id: uuid.UUID, *, principal=None) -> None:
    task = must_get_task(db, task_id)
    _check_task(db, principal, task)
    for r in task.reports:
        if r.deleted_at is None:
            r.soft_delete()
    task.soft_delete()
    db.commit()


def list_tasks(
    db: Session,
    req: PageRequest,
    *,
    activity_id: Optional[uuid.UUID] = None,
    isibo_id: Optional[uuid.UUID] = None,
    status: Optional[TaskStatus] = None,
    q: Optional[str] = None,
    serialize=None,
) -> dict[str, Any]:
    stmt = select(Task).where(live(Task))
    if activity_id is not None:
        stmt = stmt.where(Task.activity_id == activity_id)
    if isibo_id is not None:
        stmt = stmt.where(Task.isibo_id == isibo_id)
    if status is not None:
        stmt = stmt.where(Task.status == TaskStatus(status).value)
    if q and q.strip():
        stmt = stmt.where(Task.title.icontains(q.strip(), autoescape=True))
    stmt = stmt.order_by(Task.created_at.desc(), Task.id.asc())
    return paginate(db, stmt, req, serialize=serialize)


# -----------------------------
# Activities
# -----------------------------
def create_activity(db: Session, data: dict[str, Any], *, principal=None) -> Activity:
    village = db.scalar(select(Village).where(Village.id == data["village_id"], live(Village)))
    if village is None:
        raise HTTPException(status_code=404, detail="Village not found")
    ensure_covers(db, principal, "village", village)

    activity = Activity(
        title=str(data["title"]).strip(),
        description=data.get("description") or "",
        date=data["date"],
        village_id=village.id,
    )
    db.add(activity)
    db.flush()

    seen: set[uuid.UUID] = set()
    for t in data.get("tasks") or []:
        if t["isibo_id"] in seen:
            raise HTTPException(status_code=409, detail="A task for this activity is already assigned to this Isibo")
        seen.add(t["isibo_id"])
        _new_task(db, activity, t, principal)

    db.commit()
    db.refresh(activity)
    log.info("activity created", extra={"entity_type": "activity", "entity_id": str(activity.id)})
    return activity


def update_activity(db: Session, activity_id: uuid.UUID, changes: dict[str, Any], *, principal=None) -> Activity:
    activity = must_get_activity(db, activity_id)
    _check_activity(db, principal, activity)
    for k, v in changes.items():
        if v is not None:
            setattr(activity, k, v)
    db.commit()
    db.refresh(activity)
    return activity


def delete_activity(db: Session, activity_id: uuid.UUID, *, principal=None) -> None:
    activity = must_get_activity(db, activity_id)
    _check_activity(db, principal, activity)
    for task in activity.live_tasks:
        for r in task.reports:
            if r.deleted_at is None:
                r.soft_delete()
        task.soft_delete()
    activity.soft_delete()
    db.commit()
    log.info("activity deleted", extra={"entity_type": "activity", "entity_id": str(activity.id)})


def list_activities(
    db: Session,
    req: PageRequest,
    *,
    village_id: Optional[uuid.UUID] = None,
    cell_id: Optional[uuid.UUID] = None,
    q: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    serialize=None,
) -> dict[str, Any]:
    stmt = select(Activity).where(live(Activity))
    if village_id is not None:
        stmt = stmt.where(Activity.village_id == village_id)
    if cell_id is not None:
        stmt = stmt.join(Village, Activity.village_id == Village.id).where(Village.cell_id == cell_id)
    if q and q.strip():
        stmt = stmt.where(Activity.title.icontains(q.strip(), autoescape=True))
    if date_from is not None:
        stmt = stmt.where(Activity.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Activity.date <= date_to)
    stmt = stmt.order_by(Activity.date.desc(), Activity.id.asc())
    return paginate(db, stmt, req, serialize=serialize)


# -----------------------------
# Reports
# -----------------------------
_REPORT_FIELDS = (
    "comment",
    "evidence_urls",
    "attendance",
    "materials_used",
    "challenges_faced",
    "suggestions",
    "estimated_cost",
    "actual_cost",
    "expected_participants",
    "actual_participants",
    "expected_financial_impact",
    "actual_financial_impact",
)


def create_report(db: Session, data: dict[str, Any], *, principal=None) -> Report:
    task = must_get_task(db, data["task_id"])
    _check_task(db, principal, task)
    activity = must_get_activity(db, data["activity_id"])
    if task.activity_id != activity.id:
        raise HTTPException(status_code=400, detail="Task does not belong to this activity")

    dup = db.scalar(
        select(Report.id).where(Report.task_id == task.id, Report.activity_id == activity.id, live(Report))
    )
    if dup is not None:
        raise HTTPException(status_code=409, detail="A report for this task and activity already exists.")

    report = Report(task_id=task.id, activity_id=activity.id)
    for k in _REPORT_FIELDS:
        if data.get(k) is not None:
            setattr(report, k, data[k])

    if data.get("task_status") is not None:
        _apply_status(task, data["task_status"])

    db.add(report)
    db.commit()
    db.refresh(report)
    log.info(
        "report submitted",
        extra={"entity_type": "report", "entity_id": str(report.id), "location_id": str(task.isibo_id)},
    )
    return report


def update_report(db: Session, report_id: uuid.UUID, changes: dict[str, Any], *, principal=None) -> Report:
    report = must_get_report(db, report_id)
    _check_task(db, principal, must_get_task(db, report.task_id, include_deleted=True))
    status = changes.pop("task_status", None)
    if status is not None:
        _apply_status(must_get_task(db, report.task_id), status)
    for k, v in changes.items():
        if k in _REPORT_FIELDS and v is not None:
            setattr(report, k, v)
    db.commit()
    db.refresh(report)
    return report


def delete_report(db: Session, report_id: uuid.UUID, *, principal=None) -> None:
    report = must_get_report(db, report_id)
    _check_task(db, principal, must_get_task(db, report.task_id, include_deleted=True))
    report.soft_delete()
    db.commit()


def list_reports(
    db: Session,
    req: PageRequest,
    *,
    task_id: Optional[uuid.UUID] = None,
    activity_id: Optional[uuid.UUID] = None,
    isibo_id: Optional[uuid.UUID] = None,
    serialize=None,
) -> dict[str, Any]:
    stmt = select(Report).where(live(Report))
    if task_id is not None:
        stmt = stmt.where(Report.task_id == task_id)
    if activity_id is not None:
        stmt = stmt.where(Report.activity_id == activity_id)
    if isibo_id is not None:
        stmt = stmt.join(Task, Report.task_id == Task.id).where(Task.isibo_id == isibo_id)
    stmt = stmt.order_by(Report.created_at.desc(), Report.id.asc())
    return paginate(db, stmt, req, serialize=serialize)
