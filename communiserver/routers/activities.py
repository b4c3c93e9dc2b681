# communiserver/routers/activities.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_any_permission, require_permission
from ..db import get_db
from ..domain.pagination import DEFAULT_SIZE, MAX_SIZE, PageRequest
from ..domain.permissions import Permission as P
from ..domain.task_status import TaskStatus
from ..schemas import (
    ActivityCreate,
    ActivityOut,
    ActivityUpdate,
    ReportCreate,
    ReportOut,
    ReportUpdate,
    TaskCreate,
    TaskOut,
    TaskUpdate,
)
from ..services import activities_service as svc
from ..services.report_documents import report_document
from ..services.report_renderer import render_pdf

router = APIRouter(prefix="/activities", tags=["activities"])
tasks_router = APIRouter(prefix="/tasks", tags=["activities"])
reports_router = APIRouter(prefix="/reports", tags=["activities"])


def _deleted_guard(include_deleted: bool, p: Principal) -> None:
    if include_deleted and not p.is_admin:
        raise HTTPException(status_code=403, detail="include_deleted requires role ADMIN")


# -------------------- Activities --------------------

@router.post("", response_model=ActivityOut, status_code=201)
def create_activity(payload: ActivityCreate, db: Session = Depends(get_db), p=Depends(require_permission(P.CREATE_ACTIVITY))):
    return svc.create_activity(db, payload.model_dump(), principal=p)


@router.get("")
def list_activities(
    page: int = Query(default=1, ge=1),
    size: int = Query(default=DEFAULT_SIZE, ge=1, le=MAX_SIZE),
    q: Optional[str] = Query(default=None),
    village_id: Optional[uuid.UUID] = None,
    cell_id: Optional[uuid.UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
) -> dict[str, Any]:
    return svc.list_activities(
        db,
        PageRequest(page=page, size=size),
        village_id=village_id,
        cell_id=cell_id,
        q=q,
        date_from=date_from,
        date_to=date_to,
        serialize=ActivityOut.model_validate,
    )


@router.get("/{activity_id}", response_model=ActivityOut)
def get_activity(
    activity_id: uuid.UUID,
    include_deleted: bool = Query(default=False),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    _deleted_guard(include_deleted, p)
    return svc.must_get_activity(db, activity_id, include_deleted=include_deleted)


@router.patch("/{activity_id}", response_model=ActivityOut)
def update_activity(
    activity_id: uuid.UUID,
    payload: ActivityUpdate,
    db: Session = Depends(get_db),
    p=Depends(require_permission(P.UPDATE_ACTIVITY)),
):
    return svc.update_activity(db, activity_id, payload.model_dump(exclude_unset=True), principal=p)


@router.delete("/{activity_id}")
def delete_activity(activity_id: uuid.UUID, db: Session = Depends(get_db), p=Depends(require_permission(P.UPDATE_ACTIVITY))):
    svc.delete_activity(db, activity_id, principal=p)
    return {"ok": True}


# -------------------- Tasks --------------------

@tasks_router.post("", response_model=TaskOut, status_code=201)
def create_task(payload: TaskCreate, db: Session = Depends(get_db), p=Depends(require_permission(P.CREATE_ACTIVITY))):
    return svc.create_task(db, payload.model_dump(), principal=p)


@tasks_router.get("")
def list_tasks(
    page: int = Query(default=1, ge=1),
    size: int = Query(default=DEFAULT_SIZE, ge=1, le=MAX_SIZE),
    q: Optional[str] = Query(default=None),
    activity_id: Optional[uuid.UUID] = None,
    isibo_id: Optional[uuid.UUID] = None,
    status: Optional[TaskStatus] = None,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
) -> dict[str, Any]:
    return svc.list_tasks(
        db,
        PageRequest(page=page, size=size),
        activity_id=activity_id,
        isibo_id=isibo_id,
        status=status,
        q=q,
        serialize=TaskOut.model_validate,
    )


@tasks_router.get("/{task_id}", response_model=TaskOut)
def get_task(
    task_id: uuid.UUID,
    include_deleted: bool = Query(default=False),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    _deleted_guard(include_deleted, p)
    return svc.must_get_task(db, task_id, include_deleted=include_deleted)


@tasks_router.patch("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: uuid.UUID,
    payload: TaskUpdate,
    db: Session = Depends(get_db),
    p=Depends(require_any_permission(P.UPDATE_ACTIVITY, P.ADD_TASK_REPORT)),
):
    return svc.update_task(db, task_id, payload.model_dump(exclude_unset=True), principal=p)


@tasks_router.delete("/{task_id}")
def delete_task(task_id: uuid.UUID, db: Session = Depends(get_db), p=Depends(require_permission(P.UPDATE_ACTIVITY))):
    svc.delete_task(db, task_id, principal=p)
    return {"ok": True}


# -------------------- Reports --------------------

@reports_router.post("", response_model=ReportOut, status_code=201)
def create_report(
    payload: ReportCreate,
    db: Session = Depends(get_db),
    p=Depends(require_any_permission(P.ADD_ACTIVITY_REPORT, P.ADD_TASK_REPORT)),
):
    return svc.create_report(db, payload.model_dump(), principal=p)


@reports_router.get("")
def list_reports(
    page: int = Query(default=1, ge=1),
    size: int = Query(default=DEFAULT_SIZE, ge=1, le=MAX_SIZE),
    task_id: Optional[uuid.UUID] = None,
    activity_id: Optional[uuid.UUID] = None,
    isibo_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
) -> dict[str, Any]:
    return svc.list_reports(
        db,
        PageRequest(page=page, size=size),
        task_id=task_id,
        activity_id=activity_id,
        isibo_id=isibo_id,
        serialize=ReportOut.model_validate,
    )


@reports_router.get("/{report_id}", response_model=ReportOut)
def get_report(
    report_id: uuid.UUID,
    include_deleted: bool = Query(default=False),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    _deleted_guard(include_deleted, p)
    return svc.must_get_report(db, report_id, include_deleted=include_deleted)


@reports_router.get("/{report_id}/pdf")
def report_pdf(report_id: uuid.UUID, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    report = svc.must_get_report(db, report_id)
    pdf = render_pdf(report_document(report, generated_by=p.email))
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="report-{report.id}.pdf"'},
    )


@reports_router.patch("/{report_id}", response_model=ReportOut)
def update_report(
    report_id: uuid.UUID,
    payload: ReportUpdate,
    db: Session = Depends(get_db),
    p=Depends(require_any_permission(P.ADD_ACTIVITY_REPORT, P.ADD_TASK_REPORT)),
):
    return svc.update_report(db, report_id, payload.model_dump(exclude_unset=True), principal=p)


@reports_router.delete("/{report_id}")
def delete_report(report_id: uuid.UUID, db: Session = Depends(get_db), p=Depends(require_permission(P.UPDATE_ACTIVITY))):
    svc.delete_report(db, report_id, principal=p)
    return {"ok": True}
