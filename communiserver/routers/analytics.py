# communiserver/routers/analytics.py
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ..auth import Principal, require_any_permission
from ..db import get_db
from ..domain.metrics import DEFAULT_TIME_RANGE, TimeWindow, resolve_window
from ..domain.permissions import Permission as P
from ..services import analytics_service as svc
from ..services.report_documents import analytics_document
from ..services.report_renderer import render_pdf

router = APIRouter(prefix="/analytics", tags=["analytics"])

_viewer = require_any_permission(P.VIEW_CELL_ANALYTICS, P.VIEW_VILLAGE_ANALYTICS, P.VIEW_ISIBO_ANALYTICS)


def time_window(
    time_range: str = Query(default=DEFAULT_TIME_RANGE, description="7d|30d|90d|1y"),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
) -> TimeWindow:
    try:
        return resolve_window(time_range, start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/core-metrics")
def core_metrics(
    window: TimeWindow = Depends(time_window),
    db: Session = Depends(get_db),
    p: Principal = Depends(_viewer),
) -> dict[str, Any]:
    return svc.core_metrics(db, p, window)


@router.get("/time-series")
def time_series(
    window: TimeWindow = Depends(time_window),
    db: Session = Depends(get_db),
    p: Principal = Depends(_viewer),
) -> list[dict[str, Any]]:
    return svc.time_series(db, p, window)


@router.get("/location-performance")
def location_performance(
    window: TimeWindow = Depends(time_window),
    db: Session = Depends(get_db),
    p: Principal = Depends(_viewer),
) -> list[dict[str, Any]]:
    return svc.location_performance(db, p, window)


@router.get("/engagement-metrics")
def engagement_metrics(
    window: TimeWindow = Depends(time_window),
    db: Session = Depends(get_db),
    p: Principal = Depends(_viewer),
) -> dict[str, Any]:
    return svc.engagement_metrics(db, p, window)


@router.get("/dashboard-summary")
def dashboard_summary(
    window: TimeWindow = Depends(time_window),
    db: Session = Depends(get_db),
    p: Principal = Depends(_viewer),
) -> dict[str, Any]:
    return svc.dashboard_summary(db, p, window)


@router.get("/report.pdf")
def dashboard_pdf(
    window: TimeWindow = Depends(time_window),
    db: Session = Depends(get_db),
    p: Principal = Depends(_viewer),
):
    summary = svc.dashboard_summary(db, p, window)
    pdf = render_pdf(analytics_document(summary, window, generated_by=p.email))
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="dashboard-{window.end:%Y%m%d}.pdf"'},
    )
