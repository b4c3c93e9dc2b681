# communiserver/domain/metrics.py
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

TIME_RANGES: dict[str, int] = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
DEFAULT_TIME_RANGE = "30d"


def safe_pct(num: float | int | None, den: float | int | None) -> int:
    """Rounded percentage; 0 when the denominator is 0 or missing."""
    n = float(num or 0)
    d = float(den or 0)
    if d == 0:
        return 0
    out = n / d * 100.0
    if math.isnan(out) or math.isinf(out):
        return 0
    # half-up rounding to match the dashboard's Math.round
    return int(math.floor(out + 0.5))


def safe_ratio_pct(num: float | int | None, den: float | int | None) -> float:
    """Unrounded percentage for variance figures; 0 when the denominator is 0."""
    d = float(den or 0)
    if d == 0:
        return 0.0
    out = float(num or 0) / d * 100.0
    return 0.0 if math.isnan(out) or math.isinf(out) else out


def budget_efficiency(estimated: float | int | None, actual: float | int | None) -> int:
    # estimated / actual; spending less than planned scores above 100
    return safe_pct(estimated, actual)


def safe_avg(total: float | int | None, count: int | None) -> float:
    if not count:
        return 0.0
    return round(float(total or 0) / float(count), 2)


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime
    label: str

    def days(self) -> list[date]:
        out: list[date] = []
        d = self.start.date()
        last = self.end.date()
        while d <= last:
            out.append(d)
            d += timedelta(days=1)
        return out


def resolve_window(
    time_range: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    *,
    now: Optional[datetime] = None,
) -> TimeWindow:
    """
    Explicit dates win over `time_range`; both must be given together and in order.
    Raises ValueError on bad input.
    """
    if (start_date is None) != (end_date is None):
        raise ValueError("start_date and end_date must be provided together")

    if start_date is not None and end_date is not None:
        if start_date > end_date:
            raise ValueError("start_date must be on or before end_date")
        return TimeWindow(
            start=datetime.combine(start_date, time.min),
            end=datetime.combine(end_date, time.max),
            label="custom",
        )

    key = (time_range or DEFAULT_TIME_RANGE).strip().lower()
    if key not in TIME_RANGES:
        raise ValueError(f"time_range must be one of {', '.join(TIME_RANGES)}")

    end = now or datetime.utcnow()
    start = datetime.combine((end - timedelta(days=TIME_RANGES[key])).date(), time.min)
    return TimeWindow(start=start, end=end, label=key)
