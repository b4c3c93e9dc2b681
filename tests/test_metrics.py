# tests/test_metrics.py
from __future__ import annotations

from datetime import date, datetime

import pytest

from communiserver.domain.metrics import budget_efficiency, resolve_window, safe_avg, safe_pct


def test_safe_pct_zero_denominator():
    assert safe_pct(5, 0) == 0
    assert safe_pct(None, None) == 0
    assert safe_avg(10, 0) == 0.0


def test_safe_pct_rounds_half_up():
    assert safe_pct(1, 8) == 13  # 12.5
    assert safe_pct(2, 3) == 67


def test_budget_efficiency_is_estimated_over_actual():
    assert budget_efficiency(100, 80) == 125
    assert budget_efficiency(100, 0) == 0


def test_resolve_window_named_range():
    now = datetime(2024, 3, 31, 12, 0, 0)
    w = resolve_window("7d", now=now)
    assert w.start == datetime(2024, 3, 24)
    assert w.end == now
    assert w.label == "7d"
    assert len(w.days()) == 8


def test_resolve_window_explicit_dates_win():
    w = resolve_window("7d", date(2024, 1, 1), date(2024, 1, 3))
    assert w.label == "custom"
    assert [d.day for d in w.days()] == [1, 2, 3]


@pytest.mark.parametrize(
    "args",
    [
        ("2w", None, None),
        (None, date(2024, 1, 1), None),
        (None, date(2024, 2, 1), date(2024, 1, 1)),
    ],
)
def test_resolve_window_rejects_bad_input(args):
    with pytest.raises(ValueError):
        resolve_window(*args)
