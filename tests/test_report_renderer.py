# tests/test_report_renderer.py
from __future__ import annotations

from datetime import datetime

import pytest

from communiserver.services.report_renderer import (
    Metric,
    ReportDocument,
    ReportRenderer,
    Section,
    footer_text,
    render_pdf,
    truncate,
)

WHEN = datetime(2024, 5, 4, 14, 30, 5)


def _doc(*sections: Section) -> ReportDocument:
    return ReportDocument(title="Activity Report", generated_by="admin@example.com", generated_at=WHEN, sections=list(sections))


def test_truncate():
    assert truncate("short", 40) == "short"
    # 20mm fits 8 characters
    assert truncate("a much longer value", 20) == "a muc..."
    assert len(truncate("x" * 100, 42.5)) == 17


def test_footer_text():
    assert footer_text("ops", WHEN) == "Generated by ops on 2024-05-04 at 14:30:05"


def test_single_page_document():
    pdf = render_pdf(
        _doc(
            Section("Overview", "text", "Weeding of the community garden."),
            Section("Outcome", "metrics", [Metric("Participants", 12, change="+2", trend="up"), {"label": "Cost", "value": "800"}]),
        )
    )
    assert pdf.startswith(b"%PDF")
    assert b"Page 1 of 1" in pdf
    assert b"Generated by admin@example.com on 2024-05-04 at 14:30:05" in pdf


def test_long_table_breaks_pages_and_numbers_them():
    rows = [{"Name": f"Attendee {i}", "Phone": f"0788{i:06d}"} for i in range(80)]
    renderer = ReportRenderer()
    pdf = renderer.render(_doc(Section("Attendance", "table", rows)))
    assert renderer.page_count >= 3
    assert f"Page 2 of {renderer.page_count}".encode() in pdf
    # header row is repeated on every page
    assert pdf.count(b"(Name)") == renderer.page_count


def test_long_text_flows_onto_next_page():
    renderer = ReportRenderer()
    renderer.render(_doc(Section("Notes", "text", "lorem ipsum dolor sit amet " * 600)))
    assert renderer.page_count > 1


def test_empty_sections_render():
    pdf = render_pdf(_doc(Section("Attendance", "table", []), Section("Outcome", "metrics", [])))
    assert pdf.startswith(b"%PDF")


def test_unknown_section_type():
    with pytest.raises(ValueError):
        render_pdf(_doc(Section("Chart", "chart", {})))  # type: ignore[arg-type]


def test_page_break_outside_render_is_an_error():
    with pytest.raises(RuntimeError):
        ReportRenderer().ensure_space(10_000)
