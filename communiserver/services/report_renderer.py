# communiserver/services/report_renderer.py
"""
Multi-page A4 report layout on a reportlab canvas.

Coordinates are kept top-down in millimetres (y grows towards the bottom of
the page) and converted to reportlab's bottom-up points only when drawing.
"""
from __future__ import annotations

import io
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

PAGE_W = 210.0
PAGE_H = 297.0
MARGIN = 20.0
CONTENT_W = PAGE_W - 2 * MARGIN
HEADER_H = 30.0
CONTENT_TOP = 40.0
# content must end above the footer band
BOTTOM_LIMIT = PAGE_H - 30.0

BRAND = colors.Color(59 / 255, 130 / 255, 246 / 255)
TILE_FILL = colors.Color(248 / 255, 250 / 255, 252 / 255)
TILE_BORDER = colors.Color(226 / 255, 232 / 255, 240 / 255)
MUTED = colors.Color(100 / 255, 100 / 255, 100 / 255)
BODY = colors.Color(60 / 255, 60 / 255, 60 / 255)
RULE = colors.Color(200 / 255, 200 / 255, 200 / 255)
TREND_COLORS = {
    "up": colors.Color(34 / 255, 197 / 255, 94 / 255),
    "down": colors.Color(239 / 255, 68 / 255, 68 / 255),
    "neutral": colors.Color(156 / 255, 163 / 255, 175 / 255),
}

TILE_W = 80.0
TILE_H = 25.0
TILE_GAP = 10.0
TABLE_ROW_H = 8.0


@dataclass
class Metric:
    label: str
    value: Any
    change: Optional[str] = None
    trend: Optional[Literal["up", "down", "neutral"]] = None


@dataclass
class Section:
    title: str
    type: Literal["text", "metrics", "table"]
    content: Any


@dataclass
class ReportDocument:
    title: str
    generated_by: str
    generated_at: datetime
    sections: list[Section] = field(default_factory=list)
    subtitle: Optional[str] = None


def truncate(text: str, col_width_mm: float) -> str:
    """Approximate fit: 2.5mm per character, with a '...' tail when cut."""
    max_len = int(math.floor(col_width_mm / 2.5))
    if len(text) <= max_len:
        return text
    return text[: max(max_len - 3, 0)] + "..."


def footer_text(generated_by: str, generated_at: datetime) -> str:
    return f"Generated by {generated_by} on {generated_at:%Y-%m-%d} at {generated_at:%H:%M:%S}"


class _FooterCanvas(canvas.Canvas):
    """Defers page emission so every footer can print the final page count."""

    def __init__(self, *args, footer: str = "", **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._footer = footer
        self._pages: list[dict] = []

    def showPage(self) -> None:  # noqa: N802 (reportlab API)
        self._pages.append(dict(self.__dict__))
        self._startPage()

    def save(self) -> None:
        total = len(self._pages)
        for i, state in enumerate(self._pages, start=1):
            self.__dict__.update(state)
            self._draw_footer(i, total)
            super().showPage()
        super().save()

    def _draw_footer(self, page: int, total: int) -> None:
        y_line = (PAGE_H - (PAGE_H - 15)) * mm
        y_text = (PAGE_H - (PAGE_H - 8)) * mm
        self.setStrokeColor(RULE)
        self.line(MARGIN * mm, y_line, (PAGE_W - MARGIN) * mm, y_line)
        self.setFillColor(MUTED)
        self.setFont("Helvetica", 8)
        self.drawString(MARGIN * mm, y_text, self._footer)
        self.drawRightString((PAGE_W - MARGIN) * mm, y_text, f"Page {page} of {total}")


class ReportRenderer:
    def __init__(self) -> None:
        self.y = MARGIN
        self.page_count = 0
        self._c: Optional[_FooterCanvas] = None

    # ---- geometry ----
    @staticmethod
    def _ry(y_mm: float) -> float:
        return (PAGE_H - y_mm) * mm

    def _new_page(self) -> None:
        if self._c is None:
            raise RuntimeError("no page to break: render() has not started a document")
        self._c.showPage()
        self.page_count += 1
        self.y = MARGIN

    def ensure_space(self, needed: float) -> bool:
        """Starts a new page when `needed` mm do not fit; returns True if it did."""
        if self.y + needed > BOTTOM_LIMIT:
            self._new_page()
            return True
        return False

    # ---- blocks ----
    def _header(self, title: str, subtitle: Optional[str]) -> None:
        c = self._c
        c.setFillColor(BRAND)
        c.rect(0, self._ry(HEADER_H), PAGE_W * mm, HEADER_H * mm, stroke=0, fill=1)
        c.setFillColor(colors.white)
        c.setFont("Helvetica-Bold", 20)
        c.drawString(MARGIN * mm, self._ry(20), title)
        if subtitle:
            c.setFont("Helvetica", 12)
            c.drawString(MARGIN * mm, self._ry(26), subtitle)
        self.y = CONTENT_TOP

    def _generated_line(self, when: datetime) -> None:
        c = self._c
        c.setFillColor(MUTED)
        c.setFont("Helvetica", 10)
        c.drawString(MARGIN * mm, self._ry(self.y), f"Generated on {when:%Y-%m-%d} at {when:%H:%M:%S}")
        self.y += 15

    def _section_title(self, title: str) -> None:
        self.ensure_space(15)
        c = self._c
        c.setFillColor(colors.black)
        c.setFont("Helvetica-Bold", 14)
        c.drawString(MARGIN * mm, self._ry(self.y), title)
        width = c.stringWidth(title, "Helvetica-Bold", 14)
        c.setStrokeColor(BRAND)
        c.line(MARGIN * mm, self._ry(self.y + 2), MARGIN * mm + width, self._ry(self.y + 2))
        self.y += 15

    def _text(self, content: str) -> None:
        lines = simpleSplit(str(content or ""), "Helvetica", 10, CONTENT_W * mm) or [""]
        self.ensure_space(min(len(lines) * 5 + 10, BOTTOM_LIMIT - MARGIN))
        c = self._c
        c.setFont("Helvetica", 10)
        for line in lines:
            if self.ensure_space(5):
                c.setFont("Helvetica", 10)
            c.setFillColor(BODY)
            c.drawString(MARGIN * mm, self._ry(self.y), line)
            self.y += 5
        self.y += 10

    def _metrics(self, metrics: Sequence[Metric | dict]) -> None:
        items = [m if isinstance(m, Metric) else Metric(**m) for m in metrics]
        if not items:
            return
        self.ensure_space(60)
        c = self._c
        for start in range(0, len(items), 2):
            self.ensure_space(TILE_H + TILE_GAP)
            for col, m in enumerate(items[start : start + 2]):
                x = MARGIN + col * (TILE_W + TILE_GAP)
                c.setFillColor(TILE_FILL)
                c.setStrokeColor(TILE_BORDER)
                c.rect(x * mm, self._ry(self.y + TILE_H), TILE_W * mm, TILE_H * mm, stroke=1, fill=1)

                c.setFillColor(MUTED)
                c.setFont("Helvetica", 9)
                c.drawString((x + 5) * mm, self._ry(self.y + 8), str(m.label))

                c.setFillColor(colors.black)
                c.setFont("Helvetica-Bold", 16)
                c.drawString((x + 5) * mm, self._ry(self.y + 18), str(m.value))

                if m.change and m.trend:
                    c.setFillColor(TREND_COLORS.get(m.trend, TREND_COLORS["neutral"]))
                    c.setFont("Helvetica", 8)
                    c.drawString((x + TILE_W - 25) * mm, self._ry(self.y + 18), str(m.change))
            self.y += TILE_H + TILE_GAP
        self.y += 10

    def _table_header(self, headers: list[str], col_w: float) -> None:
        c = self._c
        c.setFillColor(BRAND)
        c.rect(MARGIN * mm, self._ry(self.y + 7), CONTENT_W * mm, 12 * mm, stroke=0, fill=1)
        c.setFillColor(colors.white)
        c.setFont("Helvetica-Bold", 10)
        for i, h in enumerate(headers):
            c.drawString((MARGIN + i * col_w + 2) * mm, self._ry(self.y + 2), truncate(str(h), col_w))
        self.y += 15

    def _table(self, rows: Sequence[dict]) -> None:
        if not rows:
            return
        self.ensure_space(40)
        headers = list(rows[0].keys())
        col_w = CONTENT_W / len(headers)
        self._table_header(headers, col_w)

        c = self._c
        for idx, row in enumerate(rows):
            if self.ensure_space(TABLE_ROW_H + 2):
                self._table_header(headers, col_w)
            if idx % 2 == 1:
                c.setFillColor(TILE_FILL)
                c.rect(MARGIN * mm, self._ry(self.y + 5), CONTENT_W * mm, TABLE_ROW_H * mm, stroke=0, fill=1)
            c.setFillColor(colors.black)
            c.setFont("Helvetica", 9)
            for i, h in enumerate(headers):
                val = row.get(h)
                cell = "" if val is None else str(val)
                c.drawString((MARGIN + i * col_w + 2) * mm, self._ry(self.y), truncate(cell, col_w))
            self.y += TABLE_ROW_H
        self.y += 10

    # ---- entry point ----
    def render(self, doc: ReportDocument) -> bytes:
        buf = io.BytesIO()
        self._c = _FooterCanvas(
            buf,
            pagesize=A4,
            footer=footer_text(doc.generated_by, doc.generated_at),
            pageCompression=0,
        )
        self._c.setTitle(doc.title)
        self._c.setAuthor(doc.generated_by)
        self.page_count = 1

        self._header(doc.title, doc.subtitle)
        self._generated_line(doc.generated_at)

        for section in doc.sections:
            self._section_title(section.title)
            if section.type == "text":
                self._text(section.content)
            elif section.type == "metrics":
                self._metrics(section.content or [])
            elif section.type == "table":
                self._table(section.content or [])
            else:
                raise ValueError(f"unknown section type: {section.type}")

        self._c.showPage()
        self._c.save()
        return buf.getvalue()


def render_pdf(doc: ReportDocument) -> bytes:
    return ReportRenderer().render(doc)
