# communiserver/domain/pagination.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

DEFAULT_PAGE = 1
DEFAULT_SIZE = 10
MAX_SIZE = 100


@dataclass(frozen=True)
class PageRequest:
    page: int = DEFAULT_PAGE
    size: int = DEFAULT_SIZE

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.size < 1 or self.size > MAX_SIZE:
            raise ValueError(f"size must be between 1 and {MAX_SIZE}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size


def page_envelope(items: list[Any], *, total: int, req: PageRequest) -> dict[str, Any]:
    return {
        "items": items,
        "totalItems": int(total),
        "itemCount": len(items),
        "itemsPerPage": req.size,
        "totalPages": int(math.ceil(total / req.size)) if total else 0,
        "currentPage": req.page,
    }


def paginate(
    db: Session,
    stmt: Select,
    req: PageRequest,
    *,
    serialize: Optional[Callable[[Any], Any]] = None,
) -> dict[str, Any]:
    """
    Runs `stmt` twice: once as a COUNT over the filtered rows, once for the page.
    `stmt` must already carry its filters and ORDER BY.
    """
    total = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    rows = list(db.scalars(stmt.limit(req.size).offset(req.offset)).all())
    items = [serialize(r) for r in rows] if serialize else rows
    return page_envelope(items, total=int(total), req=req)
