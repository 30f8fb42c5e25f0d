"""Offset pagination over SQLAlchemy 2.0 selects."""

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fastapi import Query
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

MAX_PER_PAGE = 100


@dataclass
class PageParams:
    page: int = 1
    per_page: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


def page_params(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=MAX_PER_PAGE),
) -> PageParams:
    return PageParams(page=page, per_page=per_page)


@dataclass
class Page:
    items: list[Any]
    total: int
    page: int
    per_page: int
    extra: dict = field(default_factory=dict)

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page else 1

    def map(self, fn: Callable[[Any], Any]) -> "Page":
        return Page([fn(i) for i in self.items], self.total, self.page, self.per_page, self.extra)

    def to_dict(self) -> dict:
        first = self.offset_first()
        return {
            "items": self.items,
            "total": self.total,
            "page": self.page,
            "per_page": self.per_page,
            "last_page": self.last_page,
            "from": first,
            "to": first + len(self.items) - 1 if first is not None else None,
            **self.extra,
        }

    def offset_first(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.page - 1) * self.per_page + 1


def paginate(db: Session, stmt: Select, params: PageParams, *, scalars: bool = True) -> Page:
    """Run `stmt` for one page. Counting wraps the statement so GROUP BY queries count groups."""
    total = db.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar_one()
    result = db.execute(stmt.limit(params.per_page).offset(params.offset))
    items = list(result.scalars().all()) if scalars else list(result.all())
    return Page(items=items, total=total, page=params.page, per_page=params.per_page)
