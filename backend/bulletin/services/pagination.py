"""Offset pagination over SQLAlchemy select statements."""
import math
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


@dataclass
class PageResult:
    items: list[Any] = field(default_factory=list)
    total: int = 0
    page: int = 0
    size: int = 10

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0


async def paginate(db: AsyncSession, query: Select, page: int, size: int) -> PageResult:
    """Run `query` for one 0-based page plus a count of the whole result."""
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(query.offset(page * size).limit(size))
    return PageResult(items=list(result.scalars().all()), total=total, page=page, size=size)
