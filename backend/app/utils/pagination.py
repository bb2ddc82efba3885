"""
Pagination Utility Module

Provides standardized pagination helpers for list endpoints.
"""
from typing import List, Optional, Any
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from app.core.config import settings


def clamp_page(page: int, page_size: int) -> tuple:
    """Normalize page (1-indexed) and page size (capped)"""
    page = max(1, page)
    page_size = max(1, min(settings.MAX_PAGE_SIZE, page_size))
    return page, page_size


def pagination_meta(total: int, page: int, page_size: int) -> dict:
    """
    Pagination block returned next to a page of items.

    Args:
        total: Total count of all items
        page: Current page number
        page_size: Items per page (DEFAULT_PAGE_SIZE when omitted)
    """
    total_pages = (total + page_size - 1) // page_size if total > 0 else 1

    return {
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": total_pages,
        "has_next": page * page_size < total,
        "has_previous": page > 1
    }


async def paginate(
    db: AsyncSession,
    query: Select,
    page: int = 1,
    page_size: Optional[int] = None,
    count_query: Optional[Select] = None
) -> dict:
    """
    Apply pagination to a SQLAlchemy query.

    Args:
        db: Database session
        query: Base SQLAlchemy query
        page: Page number (1-indexed)
        page_size: Items per page
        count_query: Optional custom count query

    Returns:
        Dictionary with items and the pagination block
    """
    page, page_size = clamp_page(page, page_size or settings.DEFAULT_PAGE_SIZE)
    offset = (page - 1) * page_size

    if count_query is not None:
        count_result = await db.execute(count_query)
    else:
        count_stmt = select(func.count()).select_from(query.order_by(None).subquery())
        count_result = await db.execute(count_stmt)

    total = count_result.scalar() or 0

    result = await db.execute(query.offset(offset).limit(page_size))
    items: List[Any] = list(result.scalars().unique().all())

    return {
        "items": items,
        "pagination": pagination_meta(total, page, page_size),
    }
