"""
Pagination Utility Module

Provides standardized pagination helpers for all API endpoints.
"""
from typing import Generic, List, Optional, TypeVar
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

T = TypeVar('T')

MAX_PAGE_SIZE = 100


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard paginated response"""
    model_config = ConfigDict(from_attributes=True)

    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


def normalize_page(page: int, page_size: int, max_page_size: int = MAX_PAGE_SIZE):
    """Clamp page to >= 1 and page_size to 1..max_page_size"""
    return max(1, page), max(1, min(max_page_size, page_size))


async def paginate(
    db: AsyncSession,
    query: Select,
    page: int = 1,
    page_size: int = 10,
    count_query: Optional[Select] = None,
    max_page_size: int = MAX_PAGE_SIZE,
) -> dict:
    """
    Apply pagination to a SQLAlchemy query.

    Args:
        db: Database session
        query: Base SQLAlchemy query
        page: Page number (1-indexed)
        page_size: Items per page
        count_query: Optional custom count query
        max_page_size: Upper bound for page_size

    Returns:
        Dictionary with items, total, page, page_size, total_pages, has_next, has_previous
    """
    page, page_size = normalize_page(page, page_size, max_page_size)
    offset = (page - 1) * page_size

    if count_query is not None:
        count_result = await db.execute(count_query)
    else:
        count_stmt = select(func.count()).select_from(query.order_by(None).subquery())
        count_result = await db.execute(count_stmt)

    total = count_result.scalar() or 0

    result = await db.execute(query.offset(offset).limit(page_size))
    items = result.scalars().all()

    return create_paginated_response(list(items), total, page, page_size)


def create_paginated_response(
    items: List,
    total: int,
    page: int,
    page_size: int
) -> dict:
    """
    Create a paginated response dictionary.

    Args:
        items: List of items for current page
        total: Total count of all items
        page: Current page number
        page_size: Items per page

    Returns:
        Paginated response dictionary
    """
    total_pages = (total + page_size - 1) // page_size if total > 0 else 1

    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1
    }
