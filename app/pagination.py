"""Offset/limit pagination arithmetic shared by list endpoints."""

import math

from .schemas import Pagination

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def offset_for(page: int, page_size: int) -> int:
    """Number of rows to skip to reach ``page`` (1-based)."""
    return (page - 1) * page_size


def build_pagination(total: int, page: int, page_size: int) -> Pagination:
    """
    Derive page metadata from a total row count.

    Args:
        total (int): Number of rows matching the filter.
        page (int): Requested page, starting at 1.
        page_size (int): Rows per page.

    Returns:
        Pagination: Page metadata for the response.
    """
    total_pages = math.ceil(total / page_size) if page_size else 0
    return Pagination(
        current_page=page,
        page_size=page_size,
        total_pages=total_pages,
        total=total,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )
