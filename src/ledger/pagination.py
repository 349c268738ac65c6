"""
Capped offset pagination over store queries.
"""

from dataclasses import dataclass, field
from typing import Callable
import logging

logger = logging.getLogger("stockledger")


@dataclass
class PageResult:
    """All rows a paginated query returned, and whether the cap cut it short."""

    rows: list[dict] = field(default_factory=list)
    pages: int = 0
    truncated: bool = False


def paginate(
    fetch_page: Callable[[int, int], list[dict]],
    page_size: int = 1000,
    max_pages: int = 500,
    label: str = "query",
) -> PageResult:
    """
    Collect every page of a query, stopping at ``max_pages``.

    A page shorter than ``page_size`` means the data is exhausted. The last
    allowed page asks for one extra row: if it arrives, more rows exist
    past the cap and the result comes back with truncated=True instead of
    pretending it is complete. The extra row is not kept.

    Args:
        fetch_page: Called as fetch_page(offset, limit)
        page_size: Rows per page
        max_pages: Hard cap on pages fetched
        label: Query name used in logs

    Store errors raised by fetch_page propagate unchanged.
    """
    if page_size <= 0 or max_pages <= 0:
        raise ValueError("page_size and max_pages must be positive")

    result = PageResult()
    offset = 0
    while result.pages < max_pages:
        last = result.pages == max_pages - 1
        page = list(fetch_page(offset, page_size + 1 if last else page_size))
        result.rows.extend(page[:page_size])
        result.pages += 1
        if len(page) < page_size or (last and len(page) == page_size):
            return result
        offset += page_size

    result.truncated = True
    logger.warning(
        "pagination.truncated",
        extra={"query": label, "pages": result.pages, "rows": len(result.rows)},
    )
    return result
