"""Fixed-size pagination of ordered document lists."""

import logging
import math
from collections.abc import Sequence

from .config import PAGE_SIZE
from .models import Document, DocumentPage

log = logging.getLogger(__name__)


def total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    """Number of pages for count items; an empty list still has one page."""
    return max(1, math.ceil(count / page_size))


def paginate(
    ordered: Sequence[Document],
    page: int,
    page_size: int = PAGE_SIZE,
) -> DocumentPage:
    """Slice one 1-based page out of an ordered list.

    Pages below 1 are clamped to 1. Pages past the end are empty.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")
    if page < 1:
        log.warning("Page %d out of range, showing page 1", page)
        page = 1

    start = (page - 1) * page_size
    return DocumentPage(
        items=list(ordered[start : start + page_size]),
        page=page,
        per_page=page_size,
        total_items=len(ordered),
        total_pages=total_pages(len(ordered), page_size),
    )
