"""Filter pipeline for document lists."""

import logging
from collections.abc import Sequence

from .config import ALL
from .matcher import score
from .models import Document, FilterCriteria

log = logging.getLogger(__name__)


def filter_documents(documents: Sequence[Document], criteria: FilterCriteria) -> list[Document]:
    """Apply filename search and attribute filters, in a fixed order.

    When a filename query is present, non-matching documents are dropped and
    the rest are ordered by descending match score (stable, so equal scores
    keep collection order). The attribute filters then narrow that list:
    type, author, created-date start, created-date end. Date bounds are
    inclusive. An empty result is valid.
    """
    filtered = list(documents)

    if criteria.query:
        scored = [(doc, score(doc.filename, criteria.query)) for doc in filtered]
        scored = [item for item in scored if item[1] > 0]
        scored.sort(key=lambda item: item[1], reverse=True)
        filtered = [doc for doc, _ in scored]
        log.debug("Filename query %r matched %d documents", criteria.query, len(filtered))

    if criteria.type != ALL:
        filtered = [doc for doc in filtered if doc.type == criteria.type]

    if criteria.author != ALL:
        filtered = [doc for doc in filtered if doc.created_by == criteria.author]

    start = criteria.date_range.start
    if start is not None:
        filtered = [doc for doc in filtered if doc.created_date >= start]

    end = criteria.date_range.end
    if end is not None:
        filtered = [doc for doc in filtered if doc.created_date <= end]

    return filtered


def has_active_filters(criteria: FilterCriteria) -> bool:
    """Whether any filter would narrow the list."""
    return bool(
        criteria.query
        or criteria.type != ALL
        or criteria.author != ALL
        or criteria.date_range.start
        or criteria.date_range.end
    )


def cleared_criteria() -> FilterCriteria:
    """Criteria with every filter reset."""
    return FilterCriteria()


def facet_values(documents: Sequence[Document]) -> dict[str, list[str]]:
    """Selectable type and author filter values, each led by "all".

    Values appear in first-seen collection order.
    """
    types = list(dict.fromkeys(doc.type for doc in documents))
    authors = list(dict.fromkeys(doc.created_by for doc in documents))
    return {"types": [ALL, *types], "authors": [ALL, *authors]}
