"""Column sorting for document lists."""

import logging
from collections.abc import Sequence

from .models import Document, SortField, SortState

log = logging.getLogger(__name__)


def cycle_sort(state: SortState, field: SortField) -> SortState:
    """Return the sort state after clicking a column header.

    A new column starts ascending; the active ascending column flips to
    descending; the active descending column returns to unsorted.
    """
    if state.field != field:
        return SortState(field=field, direction="asc")
    if state.direction == "asc":
        return SortState(field=field, direction="desc")
    return SortState()


def resolve_order(
    filtered: Sequence[Document],
    sort_state: SortState,
    has_active_name_query: bool,
) -> list[Document]:
    """Order a filtered document list for display.

    Without an explicit sort column the incoming order is kept: relevance
    order after a filename search, collection order otherwise. With a column
    set, documents are stable-sorted on it; dates compare chronologically.
    """
    if sort_state.field is None:
        if has_active_name_query:
            log.debug("No sort column, keeping relevance order")
        return list(filtered)

    field = sort_state.field
    return sorted(
        filtered,
        key=lambda doc: getattr(doc, field),
        reverse=sort_state.direction == "desc",
    )
