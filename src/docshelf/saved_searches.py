"""Session-scoped query state: saved searches and content search history.

Both live in process memory only and are owned by whoever creates them
(one per session or app instance). Nothing is persisted.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from .config import SEARCH_HISTORY_LIMIT
from .errors import NotFoundError, ValidationError
from .models import FilterCriteria, SavedSearch

log = logging.getLogger(__name__)


class SavedSearchStore:
    """Named snapshots of filter criteria, kept in insertion order."""

    def __init__(self) -> None:
        self._searches: dict[str, SavedSearch] = {}

    def save(self, name: str, criteria: FilterCriteria) -> SavedSearch:
        """Snapshot criteria under a name.

        Raises:
            ValidationError: If name is blank.
        """
        if not name.strip():
            raise ValidationError.for_field("name", "Please enter a name for this search")

        saved = SavedSearch(
            id=uuid.uuid4().hex,
            name=name,
            # Snapshot so later edits to the caller's criteria don't leak in
            criteria=criteria.model_copy(deep=True),
            created_at=datetime.now(UTC),
        )
        self._searches[saved.id] = saved
        log.info("Saved search %r (%s)", name, saved.id)
        return saved

    def list(self) -> list[SavedSearch]:
        return list(self._searches.values())

    def get(self, search_id: str) -> SavedSearch:
        try:
            return self._searches[search_id]
        except KeyError:
            raise NotFoundError("Saved search", search_id) from None

    def load(self, search_id: str) -> FilterCriteria:
        """Return a fresh copy of the stored criteria, to replace the current ones."""
        return self.get(search_id).criteria.model_copy(deep=True)

    def delete(self, search_id: str) -> None:
        if search_id not in self._searches:
            raise NotFoundError("Saved search", search_id)
        del self._searches[search_id]
        log.info("Deleted saved search %s", search_id)

    def __len__(self) -> int:
        return len(self._searches)


class SearchHistory:
    """Recent content search terms, newest first."""

    def __init__(self, limit: int = SEARCH_HISTORY_LIMIT) -> None:
        self.limit = limit
        self._terms: list[str] = []

    def record(self, term: str) -> None:
        # Repeated terms keep their original position
        if term in self._terms:
            return
        self._terms = [term, *self._terms[: self.limit - 1]]

    def terms(self) -> list[str]:
        return list(self._terms)

    def clear(self) -> None:
        self._terms.clear()
