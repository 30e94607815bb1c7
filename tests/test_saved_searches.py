"""Tests for saved searches and content search history."""

from datetime import date

import pytest

from docshelf.errors import NotFoundError, ValidationError
from docshelf.models import DateRange, FilterCriteria
from docshelf.saved_searches import SavedSearchStore, SearchHistory


@pytest.fixture
def store() -> SavedSearchStore:
    return SavedSearchStore()


class TestSavedSearchStore:
    def test_save_then_load_restores_criteria(self, store):
        criteria = FilterCriteria(
            query="guide",
            type="PDF",
            author="admin@visualhive.com",
            date_range=DateRange(start=date(2024, 10, 1)),
        )
        saved = store.save("October guides", criteria)

        assert saved.name == "October guides"
        assert store.load(saved.id) == criteria

    def test_blank_name_is_rejected(self, store):
        with pytest.raises(ValidationError) as exc_info:
            store.save("   ", FilterCriteria(query="x"))

        assert exc_info.value.errors == [
            {"field": "name", "message": "Please enter a name for this search"}
        ]
        assert len(store) == 0

    def test_saved_criteria_are_a_snapshot(self, store):
        criteria = FilterCriteria(query="pric")
        saved = store.save("Pricing", criteria)
        criteria.query = "changed"
        criteria.date_range.start = date(2020, 1, 1)

        assert store.load(saved.id) == FilterCriteria(query="pric")

    def test_loaded_criteria_can_be_edited_freely(self, store):
        saved = store.save("Pricing", FilterCriteria(query="pric"))
        loaded = store.load(saved.id)
        loaded.query = "other"

        assert store.load(saved.id).query == "pric"

    def test_ids_are_unique(self, store):
        first = store.save("A", FilterCriteria())
        second = store.save("A", FilterCriteria())
        assert first.id != second.id
        assert [s.id for s in store.list()] == [first.id, second.id]

    def test_delete(self, store):
        saved = store.save("A", FilterCriteria())
        store.delete(saved.id)
        assert store.list() == []

    def test_unknown_id_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.load("missing")
        with pytest.raises(NotFoundError):
            store.delete("missing")


class TestSearchHistory:
    def test_newest_first(self):
        history = SearchHistory()
        history.record("pricing")
        history.record("onboarding")
        assert history.terms() == ["onboarding", "pricing"]

    def test_keeps_at_most_five(self):
        history = SearchHistory()
        for term in ["a", "b", "c", "d", "e", "f"]:
            history.record(term)
        assert history.terms() == ["f", "e", "d", "c", "b"]

    def test_repeated_term_is_not_moved(self):
        history = SearchHistory()
        history.record("a")
        history.record("b")
        history.record("a")
        assert history.terms() == ["b", "a"]

    def test_clear(self):
        history = SearchHistory()
        history.record("a")
        history.clear()
        assert history.terms() == []
