"""Tests for the document filter pipeline."""

from datetime import date

from docshelf.filters import cleared_criteria, facet_values, filter_documents, has_active_filters
from docshelf.models import DateRange, FilterCriteria


def ids(documents):
    return [doc.id for doc in documents]


class TestFilenameQuery:
    def test_no_criteria_keeps_collection_order(self, sample_documents):
        result = filter_documents(sample_documents, FilterCriteria())
        assert ids(result) == ["1", "2", "3", "4", "5", "6"]

    def test_substring_match_ranks_first(self, make_document):
        documents = [
            make_document("pricing-guide.pdf"),
            make_document("product-overview.csv"),
            make_document("company-intro"),
        ]
        result = filter_documents(documents, FilterCriteria(query="pric"))

        assert result[0].filename == "pricing-guide.pdf"
        assert "company-intro" not in [doc.filename for doc in result]

    def test_subsequence_matches_rank_below_substring(self, make_document):
        # "product-overview.csv" holds p, r, i, c in order (subsequence, 85)
        documents = [
            make_document("product-overview.csv"),
            make_document("pricing-guide.pdf"),
        ]
        result = filter_documents(documents, FilterCriteria(query="pric"))
        assert [doc.filename for doc in result] == ["pricing-guide.pdf", "product-overview.csv"]

    def test_orders_by_descending_score(self, make_document):
        documents = [
            make_document("p-r-i-c"),        # subsequence, 85
            make_document("guide-pricing"),  # substring, 90
            make_document("PRIC"),           # exact, 100
        ]
        result = filter_documents(documents, FilterCriteria(query="pric"))
        assert [doc.filename for doc in result] == ["PRIC", "guide-pricing", "p-r-i-c"]

    def test_equal_scores_keep_collection_order(self, sample_documents):
        result = filter_documents(sample_documents, FilterCriteria(query="pdf"))
        assert ids(result) == ["1", "4"]

    def test_non_matching_documents_are_dropped(self, sample_documents):
        result = filter_documents(sample_documents, FilterCriteria(query="zzz"))
        assert result == []


class TestAttributeFilters:
    def test_type_filter_is_exact(self, sample_documents):
        result = filter_documents(sample_documents, FilterCriteria(type="CSV"))
        assert ids(result) == ["2", "5"]

    def test_type_filter_is_case_sensitive(self, sample_documents):
        assert filter_documents(sample_documents, FilterCriteria(type="csv")) == []

    def test_author_filter(self, sample_documents):
        result = filter_documents(sample_documents, FilterCriteria(author="marketing@visualhive.com"))
        assert ids(result) == ["3", "6"]

    def test_start_date_is_inclusive(self, sample_documents):
        criteria = FilterCriteria(date_range=DateRange(start=date(2024, 10, 1)))
        assert ids(filter_documents(sample_documents, criteria)) == ["1", "2", "4", "6"]

    def test_end_date_is_inclusive(self, sample_documents):
        criteria = FilterCriteria(date_range=DateRange(end=date(2024, 10, 1)))
        assert ids(filter_documents(sample_documents, criteria)) == ["3", "5", "6"]

    def test_single_day_range(self, sample_documents):
        day = date(2024, 10, 1)
        criteria = FilterCriteria(date_range=DateRange(start=day, end=day))
        assert ids(filter_documents(sample_documents, criteria)) == ["6"]

    def test_filters_combine(self, sample_documents):
        criteria = FilterCriteria(query="pdf", type="CSV")
        assert filter_documents(sample_documents, criteria) == []

    def test_query_and_author(self, sample_documents):
        criteria = FilterCriteria(query="csv", author="sales@visualhive.com")
        assert ids(filter_documents(sample_documents, criteria)) == ["2", "5"]

    def test_result_is_subset_of_input(self, sample_documents):
        criteria = FilterCriteria(query="c", date_range=DateRange(start=date(2024, 9, 25)))
        result = filter_documents(sample_documents, criteria)
        assert all(doc in sample_documents for doc in result)

    def test_filtering_is_idempotent(self, sample_documents):
        criteria = FilterCriteria(query="pdf", author="admin@visualhive.com")
        once = filter_documents(sample_documents, criteria)
        twice = filter_documents(once, criteria)
        assert ids(once) == ids(twice)


class TestActiveFilters:
    def test_default_criteria_are_inactive(self):
        assert has_active_filters(FilterCriteria()) is False

    def test_each_filter_counts(self):
        assert has_active_filters(FilterCriteria(query="x"))
        assert has_active_filters(FilterCriteria(type="PDF"))
        assert has_active_filters(FilterCriteria(author="a@b.c"))
        assert has_active_filters(FilterCriteria(date_range=DateRange(end=date(2024, 1, 1))))

    def test_cleared_criteria(self):
        assert cleared_criteria() == FilterCriteria()
        assert has_active_filters(cleared_criteria()) is False


class TestFacets:
    def test_values_in_first_seen_order(self, sample_documents):
        facets = facet_values(sample_documents)
        assert facets["types"] == ["all", "PDF", "CSV", "Text Content"]
        assert facets["authors"] == [
            "all",
            "admin@visualhive.com",
            "sales@visualhive.com",
            "marketing@visualhive.com",
        ]

    def test_empty_collection(self):
        assert facet_values([]) == {"types": ["all"], "authors": ["all"]}
