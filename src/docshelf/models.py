"""Pydantic models for the document manager."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .config import ALL

SortField = Literal["filename", "type", "created_by", "created_date", "last_updated"]
SortDirection = Literal["asc", "desc"]
ProcessingStatus = Literal["uploading", "processing", "chunking", "embedding", "completed", "failed"]


class Document(BaseModel):
    """A document belonging to one or more knowledge bases."""

    model_config = ConfigDict(frozen=True)

    id: str  # Unique within a collection, never reassigned
    filename: str  # Display name
    type: str  # e.g. "PDF", "CSV", "Text Content"
    created_by: str  # Usually an email address
    created_date: date
    last_updated: date  # Expected >= created_date, not enforced
    description: str | None = None
    knowledge_bases: list[str] = Field(default_factory=list)  # Knowledge base ids
    text_content: str | None = None  # Only for authored documents


class KnowledgeBase(BaseModel):
    """A named collection of documents."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    created_at: datetime


class DateRange(BaseModel):
    """Inclusive bounds on a document's created date."""

    start: date | None = None
    end: date | None = None


class FilterCriteria(BaseModel):
    """Filters applied to a document list."""

    query: str = ""  # Fuzzy filename query
    type: str = ALL
    author: str = ALL
    date_range: DateRange = Field(default_factory=DateRange)


class SortState(BaseModel):
    """Active sort column and direction.

    Both are None (unsorted) or both are set.
    """

    model_config = ConfigDict(frozen=True)

    field: SortField | None = None
    direction: SortDirection | None = None

    @model_validator(mode="after")
    def _field_and_direction_together(self) -> "SortState":
        if (self.field is None) != (self.direction is None):
            raise ValueError("sort field and direction must both be set or both be empty")
        return self


class SavedSearch(BaseModel):
    """A named snapshot of filter criteria."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    criteria: FilterCriteria
    created_at: datetime


class DocumentPage(BaseModel):
    """One page of a filtered and ordered document list."""

    items: list[Document]
    page: int  # 1-based
    per_page: int
    total_items: int  # Documents matching the filters, across all pages
    total_pages: int  # Never less than 1


class ContentSearchResult(BaseModel):
    """A document matched by content search, as shown in the results list."""

    document_id: str
    filename: str
    type: str
    relevance: int  # 0-100
    snippet: str
    created_date: date | None = None


class ProcessingJob(BaseModel):
    """Latest known processing state of an uploaded document."""

    document_id: str
    status: ProcessingStatus
    progress: float = Field(default=0, ge=0, le=100)
    current_step: str | None = None
    chunks_total: int | None = None
    chunks_processed: int | None = None
    qdrant_points: list[str] = Field(default_factory=list)  # Vector point ids
    error_message: str | None = None
    updated_at: datetime
