"""Core business logic for docshelf.

This module composes the filter, sort and pagination steps into document
listings and holds the in-memory ``Library`` the CLI and web API operate on.

Design principles:
- Listing functions are pure: they take the collection explicitly and never
  reach for module-level state
- The Library is an owned object; callers decide its lifetime
- Calls to the external workflow service are async and bounded by a timeout
"""

from __future__ import annotations

import base64
import csv
import io
import logging
import uuid
from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime
from pathlib import Path

from .config import (
    ACCEPTED_FILE_EXTENSIONS,
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_SIMILARITY_THRESHOLD,
    KB_DESCRIPTION_MAX_LENGTH,
    KB_NAME_MAX_LENGTH,
    MAX_FILE_SIZE_BYTES,
    MAX_FILE_SIZE_MB,
    MAX_QUERY_LENGTH,
    PAGE_SIZE,
    TEXT_CONTENT_TYPE,
    UNKNOWN_FILE_TYPE,
    get_default_author,
)
from .errors import NotFoundError, ValidationError, WorkflowError
from .filters import filter_documents
from .models import (
    ContentSearchResult,
    Document,
    DocumentPage,
    FilterCriteria,
    KnowledgeBase,
    ProcessingJob,
    SortState,
)
from .pagination import paginate
from .saved_searches import SavedSearchStore, SearchHistory
from .sorting import resolve_order
from .storage import Collection
from .workflows import (
    DeleteDocumentPayload,
    FileMetadata,
    ProcessDocumentPayload,
    ProgressUpdatePayload,
    SearchVectorPayload,
    WorkflowClient,
    file_type_for,
)

log = logging.getLogger(__name__)


# =============================================================================
# Listing
# =============================================================================


def list_documents(
    documents: Sequence[Document],
    criteria: FilterCriteria | None = None,
    sort_state: SortState | None = None,
    page: int = 1,
    page_size: int = PAGE_SIZE,
    knowledge_base_id: str | None = None,
) -> DocumentPage:
    """Filter, order and paginate a document collection.

    Args:
        documents: The full collection, in collection order.
        criteria: Filters to apply (none by default).
        sort_state: Explicit column sort (unsorted by default).
        page: 1-based page number; values below 1 show page 1.
        page_size: Documents per page.
        knowledge_base_id: Restrict to documents in this knowledge base.

    Returns:
        The requested page plus total counts.
    """
    criteria = criteria or FilterCriteria()
    sort_state = sort_state or SortState()

    if knowledge_base_id is not None:
        documents = [doc for doc in documents if knowledge_base_id in doc.knowledge_bases]

    filtered = filter_documents(documents, criteria)
    ordered = resolve_order(filtered, sort_state, has_active_name_query=bool(criteria.query))
    return paginate(ordered, page, page_size)


def export_results_csv(results: Iterable[ContentSearchResult]) -> str:
    """Render content search results as CSV (filename, type, relevance, created date)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Filename", "Type", "Relevance", "Created Date"])
    for result in results:
        writer.writerow([
            result.filename,
            result.type,
            f"{result.relevance}%",
            result.created_date.isoformat() if result.created_date else "",
        ])
    return buffer.getvalue()


def _today() -> date:
    return datetime.now(UTC).date()


def _new_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# Library
# =============================================================================


class Library:
    """In-memory documents, knowledge bases and session query state.

    Nothing here is persisted; a Library lives as long as its owner.
    """

    def __init__(
        self,
        documents: Iterable[Document] = (),
        knowledge_bases: Iterable[KnowledgeBase] = (),
    ):
        self._documents: list[Document] = list(documents)
        self._knowledge_bases: dict[str, KnowledgeBase] = {}
        for kb in knowledge_bases:
            if kb.id in self._knowledge_bases:
                raise ValidationError.for_field("knowledge_bases", f"Duplicate knowledge base id: {kb.id}")
            self._knowledge_bases[kb.id] = kb
        self._jobs: dict[str, ProcessingJob] = {}
        self.saved_searches = SavedSearchStore()
        self.search_history = SearchHistory()

    @classmethod
    def from_collection(cls, collection: Collection) -> Library:
        return cls(collection.documents, collection.knowledge_bases)

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    @property
    def documents(self) -> list[Document]:
        return list(self._documents)

    def get_document(self, document_id: str) -> Document:
        for doc in self._documents:
            if doc.id == document_id:
                return doc
        raise NotFoundError("Document", document_id)

    def list_documents(
        self,
        criteria: FilterCriteria | None = None,
        sort_state: SortState | None = None,
        page: int = 1,
        knowledge_base_id: str | None = None,
    ) -> DocumentPage:
        if knowledge_base_id is not None:
            self.get_knowledge_base(knowledge_base_id)
        return list_documents(
            self._documents,
            criteria,
            sort_state,
            page,
            knowledge_base_id=knowledge_base_id,
        )

    def _knowledge_base_errors(self, knowledge_bases: Sequence[str]) -> list[dict[str, str]]:
        if not knowledge_bases:
            return [{
                "field": "knowledge_bases",
                "message": "At least one knowledge base must be selected",
            }]
        return [
            {"field": "knowledge_bases", "message": f"Unknown knowledge base: {kb_id}"}
            for kb_id in knowledge_bases
            if kb_id not in self._knowledge_bases
        ]

    def _insert(self, document: Document) -> Document:
        # Newest documents lead the collection
        self._documents.insert(0, document)
        log.info("Added document %r (%s) to %s", document.filename, document.id, document.knowledge_bases)
        return document

    def add_text_document(
        self,
        name: str,
        text_content: str,
        knowledge_bases: Sequence[str],
        description: str | None = None,
        author: str | None = None,
    ) -> Document:
        """Create an authored text document.

        Raises:
            ValidationError: Listing every invalid field.
        """
        errors: list[dict[str, str]] = []
        if not name.strip():
            errors.append({"field": "filename", "message": "Document name is required"})
        if not text_content.strip():
            errors.append({"field": "text_content", "message": "Text content is required"})
        errors.extend(self._knowledge_base_errors(knowledge_bases))
        if errors:
            raise ValidationError("Invalid document", errors)

        today = _today()
        return self._insert(Document(
            id=_new_id(),
            filename=name,
            type=TEXT_CONTENT_TYPE,
            created_by=author or get_default_author(),
            created_date=today,
            last_updated=today,
            description=description,
            knowledge_bases=list(dict.fromkeys(knowledge_bases)),
            text_content=text_content,
        ))

    def add_uploaded_document(
        self,
        upload_filename: str | None,
        file_size: int,
        knowledge_bases: Sequence[str],
        name: str | None = None,
        description: str | None = None,
        author: str | None = None,
    ) -> Document:
        """Create a document record for an uploaded file.

        The display name defaults to the uploaded file's name. The type tag
        is the file's extension, uppercased.

        Raises:
            ValidationError: Listing every invalid field.
        """
        errors: list[dict[str, str]] = []
        display_name = name if name and name.strip() else (upload_filename or "")

        if not display_name.strip():
            errors.append({"field": "filename", "message": "Document name is required"})

        if not upload_filename:
            errors.append({"field": "file", "message": "Please select a file to upload"})
        else:
            extension = Path(upload_filename).suffix.lower()
            if file_size > MAX_FILE_SIZE_BYTES:
                errors.append({
                    "field": "file",
                    "message": f"File size must be less than {MAX_FILE_SIZE_MB}MB",
                })
            elif extension not in ACCEPTED_FILE_EXTENSIONS:
                errors.append({
                    "field": "file",
                    "message": (
                        "File type not supported. Accepted types: "
                        + ", ".join(ACCEPTED_FILE_EXTENSIONS)
                    ),
                })

        errors.extend(self._knowledge_base_errors(knowledge_bases))
        if errors:
            raise ValidationError("Invalid document", errors)

        suffix = Path(upload_filename).suffix
        today = _today()
        return self._insert(Document(
            id=_new_id(),
            filename=display_name,
            type=suffix[1:].upper() if suffix else UNKNOWN_FILE_TYPE,
            created_by=author or get_default_author(),
            created_date=today,
            last_updated=today,
            description=description,
            knowledge_bases=list(dict.fromkeys(knowledge_bases)),
        ))

    def update_document(
        self,
        document_id: str,
        filename: str | None = None,
        description: str | None = None,
        knowledge_bases: Sequence[str] | None = None,
        text_content: str | None = None,
    ) -> Document:
        """Replace a document with edited fields; lastUpdated becomes today.

        Raises:
            NotFoundError: If no document has this id.
            ValidationError: If an edited field is invalid.
        """
        current = self.get_document(document_id)

        errors: list[dict[str, str]] = []
        if filename is not None and not filename.strip():
            errors.append({"field": "filename", "message": "Document name is required"})
        if knowledge_bases is not None:
            errors.extend(self._knowledge_base_errors(knowledge_bases))
        if text_content is not None and current.type == TEXT_CONTENT_TYPE and not text_content.strip():
            errors.append({"field": "text_content", "message": "Text content is required"})
        if errors:
            raise ValidationError("Invalid document", errors)

        changes: dict[str, object] = {"last_updated": max(_today(), current.created_date)}
        if filename is not None:
            changes["filename"] = filename
        if description is not None:
            changes["description"] = description
        if knowledge_bases is not None:
            changes["knowledge_bases"] = list(dict.fromkeys(knowledge_bases))
        if text_content is not None:
            changes["text_content"] = text_content

        updated = current.model_copy(update=changes)
        self._documents = [updated if doc.id == document_id else doc for doc in self._documents]
        log.info("Updated document %s", document_id)
        return updated

    def delete_document(self, document_id: str) -> Document:
        """Remove one document.

        Raises:
            NotFoundError: If no document has this id.
        """
        document = self.get_document(document_id)
        self._documents = [doc for doc in self._documents if doc.id != document_id]
        log.info("Deleted document %r (%s)", document.filename, document_id)
        return document

    # -------------------------------------------------------------------------
    # Knowledge bases
    # -------------------------------------------------------------------------

    def list_knowledge_bases(self) -> list[KnowledgeBase]:
        return list(self._knowledge_bases.values())

    def get_knowledge_base(self, kb_id: str) -> KnowledgeBase:
        try:
            return self._knowledge_bases[kb_id]
        except KeyError:
            raise NotFoundError("Knowledge base", kb_id) from None

    def document_count(self, kb_id: str) -> int:
        return sum(1 for doc in self._documents if kb_id in doc.knowledge_bases)

    @staticmethod
    def _knowledge_base_field_errors(name: str | None, description: str | None) -> list[dict[str, str]]:
        errors = []
        if name is not None:
            if not name.strip():
                errors.append({"field": "name", "message": "Name is required"})
            elif len(name) > KB_NAME_MAX_LENGTH:
                errors.append({
                    "field": "name",
                    "message": f"Name must be less than {KB_NAME_MAX_LENGTH} characters",
                })
        if description is not None and len(description) > KB_DESCRIPTION_MAX_LENGTH:
            errors.append({
                "field": "description",
                "message": f"Description must be less than {KB_DESCRIPTION_MAX_LENGTH} characters",
            })
        return errors

    def create_knowledge_base(self, name: str, description: str = "") -> KnowledgeBase:
        """Create an empty knowledge base.

        Raises:
            ValidationError: If the name is blank or too long, or the
                description is too long.
        """
        errors = self._knowledge_base_field_errors(name, description)
        if errors:
            raise ValidationError("Invalid knowledge base", errors)

        kb = KnowledgeBase(
            id=_new_id(),
            name=name.strip(),
            description=description,
            created_at=datetime.now(UTC),
        )
        self._knowledge_bases[kb.id] = kb
        log.info("Created knowledge base %r (%s)", kb.name, kb.id)
        return kb

    def update_knowledge_base(
        self,
        kb_id: str,
        name: str | None = None,
        description: str | None = None,
    ) -> KnowledgeBase:
        """Rename or redescribe a knowledge base. At least one field is required."""
        current = self.get_knowledge_base(kb_id)
        if name is None and description is None:
            raise ValidationError("At least one field must be provided")
        errors = self._knowledge_base_field_errors(name, description)
        if errors:
            raise ValidationError("Invalid knowledge base", errors)

        changes: dict[str, object] = {}
        if name is not None:
            changes["name"] = name.strip()
        if description is not None:
            changes["description"] = description
        updated = current.model_copy(update=changes)
        self._knowledge_bases[kb_id] = updated
        return updated

    # -------------------------------------------------------------------------
    # Processing progress
    # -------------------------------------------------------------------------

    def record_progress(self, update: ProgressUpdatePayload) -> ProcessingJob:
        """Store the latest processing state reported for a document.

        Raises:
            NotFoundError: If the document is unknown.
        """
        self.get_document(update.document_id)
        previous = self._jobs.get(update.document_id)

        job = ProcessingJob(
            document_id=update.document_id,
            status=update.status,
            progress=update.progress,
            current_step=update.current_step,
            chunks_total=update.chunks_total,
            chunks_processed=update.chunks_processed,
            qdrant_points=update.qdrant_points
            if update.qdrant_points is not None
            else (previous.qdrant_points if previous else []),
            error_message=update.error_message,
            updated_at=datetime.now(UTC),
        )
        self._jobs[update.document_id] = job
        if job.status == "failed":
            log.warning("Processing failed for %s: %s", job.document_id, job.error_message)
        else:
            log.debug("Document %s is %s (%.0f%%)", job.document_id, job.status, job.progress)
        return job

    def get_job(self, document_id: str) -> ProcessingJob:
        try:
            return self._jobs[document_id]
        except KeyError:
            raise NotFoundError("Processing job", document_id) from None

    def find_job(self, document_id: str) -> ProcessingJob | None:
        return self._jobs.get(document_id)

    def set_job(self, job: ProcessingJob) -> ProcessingJob:
        self._jobs[job.document_id] = job
        return job

    def discard_job(self, document_id: str) -> None:
        self._jobs.pop(document_id, None)


# =============================================================================
# Workflow-backed operations
# =============================================================================


def _validate_search_query(query: str) -> str:
    query = query.strip()
    if not query:
        raise ValidationError.for_field("query", "Search query is required")
    if len(query) > MAX_QUERY_LENGTH:
        raise ValidationError.for_field(
            "query", f"Search query must be at most {MAX_QUERY_LENGTH} characters"
        )
    return query


async def search_content(
    library: Library,
    client: WorkflowClient,
    query: str,
    knowledge_base_id: str | None = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> list[ContentSearchResult]:
    """Search document content through the vector search workflow.

    Chunks are grouped per document; each document is reported once with
    its best-scoring chunk as the snippet, most relevant first.

    Raises:
        ValidationError: If the query is blank or too long.
        WorkflowError: If the search service fails or times out.
    """
    query = _validate_search_query(query)
    library.search_history.record(query)

    response = await client.search_vector(SearchVectorPayload(
        query=query,
        knowledge_base_id=knowledge_base_id,
        limit=limit,
        similarity_threshold=similarity_threshold,
    ))

    best: dict[str, ContentSearchResult] = {}
    for hit in response.results:
        relevance = round(max(0.0, min(hit.score, 1.0)) * 100)
        existing = best.get(hit.document_id)
        if existing is not None and existing.relevance >= relevance:
            continue

        try:
            doc = library.get_document(hit.document_id)
        except NotFoundError:
            log.debug("Search hit for unknown document %s", hit.document_id)
            filename, doc_type, created = hit.document_id, "", None
        else:
            filename, doc_type, created = doc.filename, doc.type, doc.created_date

        best[hit.document_id] = ContentSearchResult(
            document_id=hit.document_id,
            filename=filename,
            type=doc_type,
            relevance=relevance,
            snippet=hit.content,
            created_date=created,
        )

    return sorted(best.values(), key=lambda result: result.relevance, reverse=True)


async def dispatch_processing(
    library: Library,
    client: WorkflowClient,
    document: Document,
    file_bytes: bytes,
    user_id: str | None = None,
    original_name: str | None = None,
) -> ProcessingJob:
    """Send an uploaded file to the processing workflow.

    The document stays in the library whatever happens; a failed dispatch
    is recorded as a failed processing job.
    """
    payload = ProcessDocumentPayload(
        document_id=document.id,
        knowledge_base_id=document.knowledge_bases[0],
        file_data=base64.b64encode(file_bytes).decode("ascii"),
        file_type=file_type_for(document.type),
        metadata=FileMetadata(
            filename=document.filename,
            original_name=original_name or document.filename,
            user_id=user_id or document.created_by,
            file_size=len(file_bytes),
        ),
    )

    now = datetime.now(UTC)
    try:
        await client.process_document(payload)
    except WorkflowError as e:
        log.warning("Could not dispatch %s for processing: %s", document.id, e.message)
        return library.set_job(ProcessingJob(
            document_id=document.id,
            status="failed",
            error_message=e.message,
            updated_at=now,
        ))

    return library.set_job(ProcessingJob(
        document_id=document.id,
        status="processing",
        current_step="Queued for processing",
        updated_at=now,
    ))


async def _delete_vectors(client: WorkflowClient, document: Document, job: ProcessingJob) -> None:
    try:
        result = await client.delete_document(DeleteDocumentPayload(
            document_id=document.id,
            qdrant_points=job.qdrant_points,
            knowledge_base_id=document.knowledge_bases[0],
        ))
    except WorkflowError as e:
        log.warning("Vector cleanup for %s failed: %s", document.id, e.message)
        return
    if result.failed_points:
        log.warning(
            "Vector cleanup for %s left %d points behind",
            document.id,
            len(result.failed_points),
        )


async def remove_document(
    library: Library,
    document_id: str,
    client: WorkflowClient | None = None,
) -> Document:
    """Delete a document and, when it was indexed, its vector points.

    Cleanup failures are logged; the document is deleted regardless.

    Raises:
        NotFoundError: If no document has this id.
    """
    document = library.delete_document(document_id)
    job = library.find_job(document_id)

    if client is not None and job is not None and job.qdrant_points and document.knowledge_bases:
        await _delete_vectors(client, document, job)
    library.discard_job(document_id)
    return document


async def remove_documents(
    library: Library,
    document_ids: Iterable[str],
    client: WorkflowClient | None = None,
) -> int:
    """Bulk delete; each document goes through ``remove_document``.

    Unknown and repeated ids are skipped.

    Returns:
        Number of documents removed.
    """
    removed = 0
    for document_id in dict.fromkeys(document_ids):
        try:
            await remove_document(library, document_id, client)
        except NotFoundError:
            continue
        removed += 1
    log.info("Deleted %d documents", removed)
    return removed
