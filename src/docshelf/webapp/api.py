"""REST API for the docshelf document manager."""

import logging
import os
from datetime import date
from typing import Generic, Literal, TypeVar

from fastapi import Depends, FastAPI, File, Form, Query, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from .. import __version__
from ..config import (
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_SIMILARITY_THRESHOLD,
    MAX_QUERY_LENGTH,
    MAX_SEARCH_LIMIT,
    get_documents_file,
)
from ..core import (
    Library,
    dispatch_processing,
    export_results_csv,
    remove_document,
    remove_documents,
    search_content,
)
from ..errors import DocshelfError, ErrorCode, ValidationError
from ..filters import facet_values
from ..models import (
    ContentSearchResult,
    DateRange,
    Document,
    FilterCriteria,
    KnowledgeBase,
    ProcessingJob,
    SavedSearch,
    SortDirection,
    SortField,
    SortState,
)
from ..storage import load_collection, sample_collection
from ..workflows import ProgressUpdatePayload, WorkflowClient, unavailable_error

log = logging.getLogger(__name__)

T = TypeVar("T")

app = FastAPI(
    title="docshelf",
    description="Knowledge base document manager",
    version=__version__,
)

# CORS for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Lazy-initialized library
_library: Library | None = None


def get_library() -> Library:
    """Get the app's Library, loading the configured collection on first use."""
    global _library
    if _library is None:
        documents_file = get_documents_file()
        if documents_file is not None:
            collection = load_collection(documents_file)
            log.info("Loaded %d documents from %s", len(collection.documents), documents_file)
        else:
            collection = sample_collection()
        _library = Library.from_collection(collection)
    return _library


def get_workflow_client() -> WorkflowClient | None:
    """Client for the processing/search webhooks, or None when not configured."""
    return WorkflowClient.from_env()


# Response models
class FieldError(BaseModel):
    """One invalid input field."""
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error envelope for every failed request."""
    success: Literal[False] = False
    error: str
    details: list[FieldError] | None = None
    code: str | None = None


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a list endpoint."""
    items: list[T]
    page: int
    per_page: int
    total_items: int
    total_pages: int


class FacetsResponse(BaseModel):
    """Selectable filter values."""
    types: list[str]
    authors: list[str]


class KnowledgeBaseResponse(BaseModel):
    """Knowledge base with its document count."""
    id: str
    name: str
    description: str
    created_at: str
    document_count: int


class SearchResponseAPI(BaseModel):
    """Content search results."""
    results: list[ContentSearchResult]
    total_results: int
    query: str
    knowledge_base_id: str | None = None


class BulkDeleteResponse(BaseModel):
    """Result of a bulk delete."""
    deleted: int


# Request models
class CreateTextDocumentRequest(BaseModel):
    filename: str
    text_content: str
    knowledge_bases: list[str]
    description: str | None = None
    created_by: str | None = None


class UpdateDocumentRequest(BaseModel):
    filename: str | None = None
    description: str | None = None
    knowledge_bases: list[str] | None = None
    text_content: str | None = None


class BulkDeleteRequest(BaseModel):
    document_ids: list[str]


class CreateKnowledgeBaseRequest(BaseModel):
    name: str
    description: str = ""


class SaveSearchRequest(BaseModel):
    name: str
    criteria: FilterCriteria


class SearchRequest(BaseModel):
    query: str = Field(min_length=1, max_length=MAX_QUERY_LENGTH)
    knowledge_base_id: str | None = None
    limit: int = Field(DEFAULT_SEARCH_LIMIT, ge=1, le=MAX_SEARCH_LIMIT)
    similarity_threshold: float = Field(DEFAULT_SIMILARITY_THRESHOLD, ge=0, le=1)


_STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.WORKFLOW_UNAVAILABLE: 503,
    ErrorCode.WORKFLOW_FAILED: 502,
}


@app.exception_handler(DocshelfError)
async def handle_docshelf_error(request, exc: DocshelfError):
    """Translate core errors into the error envelope."""
    details = None
    if isinstance(exc, ValidationError) and exc.errors:
        details = [FieldError(**e) for e in exc.errors]
    body = ErrorResponse(error=exc.message, details=details, code=exc.code.value)
    return JSONResponse(
        status_code=_STATUS_BY_CODE.get(exc.code, 500),
        content=body.model_dump(exclude_none=True),
    )


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request, exc: RequestValidationError):
    """Report malformed query parameters and bodies in the error envelope."""
    details = []
    for error in exc.errors():
        # Drop the leading "query"/"body"/"path" segment
        location = [str(part) for part in error.get("loc", ())[1:]]
        details.append(FieldError(field=".".join(location) or "request", message=error["msg"]))
    body = ErrorResponse(
        error="Invalid request",
        details=details,
        code=ErrorCode.VALIDATION_ERROR.value,
    )
    return JSONResponse(status_code=422, content=body.model_dump(exclude_none=True))


def _kb_response(library: Library, kb: KnowledgeBase) -> KnowledgeBaseResponse:
    return KnowledgeBaseResponse(
        id=kb.id,
        name=kb.name,
        description=kb.description,
        created_at=kb.created_at.isoformat(),
        document_count=library.document_count(kb.id),
    )


# API Routes

@app.get("/api/documents", response_model=PaginatedResponse[Document])
async def list_documents(
    q: str = Query("", max_length=MAX_QUERY_LENGTH, description="Fuzzy filename query"),
    type: str = "all",
    author: str = "all",
    start: date | None = None,
    end: date | None = None,
    sort: SortField | None = None,
    direction: SortDirection | None = None,
    page: int = Query(1, ge=1),
    knowledge_base_id: str | None = None,
    library: Library = Depends(get_library),
):
    """List documents with filters, sorting and pagination.

    Without ``sort``, filename matches come back in relevance order.
    ``direction`` defaults to ascending when only ``sort`` is given.
    """
    if direction is not None and sort is None:
        raise ValidationError.for_field("direction", "direction requires sort")

    criteria = FilterCriteria(
        query=q,
        type=type,
        author=author,
        date_range=DateRange(start=start, end=end),
    )
    sort_state = SortState(field=sort, direction=direction or "asc") if sort else SortState()

    result = library.list_documents(criteria, sort_state, page, knowledge_base_id=knowledge_base_id)
    return PaginatedResponse[Document](**result.model_dump())


# NOTE: Must come before /api/documents/{document_id}
@app.get("/api/documents/facets", response_model=FacetsResponse)
async def get_facets(library: Library = Depends(get_library)):
    """Selectable document types and authors."""
    return FacetsResponse(**facet_values(library.documents))


@app.get("/api/documents/{document_id}", response_model=Document)
async def get_document(document_id: str, library: Library = Depends(get_library)):
    """Get a single document."""
    return library.get_document(document_id)


@app.post("/api/documents", response_model=Document, status_code=201)
async def create_text_document(
    request: CreateTextDocumentRequest,
    library: Library = Depends(get_library),
):
    """Create a document from authored text."""
    return library.add_text_document(
        name=request.filename,
        text_content=request.text_content,
        knowledge_bases=request.knowledge_bases,
        description=request.description,
        author=request.created_by,
    )


@app.post("/api/documents/upload", response_model=Document, status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    knowledge_bases: str = Form(..., description="Comma-separated knowledge base ids"),
    name: str | None = Form(None),
    description: str | None = Form(None),
    created_by: str | None = Form(None),
    library: Library = Depends(get_library),
    client: WorkflowClient | None = Depends(get_workflow_client),
):
    """Upload a file and hand it to the processing workflow when one is configured."""
    content = await file.read()
    kb_ids = [kb.strip() for kb in knowledge_bases.split(",") if kb.strip()]

    document = library.add_uploaded_document(
        upload_filename=file.filename,
        file_size=len(content),
        knowledge_bases=kb_ids,
        name=name,
        description=description,
        author=created_by,
    )

    if client is not None:
        await dispatch_processing(library, client, document, content, original_name=file.filename)
    else:
        log.info("No workflow service configured; %s stored without processing", document.id)

    return document


@app.put("/api/documents/{document_id}", response_model=Document)
async def update_document(
    document_id: str,
    request: UpdateDocumentRequest,
    library: Library = Depends(get_library),
):
    """Edit a document's name, description, knowledge bases or text."""
    return library.update_document(
        document_id,
        filename=request.filename,
        description=request.description,
        knowledge_bases=request.knowledge_bases,
        text_content=request.text_content,
    )


@app.delete("/api/documents/{document_id}", status_code=204)
async def delete_document(
    document_id: str,
    library: Library = Depends(get_library),
    client: WorkflowClient | None = Depends(get_workflow_client),
):
    """Delete a document and its indexed vectors."""
    await remove_document(library, document_id, client)
    return Response(status_code=204)


@app.post("/api/documents/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_documents(
    request: BulkDeleteRequest,
    library: Library = Depends(get_library),
    client: WorkflowClient | None = Depends(get_workflow_client),
):
    """Delete several documents and their indexed vectors; unknown ids are ignored."""
    deleted = await remove_documents(library, request.document_ids, client)
    return BulkDeleteResponse(deleted=deleted)


# Knowledge base routes

@app.get("/api/knowledge-bases", response_model=list[KnowledgeBaseResponse])
async def list_knowledge_bases(library: Library = Depends(get_library)):
    """List knowledge bases with document counts."""
    return [_kb_response(library, kb) for kb in library.list_knowledge_bases()]


@app.post("/api/knowledge-bases", response_model=KnowledgeBaseResponse, status_code=201)
async def create_knowledge_base(
    request: CreateKnowledgeBaseRequest,
    library: Library = Depends(get_library),
):
    """Create a knowledge base."""
    kb = library.create_knowledge_base(request.name, request.description)
    return _kb_response(library, kb)


@app.get("/api/knowledge-bases/{kb_id}", response_model=KnowledgeBaseResponse)
async def get_knowledge_base(kb_id: str, library: Library = Depends(get_library)):
    """Get a knowledge base."""
    return _kb_response(library, library.get_knowledge_base(kb_id))


# Saved search routes

@app.get("/api/saved-searches", response_model=list[SavedSearch])
async def list_saved_searches(library: Library = Depends(get_library)):
    """List saved searches, oldest first."""
    return library.saved_searches.list()


@app.post("/api/saved-searches", response_model=SavedSearch, status_code=201)
async def save_search(request: SaveSearchRequest, library: Library = Depends(get_library)):
    """Save the given filter criteria under a name."""
    return library.saved_searches.save(request.name, request.criteria)


@app.get("/api/saved-searches/{search_id}", response_model=FilterCriteria)
async def load_saved_search(search_id: str, library: Library = Depends(get_library)):
    """Get the criteria stored in a saved search."""
    return library.saved_searches.load(search_id)


@app.delete("/api/saved-searches/{search_id}", status_code=204)
async def delete_saved_search(search_id: str, library: Library = Depends(get_library)):
    """Delete a saved search."""
    library.saved_searches.delete(search_id)
    return Response(status_code=204)


# Content search routes

@app.post("/api/search", response_model=SearchResponseAPI)
async def search(
    request: SearchRequest,
    library: Library = Depends(get_library),
    client: WorkflowClient | None = Depends(get_workflow_client),
):
    """Search document content through the vector search workflow."""
    if client is None:
        raise unavailable_error()
    if request.knowledge_base_id is not None:
        library.get_knowledge_base(request.knowledge_base_id)

    results = await search_content(
        library,
        client,
        request.query,
        knowledge_base_id=request.knowledge_base_id,
        limit=request.limit,
        similarity_threshold=request.similarity_threshold,
    )
    return SearchResponseAPI(
        results=results,
        total_results=len(results),
        query=request.query,
        knowledge_base_id=request.knowledge_base_id,
    )


@app.get("/api/search/history", response_model=list[str])
async def get_search_history(library: Library = Depends(get_library)):
    """Recent content search terms, newest first."""
    return library.search_history.terms()


@app.post("/api/search/export")
async def export_search_results(results: list[ContentSearchResult]):
    """Download content search results as CSV."""
    return Response(
        content=export_results_csv(results),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="search-results.csv"'},
    )


# Processing progress routes

@app.post("/api/progress/update", response_model=ProcessingJob)
async def update_progress(
    update: ProgressUpdatePayload,
    library: Library = Depends(get_library),
):
    """Receive a processing progress update from the workflow service."""
    return library.record_progress(update)


@app.get("/api/progress/{document_id}", response_model=ProcessingJob)
async def get_progress(document_id: str, library: Library = Depends(get_library)):
    """Latest processing state of a document."""
    library.get_document(document_id)
    return library.get_job(document_id)


@app.get("/")
async def root():
    """API landing."""
    return {"message": "docshelf API", "docs": "/docs"}


def main():
    """Run the webapp server."""
    import uvicorn

    from .._logging import configure_logging

    configure_logging()
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8080"))

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
