"""Client and payload contracts for the document-processing webhook service.

Parsing, chunking, embedding and vector search run in an external workflow
service (n8n backed by a Qdrant vector store). This module defines the
payloads exchanged with its webhooks and a small async client for the calls
the application makes. Field names are part of the contract.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, TypeVar

import httpx
from pydantic import BaseModel, Field

from .config import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_WORKFLOW_TIMEOUT,
    MAX_SEARCH_LIMIT,
    TEXT_CONTENT_TYPE,
    get_workflow_timeout,
    get_workflow_url,
)
from .errors import ErrorCode, WorkflowError
from .models import ProcessingStatus

log = logging.getLogger(__name__)

FileType = Literal["pdf", "csv", "text", "audio"]

ENDPOINTS = {
    # Document processing
    "parse_file": "/parse-file",
    "chunk_content": "/chunk-content",
    "embed_chunks": "/embed-chunks",
    "process_document": "/process-document",
    # Search
    "search_vector": "/search-vector",
    "search_hybrid": "/search-hybrid",
    # Cleanup
    "delete_document": "/delete-document",
    "cleanup_orphaned": "/cleanup-orphaned",
    # Batch
    "batch_process": "/batch-process",
}

_AUDIO_TYPES = {"MP3", "MP4", "WAV", "AVI"}


def file_type_for(document_type: str) -> FileType:
    """Map a document type tag to the workflow service's file type."""
    upper = document_type.upper()
    if document_type == TEXT_CONTENT_TYPE:
        return "text"
    if upper == "PDF":
        return "pdf"
    if upper == "CSV":
        return "csv"
    if upper in _AUDIO_TYPES:
        return "audio"
    return "text"


# =============================================================================
# Document processing
# =============================================================================


class FileMetadata(BaseModel):
    filename: str
    original_name: str
    user_id: str
    file_size: int = Field(ge=0)


class ProcessDocumentPayload(BaseModel):
    """Starts the full parse/chunk/embed workflow for one document."""

    operation: Literal["process"] = "process"
    document_id: str = Field(min_length=1)
    knowledge_base_id: str = Field(min_length=1)
    user_token: str | None = None
    file_data: str = Field(min_length=1)  # Base64 file data or a file URL
    file_type: FileType
    metadata: FileMetadata


class ProgressUpdatePayload(BaseModel):
    """Sent by the workflow service while a document is processed."""

    document_id: str = Field(min_length=1)
    progress: float = Field(ge=0, le=100)
    status: ProcessingStatus
    chunks_total: int | None = Field(default=None, ge=0)
    chunks_processed: int | None = Field(default=None, ge=0)
    qdrant_points: list[str] | None = None
    error_message: str | None = None
    current_step: str | None = None


class ParseFilePayload(BaseModel):
    document_id: str
    file_data: str
    file_type: FileType


class ParseMetadata(BaseModel):
    pages: int | None = None
    words: int | None = None
    language: str | None = None


class ParseFileResponse(BaseModel):
    success: bool
    content: str = ""
    metadata: ParseMetadata | None = None
    error_message: str | None = None


class ChunkContentPayload(BaseModel):
    document_id: str
    content: str
    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP


class ChunkContentResponse(BaseModel):
    success: bool
    chunks: list[str] = Field(default_factory=list)
    total_chunks: int = 0
    error_message: str | None = None


class EmbedChunksPayload(BaseModel):
    document_id: str
    knowledge_base_id: str
    chunks: list[str]
    metadata: dict[str, Any] | None = None


class EmbedChunksResponse(BaseModel):
    success: bool
    qdrant_points: list[str] = Field(default_factory=list)
    total_embedded: int = 0
    error_message: str | None = None


class BatchDocument(BaseModel):
    document_id: str
    file_data: str
    file_type: FileType
    knowledge_base_id: str


class BatchProcessPayload(BaseModel):
    documents: list[BatchDocument]


class BatchFailure(BaseModel):
    document_id: str
    error: str


class BatchProcessResponse(BaseModel):
    success: bool
    processed: list[str] = Field(default_factory=list)
    failed: list[BatchFailure] = Field(default_factory=list)


# =============================================================================
# Search
# =============================================================================


class SearchVectorPayload(BaseModel):
    query: str = Field(min_length=1)
    knowledge_base_id: str | None = None
    limit: int = Field(default=DEFAULT_SEARCH_LIMIT, ge=1, le=MAX_SEARCH_LIMIT)
    similarity_threshold: float = Field(default=DEFAULT_SIMILARITY_THRESHOLD, ge=0, le=1)
    user_id: str | None = None  # For permission filtering on the service side


class SearchVectorResult(BaseModel):
    content: str  # Matched text chunk
    score: float  # Similarity, 0-1
    document_id: str
    knowledge_base_id: str
    chunk_index: int
    qdrant_point_id: str
    metadata: dict[str, Any] | None = None


class SearchVectorResponse(BaseModel):
    results: list[SearchVectorResult] = Field(default_factory=list)
    total_results: int = 0
    query: str
    knowledge_base_id: str | None = None


class SearchHybridPayload(SearchVectorPayload):
    keyword_weight: float | None = Field(default=None, ge=0, le=1)
    vector_weight: float | None = Field(default=None, ge=0, le=1)


class SearchHybridResponse(SearchVectorResponse):
    keyword_results: int = 0
    vector_results: int = 0


# =============================================================================
# Cleanup
# =============================================================================


class DeleteDocumentPayload(BaseModel):
    document_id: str = Field(min_length=1)
    qdrant_points: list[str]
    knowledge_base_id: str = Field(min_length=1)


class DeleteDocumentResponse(BaseModel):
    success: bool
    deleted_points: list[str] = Field(default_factory=list)
    failed_points: list[str] | None = None
    error_message: str | None = None


class CleanupOrphanedPayload(BaseModel):
    knowledge_base_id: str | None = None
    document_ids: list[str] | None = None  # Valid ids to keep


class CleanupOrphanedResponse(BaseModel):
    success: bool
    cleaned_points: int = 0
    error_message: str | None = None


def is_error_response(data: Any) -> bool:
    """Whether a webhook reply reports failure with an error message."""
    return isinstance(data, dict) and data.get("success") is False and "error_message" in data


# =============================================================================
# Client
# =============================================================================

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class WorkflowClient:
    """Async client for the workflow service's webhooks.

    Every call is bounded by ``timeout`` seconds. Cancelling the awaiting
    task cancels the in-flight request.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_WORKFLOW_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_env(cls) -> WorkflowClient | None:
        """Build a client from DOCSHELF_WORKFLOW_URL, or None when unset."""
        url = get_workflow_url()
        if url is None:
            return None
        return cls(url, timeout=get_workflow_timeout())

    async def post(self, endpoint: str, payload: BaseModel) -> Any:
        """POST a payload to a webhook and return the decoded JSON reply.

        Raises:
            WorkflowError: On timeout, transport failure, HTTP error status,
                or a reply flagged ``success: false``.
        """
        body = payload.model_dump(mode="json", exclude_none=True)
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(endpoint, json=body)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            log.warning("Workflow call %s timed out after %ss", endpoint, self.timeout)
            raise WorkflowError(
                f"Workflow service timed out on {endpoint}",
                {"endpoint": endpoint, "timeout": self.timeout},
            ) from e
        except httpx.HTTPStatusError as e:
            raise WorkflowError(
                f"Workflow service returned {e.response.status_code} for {endpoint}",
                {"endpoint": endpoint, "status_code": e.response.status_code},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise WorkflowError(
                f"Workflow service call to {endpoint} failed: {e}",
                {"endpoint": endpoint},
            ) from e

        if is_error_response(data):
            raise WorkflowError(
                data["error_message"] or f"Workflow {endpoint} failed",
                {"endpoint": endpoint},
            )
        return data

    async def _call(self, name: str, payload: BaseModel, response_model: type[ResponseT]) -> ResponseT:
        data = await self.post(ENDPOINTS[name], payload)
        try:
            return response_model.model_validate(data)
        except ValueError as e:
            raise WorkflowError(
                f"Unexpected reply from {ENDPOINTS[name]}: {e}",
                {"endpoint": ENDPOINTS[name]},
            ) from e

    async def process_document(self, payload: ProcessDocumentPayload) -> None:
        """Hand a document to the processing workflow.

        Progress is reported back asynchronously through progress updates.
        """
        await self.post(ENDPOINTS["process_document"], payload)
        log.info("Dispatched document %s for processing", payload.document_id)

    async def search_vector(self, payload: SearchVectorPayload) -> SearchVectorResponse:
        return await self._call("search_vector", payload, SearchVectorResponse)

    async def search_hybrid(self, payload: SearchHybridPayload) -> SearchHybridResponse:
        return await self._call("search_hybrid", payload, SearchHybridResponse)

    async def delete_document(self, payload: DeleteDocumentPayload) -> DeleteDocumentResponse:
        return await self._call("delete_document", payload, DeleteDocumentResponse)


def unavailable_error() -> WorkflowError:
    """Error raised when a feature needs the workflow service but none is configured."""
    return WorkflowError(
        "Workflow service is not configured (set DOCSHELF_WORKFLOW_URL)",
        code=ErrorCode.WORKFLOW_UNAVAILABLE,
    )
