"""Configuration management for docshelf.

This module contains all configurable constants for the document manager.
Magic numbers are documented here rather than scattered throughout the codebase.
"""

import os
from pathlib import Path

from .errors import DocshelfError, ErrorCode


class ConfigurationError(DocshelfError):
    """Raised when configuration from the environment is malformed."""

    code = ErrorCode.CONFIGURATION_ERROR


# =============================================================================
# Document list
# =============================================================================

# Fixed number of documents shown per page
PAGE_SIZE = 10

# Columns a document list can be sorted by
SORTABLE_FIELDS = ("filename", "type", "created_by", "created_date", "last_updated")

# Sentinel meaning "no restriction" for the type and author filters
ALL = "all"

# Recent content searches kept per session
SEARCH_HISTORY_LIMIT = 5


# =============================================================================
# Documents and knowledge bases
# =============================================================================

ACCEPTED_FILE_EXTENSIONS = (".pdf", ".csv", ".mp3", ".mp4", ".wav", ".avi")
MAX_FILE_SIZE_MB = 50
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024

# Type tag given to authored (non-uploaded) documents
TEXT_CONTENT_TYPE = "Text Content"

# Type tag for uploads without an extension
UNKNOWN_FILE_TYPE = "FILE"

KB_NAME_MAX_LENGTH = 100
KB_DESCRIPTION_MAX_LENGTH = 500


# =============================================================================
# Content search (delegated to the workflow service)
# =============================================================================

DEFAULT_SEARCH_LIMIT = 20
MAX_SEARCH_LIMIT = 100
MAX_QUERY_LENGTH = 500
DEFAULT_SIMILARITY_THRESHOLD = 0.7

# Chunking parameters forwarded with chunk requests
DEFAULT_CHUNK_SIZE = 512
DEFAULT_CHUNK_OVERLAP = 50

DEFAULT_WORKFLOW_TIMEOUT = 30.0


def get_workflow_url() -> str | None:
    """Base URL of the document-processing webhook service, if configured."""
    url = os.environ.get("DOCSHELF_WORKFLOW_URL", "").strip()
    return url.rstrip("/") or None


def get_workflow_timeout() -> float:
    """Request timeout in seconds for webhook calls.

    Raises:
        ConfigurationError: If DOCSHELF_WORKFLOW_TIMEOUT is not a positive number.
    """
    raw = os.environ.get("DOCSHELF_WORKFLOW_TIMEOUT")
    if not raw:
        return DEFAULT_WORKFLOW_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        raise ConfigurationError(
            f"DOCSHELF_WORKFLOW_TIMEOUT must be a number of seconds, got {raw!r}"
        )
    if timeout <= 0:
        raise ConfigurationError("DOCSHELF_WORKFLOW_TIMEOUT must be positive")
    return timeout


def get_documents_file() -> Path | None:
    """Seed file (JSON or YAML) for the web app's document collection."""
    path = os.environ.get("DOCSHELF_DOCUMENTS_FILE")
    if path:
        return Path(path)
    return None


def get_default_author() -> str:
    """Author recorded on documents added without an explicit createdBy."""
    return os.environ.get("DOCSHELF_DEFAULT_AUTHOR", "current-user@docshelf.local")
