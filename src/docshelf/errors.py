"""Typed errors for docshelf.

Core functions raise these; the CLI and the web API translate them into
exit codes, JSON error payloads, or HTTP status codes.
"""

import json
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable, machine-readable error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    WORKFLOW_UNAVAILABLE = "WORKFLOW_UNAVAILABLE"
    WORKFLOW_FAILED = "WORKFLOW_FAILED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    FILE_READ_ERROR = "FILE_READ_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def format_error_json(code: str, message: str, details: dict | None = None) -> str:
    """Format an error as JSON for --json-errors output."""
    error: dict[str, dict[str, object]] = {"error": {"code": code, "message": message}}
    if details:
        error["error"]["details"] = details
    return json.dumps(error)


class DocshelfError(Exception):
    """Base class for errors surfaced to callers."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class ValidationError(DocshelfError):
    """Input rejected by a core operation.

    ``errors`` holds one ``{"field", "message"}`` item per failed field.
    """

    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None):
        self.errors = errors or []
        super().__init__(message, {"errors": self.errors} if self.errors else None)

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, [{"field": field, "message": message}])


class NotFoundError(DocshelfError):
    """A lookup by identifier matched nothing. No state was changed."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(
            f"{kind} not found: {identifier}", {"kind": kind, "id": identifier}
        )


class WorkflowError(DocshelfError):
    """The external document-processing service failed or is not configured."""

    code = ErrorCode.WORKFLOW_FAILED
