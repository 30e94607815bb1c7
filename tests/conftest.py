"""Shared test fixtures for the docshelf test suite.

Design:
- make_document: builds Documents with sensible defaults
- library: fresh in-memory Library seeded with the sample collection
- workflow_client: WorkflowClient whose HTTP traffic goes to a MockTransport
- api_client: TestClient over an isolated Library, no workflow service
"""

from collections.abc import Callable, Generator
from datetime import date

import httpx
import pytest
from click.testing import CliRunner
from fastapi.testclient import TestClient

from docshelf.core import Library
from docshelf.models import Document
from docshelf.storage import sample_collection
from docshelf.webapp import api as api_module
from docshelf.workflows import WorkflowClient

WORKFLOW_URL = "http://workflows.test/webhook"


# ─────────────────────────────────────────────────────────────────────────────
# Environment
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of the tests."""
    for name in (
        "DOCSHELF_WORKFLOW_URL",
        "DOCSHELF_WORKFLOW_TIMEOUT",
        "DOCSHELF_DOCUMENTS_FILE",
        "DOCSHELF_DEFAULT_AUTHOR",
        "DOCSHELF_QUIET",
    ):
        monkeypatch.delenv(name, raising=False)


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def make_document() -> Callable[..., Document]:
    """Factory for Documents; only the fields a test cares about need passing."""
    counter = {"n": 0}

    def _make(filename: str = "report.pdf", **fields) -> Document:
        counter["n"] += 1
        values = {
            "id": str(counter["n"]),
            "filename": filename,
            "type": "PDF",
            "created_by": "admin@visualhive.com",
            "created_date": date(2024, 10, 1),
            "last_updated": date(2024, 10, 2),
            "knowledge_bases": ["1"],
        }
        values.update(fields)
        return Document(**values)

    return _make


@pytest.fixture
def sample_documents() -> list[Document]:
    return sample_collection().documents


@pytest.fixture
def library() -> Library:
    """Library over the sample collection (3 knowledge bases, 6 documents)."""
    return Library.from_collection(sample_collection())


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


# ─────────────────────────────────────────────────────────────────────────────
# Workflow Service
# ─────────────────────────────────────────────────────────────────────────────


class RecordingHandler:
    """MockTransport handler that records requests and replies from a table.

    ``replies`` maps a webhook path (e.g. "/search-vector") to either a JSON
    body, an httpx.Response, or an exception to raise.
    """

    def __init__(self) -> None:
        self.replies: dict[str, object] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix(httpx.URL(WORKFLOW_URL).path)
        reply = self.replies.get(path, {"success": True})
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)

    def paths(self) -> list[str]:
        return [r.url.path.removeprefix(httpx.URL(WORKFLOW_URL).path) for r in self.requests]


@pytest.fixture
def workflow_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def workflow_client(workflow_handler: RecordingHandler) -> WorkflowClient:
    return WorkflowClient(WORKFLOW_URL, timeout=5.0, transport=httpx.MockTransport(workflow_handler))


# ─────────────────────────────────────────────────────────────────────────────
# Web API
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def api_library(library: Library) -> Generator[Library, None, None]:
    """Install a fresh Library as the app's library for one test."""
    original = api_module._library
    api_module._library = library
    yield library
    api_module._library = original


@pytest.fixture
def api_client(api_library: Library) -> Generator[TestClient, None, None]:
    """TestClient with no workflow service configured."""
    api_module.app.dependency_overrides[api_module.get_workflow_client] = lambda: None
    with TestClient(api_module.app) as client:
        yield client
    api_module.app.dependency_overrides.clear()


@pytest.fixture
def api_client_with_workflows(
    api_library: Library,
    workflow_client: WorkflowClient,
) -> Generator[TestClient, None, None]:
    """TestClient whose workflow calls go to the recording handler."""
    api_module.app.dependency_overrides[api_module.get_workflow_client] = lambda: workflow_client
    with TestClient(api_module.app) as client:
        yield client
    api_module.app.dependency_overrides.clear()
