"""Loading document collections from disk, plus the built-in sample set.

A collection file is JSON or YAML holding either a list of documents or a
mapping with ``documents`` and (optionally) ``knowledge_bases`` lists.
camelCase keys (``createdBy``, ``lastUpdated``, ...) are accepted.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

import pydantic
import yaml

from .errors import DocshelfError, ErrorCode, ValidationError
from .models import Document, KnowledgeBase

log = logging.getLogger(__name__)

_CAMEL_TO_SNAKE = {
    "createdBy": "created_by",
    "createdDate": "created_date",
    "lastUpdated": "last_updated",
    "knowledgeBases": "knowledge_bases",
    "textContent": "text_content",
    "createdAt": "created_at",
}


@dataclass
class Collection:
    """Documents and knowledge bases read from one source."""

    documents: list[Document] = field(default_factory=list)
    knowledge_bases: list[KnowledgeBase] = field(default_factory=list)


def _normalize_keys(record: dict[str, Any]) -> dict[str, Any]:
    return {_CAMEL_TO_SNAKE.get(key, key): value for key, value in record.items()}


def _parse_records(model: type[pydantic.BaseModel], records: Any, source: str) -> list:
    if records is None:
        return []
    if not isinstance(records, list):
        raise ValidationError.for_field(source, f"{source} must be a list")

    parsed = []
    errors: list[dict[str, str]] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            errors.append({"field": f"{source}[{index}]", "message": "must be a mapping"})
            continue
        try:
            parsed.append(model.model_validate(_normalize_keys(record)))
        except pydantic.ValidationError as e:
            for err in e.errors():
                loc = ".".join(str(part) for part in err["loc"])
                errors.append({"field": f"{source}[{index}].{loc}", "message": err["msg"]})

    if errors:
        raise ValidationError(f"Invalid {source} in collection file", errors)
    return parsed


def _reject_duplicate_ids(records: list, source: str, kind: str) -> None:
    ids = [record.id for record in records]
    duplicates = sorted({record_id for record_id in ids if ids.count(record_id) > 1})
    if duplicates:
        raise ValidationError.for_field(source, f"Duplicate {kind} ids: {', '.join(duplicates)}")


def load_collection(path: Path) -> Collection:
    """Read a collection file.

    Raises:
        DocshelfError: If the file is missing, unreadable, or not valid JSON/YAML.
        ValidationError: If any record is malformed.
    """
    try:
        content = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise DocshelfError(
            f"Could not read collection file {path}: {e}",
            {"path": str(path)},
            code=ErrorCode.FILE_READ_ERROR,
        ) from e

    if isinstance(data, list):
        data = {"documents": data}
    elif data is None:
        data = {}
    elif not isinstance(data, dict):
        raise ValidationError.for_field("documents", "Collection file must hold a list or mapping")

    collection = Collection(
        documents=_parse_records(Document, data.get("documents"), "documents"),
        knowledge_bases=_parse_records(KnowledgeBase, data.get("knowledge_bases"), "knowledge_bases"),
    )

    _reject_duplicate_ids(collection.documents, "documents", "document")
    _reject_duplicate_ids(collection.knowledge_bases, "knowledge_bases", "knowledge base")

    log.debug(
        "Loaded %d documents and %d knowledge bases from %s",
        len(collection.documents),
        len(collection.knowledge_bases),
        path,
    )
    return collection


def sample_collection() -> Collection:
    """Demonstration data used when no collection file is configured."""
    created = datetime(2024, 9, 1, tzinfo=UTC)
    knowledge_bases = [
        KnowledgeBase(id="1", name="Sales Information", created_at=created),
        KnowledgeBase(id="2", name="N8N Workflows", created_at=created),
        KnowledgeBase(id="3", name="Investor Relations", created_at=created),
    ]

    def doc(doc_id: str, filename: str, type_: str, author: str, created_on: str, updated_on: str):
        return Document(
            id=doc_id,
            filename=filename,
            type=type_,
            created_by=author,
            created_date=date.fromisoformat(created_on),
            last_updated=date.fromisoformat(updated_on),
            knowledge_bases=["1"],
        )

    documents = [
        doc("1", "pricing-guide.pdf", "PDF", "admin@visualhive.com", "2024-10-15", "2024-10-20"),
        doc("2", "product-overview.csv", "CSV", "sales@visualhive.com", "2024-10-10", "2024-10-25"),
        doc("3", "company-intro", "Text Content", "marketing@visualhive.com", "2024-09-28", "2024-10-22"),
        doc("4", "sales-playbook.pdf", "PDF", "admin@visualhive.com", "2024-10-05", "2024-10-18"),
        doc("5", "customer-data.csv", "CSV", "sales@visualhive.com", "2024-09-20", "2024-10-12"),
        doc("6", "faq-content", "Text Content", "marketing@visualhive.com", "2024-10-01", "2024-10-26"),
    ]
    return Collection(documents=documents, knowledge_bases=knowledge_bases)
