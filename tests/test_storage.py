"""Tests for loading collection files."""

import json
from datetime import date
from pathlib import Path

import pytest

from docshelf.errors import DocshelfError, ErrorCode, ValidationError
from docshelf.storage import load_collection, sample_collection


def write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content)
    return path


class TestLoadCollection:
    def test_json_list_with_camel_case_keys(self, tmp_path):
        path = write(tmp_path, "docs.json", json.dumps([
            {
                "id": "a",
                "filename": "pricing-guide.pdf",
                "type": "PDF",
                "createdBy": "admin@visualhive.com",
                "createdDate": "2024-10-15",
                "lastUpdated": "2024-10-20",
                "knowledgeBases": ["1"],
            }
        ]))

        collection = load_collection(path)

        [doc] = collection.documents
        assert doc.created_by == "admin@visualhive.com"
        assert doc.created_date == date(2024, 10, 15)
        assert doc.knowledge_bases == ["1"]
        assert collection.knowledge_bases == []

    def test_yaml_mapping_with_knowledge_bases(self, tmp_path):
        path = write(tmp_path, "docs.yaml", """
knowledge_bases:
  - id: "1"
    name: Sales Information
    created_at: 2024-09-01T00:00:00Z
documents:
  - id: "a"
    filename: faq-content
    type: Text Content
    created_by: marketing@visualhive.com
    created_date: 2024-10-01
    last_updated: 2024-10-26
    text_content: Frequently asked questions
""")

        collection = load_collection(path)

        assert [kb.name for kb in collection.knowledge_bases] == ["Sales Information"]
        assert collection.documents[0].text_content == "Frequently asked questions"

    def test_empty_file_is_empty_collection(self, tmp_path):
        collection = load_collection(write(tmp_path, "empty.yaml", ""))
        assert collection.documents == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(DocshelfError) as exc_info:
            load_collection(tmp_path / "nope.json")
        assert exc_info.value.code == ErrorCode.FILE_READ_ERROR

    def test_invalid_json(self, tmp_path):
        with pytest.raises(DocshelfError) as exc_info:
            load_collection(write(tmp_path, "bad.json", "{not json"))
        assert exc_info.value.code == ErrorCode.FILE_READ_ERROR

    def test_invalid_record_reports_field(self, tmp_path):
        path = write(tmp_path, "docs.json", json.dumps([
            {"id": "a", "filename": "x", "type": "PDF", "created_by": "a@b.c",
             "created_date": "not-a-date", "last_updated": "2024-10-20"},
        ]))

        with pytest.raises(ValidationError) as exc_info:
            load_collection(path)

        fields = [e["field"] for e in exc_info.value.errors]
        assert fields == ["documents[0].created_date"]

    def test_duplicate_ids_rejected(self, tmp_path):
        record = {"id": "a", "filename": "x", "type": "PDF", "created_by": "a@b.c",
                  "created_date": "2024-10-01", "last_updated": "2024-10-02"}
        path = write(tmp_path, "docs.json", json.dumps([record, record]))

        with pytest.raises(ValidationError, match="Duplicate document ids: a"):
            load_collection(path)

    def test_duplicate_knowledge_base_ids_rejected(self, tmp_path):
        path = write(tmp_path, "docs.yaml", """
knowledge_bases:
  - id: "1"
    name: Sales Information
    created_at: 2024-09-01T00:00:00Z
  - id: "1"
    name: Marketing Materials
    created_at: 2024-09-15T00:00:00Z
""")

        with pytest.raises(ValidationError, match="Duplicate knowledge base ids: 1") as exc_info:
            load_collection(path)
        assert exc_info.value.errors[0]["field"] == "knowledge_bases"

    def test_scalar_document_is_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            load_collection(write(tmp_path, "docs.yaml", "just text"))


class TestSampleCollection:
    def test_shape(self):
        collection = sample_collection()
        assert len(collection.documents) == 6
        assert [kb.id for kb in collection.knowledge_bases] == ["1", "2", "3"]

    def test_ids_unique(self):
        ids = [doc.id for doc in sample_collection().documents]
        assert len(ids) == len(set(ids))
