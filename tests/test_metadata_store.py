"""Tests for the JSON metadata store."""

import json

import pytest

from shared.models.index import CURRENT_SCHEMA_VERSION, DocumentIndex, PageIndexEntry, PendingIndexTask
from services.bookmark_index import MetadataStore as metadata_module
from services.bookmark_index.MetadataStore import (
    DOCUMENTS_FILE_NAME,
    LEGACY_FILE_NAME,
    PENDING_FILE_NAME,
    MetadataStore,
)


def _document(key="paper.pdf", pages=(0,)):
    return DocumentIndex(
        document_key=key,
        pages=[PageIndexEntry(page_index=p, summary=f"page {p}") for p in pages],
    )


class TestPersistence:
    def test_documents_survive_reload(self, helper_config, tmp_path):
        store = MetadataStore(helper_config, data_dir=tmp_path)
        doc = _document(pages=(1, 4))
        store.put_document(doc)

        reloaded = MetadataStore(helper_config, data_dir=tmp_path)
        assert reloaded.get_document("paper.pdf") == doc
        assert reloaded.get_document_by_id(doc.id) == doc
        assert reloaded.get_schema_version() == CURRENT_SCHEMA_VERSION

    def test_delete_documents_keeps_others(self, helper_config, metadata_store, tmp_path):
        for key in ("a.pdf", "b.pdf", "c.pdf"):
            metadata_store.put_document(_document(key=key))

        metadata_store.delete_documents(["a.pdf", "c.pdf", "unknown.pdf"])

        reloaded = MetadataStore(helper_config, data_dir=tmp_path)
        assert [doc.document_key for doc in reloaded.list_documents()] == ["b.pdf"]

    def test_file_carries_schema_version(self, metadata_store, tmp_path):
        metadata_store.put_document(_document())
        raw = json.loads((tmp_path / DOCUMENTS_FILE_NAME).read_text())
        assert raw["schema_version"] == CURRENT_SCHEMA_VERSION
        assert raw["documents"][0]["document_key"] == "paper.pdf"

    def test_pending_tasks_survive_reload(self, helper_config, tmp_path):
        store = MetadataStore(helper_config, data_dir=tmp_path)
        task = PendingIndexTask(document_key="book.pdf", page_index=5, delay_seconds=180)
        store.put_pending_task(task)

        reloaded = MetadataStore(helper_config, data_dir=tmp_path)
        assert reloaded.get_pending_task("book.pdf", 5) == task

    def test_failed_write_leaves_memory_and_disk_unchanged(self, metadata_store, tmp_path, monkeypatch):
        original = _document()
        metadata_store.put_document(original)
        on_disk = (tmp_path / DOCUMENTS_FILE_NAME).read_text()

        def broken_write(path, content):
            raise OSError("disk full")

        monkeypatch.setattr(metadata_module, "write_json_atomic", broken_write)
        with pytest.raises(OSError):
            metadata_store.put_document(_document(key="other.pdf"))

        assert metadata_store.get_document("other.pdf") is None
        assert metadata_store.list_documents() == [original]
        assert (tmp_path / DOCUMENTS_FILE_NAME).read_text() == on_disk

    def test_corrupt_file_loads_empty(self, helper_config, tmp_path):
        (tmp_path / PENDING_FILE_NAME).write_text("{not json")
        store = MetadataStore(helper_config, data_dir=tmp_path)
        assert store.list_pending_tasks() == []


class TestPendingTasks:
    def test_only_if_protects_superseding_record(self, metadata_store):
        first = PendingIndexTask(document_key="book.pdf", page_index=5)
        second = PendingIndexTask(document_key="book.pdf", page_index=5, delay_seconds=10)
        metadata_store.put_pending_task(first)
        metadata_store.put_pending_task(second)

        assert metadata_store.delete_pending_task("book.pdf", 5, only_if=first) is False
        assert metadata_store.get_pending_task("book.pdf", 5) == second
        assert metadata_store.delete_pending_task("book.pdf", 5, only_if=second) is True
        assert metadata_store.get_pending_task("book.pdf", 5) is None

    def test_delete_missing_task_is_noop(self, metadata_store):
        assert metadata_store.delete_pending_task("book.pdf", 1) is False


class TestSchemaDetection:
    def test_untagged_list_is_version_one(self, helper_config, tmp_path):
        (tmp_path / DOCUMENTS_FILE_NAME).write_text(json.dumps([_document().model_dump(mode="json")]))
        store = MetadataStore(helper_config, data_dir=tmp_path)
        assert store.get_schema_version() == 1
        assert store.get_document("paper.pdf") is not None

    def test_legacy_file_without_documents_is_version_one(self, helper_config, tmp_path):
        (tmp_path / LEGACY_FILE_NAME).write_text(json.dumps([
            {"id": "legacy-1", "document_key": "paper.pdf", "page_index": 2, "summary": "old"},
        ]))
        store = MetadataStore(helper_config, data_dir=tmp_path)
        assert store.get_schema_version() == 1
        assert [r.id for r in store.list_legacy_records()] == ["legacy-1"]

    def test_fresh_store_is_current(self, metadata_store):
        assert metadata_store.get_schema_version() == CURRENT_SCHEMA_VERSION
