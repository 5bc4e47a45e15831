"""Durable JSON metadata for the bookmark index.

Holds three collections, each in its own file and each rewritten in full on
every mutation:

- document index records (with the schema version tag),
- pending indexing tasks,
- legacy one-vector-per-page records (read for migration only).

Writes go to a temp file in the same directory, are flushed and fsynced and
then atomically moved over the target. The in-memory view is only replaced
after the write succeeded.
"""

from pathlib import Path

from pydantic import ValidationError

from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperFile import read_json, write_json_atomic
from shared.models.index import (
    CURRENT_SCHEMA_VERSION,
    DocumentIndex,
    LegacyPageRecord,
    PendingIndexTask,
)

DOCUMENTS_FILE_NAME = "pdf_index_metadata.json"
PENDING_FILE_NAME = "pending_index_tasks.json"
LEGACY_FILE_NAME = "bookmark_index_metadata.json"

# schema version assumed for stores written before the version tag existed
UNTAGGED_SCHEMA_VERSION = 1


class MetadataStore:
    """Persistent metadata for document indexes, pending tasks and legacy records."""

    def __init__(self, helper_config: HelperConfig, data_dir: Path | None = None) -> None:
        self.logging = helper_config.get_logger()
        self._data_dir = data_dir or helper_config.get_path_val("INDEX_DATA_DIR", default="data", create=True)
        self._data_dir.mkdir(parents=True, exist_ok=True)

        self._documents: dict[str, DocumentIndex] = {}
        self._schema_version: int = CURRENT_SCHEMA_VERSION
        self._pending: dict[tuple[str, int], PendingIndexTask] = {}
        self._legacy: dict[str, LegacyPageRecord] = {}
        self.load()

    ##########################################
    ################ PATHS ###################
    ##########################################

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _documents_path(self) -> Path:
        return self._data_dir / DOCUMENTS_FILE_NAME

    def _pending_path(self) -> Path:
        return self._data_dir / PENDING_FILE_NAME

    def _legacy_path(self) -> Path:
        return self._data_dir / LEGACY_FILE_NAME

    ##########################################
    ################ LOADING #################
    ##########################################

    def load(self) -> None:
        """(Re)load all collections from disk. Unreadable files load as empty."""
        raw_documents = self._read_json(self._documents_path())
        if isinstance(raw_documents, dict):
            self._schema_version = int(raw_documents.get("schema_version", UNTAGGED_SCHEMA_VERSION))
            document_items = raw_documents.get("documents", [])
        elif isinstance(raw_documents, list):
            # bare list written before the version tag existed
            self._schema_version = UNTAGGED_SCHEMA_VERSION
            document_items = raw_documents
        else:
            document_items = []
            self._schema_version = UNTAGGED_SCHEMA_VERSION if self._legacy_path().exists() else CURRENT_SCHEMA_VERSION

        documents = self._parse_items(document_items, DocumentIndex, self._documents_path())
        self._documents = {doc.document_key: doc for doc in documents}

        tasks = self._parse_items(self._read_json(self._pending_path()) or [], PendingIndexTask, self._pending_path())
        self._pending = {task.key: task for task in tasks}

        legacy = self._parse_items(self._read_json(self._legacy_path()) or [], LegacyPageRecord, self._legacy_path())
        self._legacy = {record.id: record for record in legacy}

        self.logging.debug(
            "Loaded metadata from %s: %d document(s), %d pending task(s), %d legacy record(s), schema v%d.",
            self._data_dir, len(self._documents), len(self._pending), len(self._legacy), self._schema_version,
        )

    def _read_json(self, path: Path):
        try:
            return read_json(path)
        except (OSError, ValueError) as e:
            self.logging.warning("Could not read %s, treating it as empty: %s", path.name, e)
            return None

    def _parse_items(self, items, model, path: Path) -> list:
        if not isinstance(items, list):
            self.logging.warning("Unexpected content in %s, treating it as empty.", path.name)
            return []
        parsed = []
        for item in items:
            try:
                parsed.append(model.model_validate(item))
            except ValidationError as e:
                self.logging.warning("Skipping invalid record in %s: %s", path.name, e)
        return parsed

    ##########################################
    ################ WRITING #################
    ##########################################

    def _save_documents(self, documents: dict[str, DocumentIndex], schema_version: int) -> None:
        write_json_atomic(self._documents_path(), {
            "schema_version": schema_version,
            "documents": [doc.model_dump(mode="json") for doc in documents.values()],
        })
        self._documents = documents
        self._schema_version = schema_version

    def _save_pending(self, pending: dict[tuple[str, int], PendingIndexTask]) -> None:
        write_json_atomic(self._pending_path(), [task.model_dump(mode="json") for task in pending.values()])
        self._pending = pending

    def _save_legacy(self, legacy: dict[str, LegacyPageRecord]) -> None:
        write_json_atomic(self._legacy_path(), [record.model_dump(mode="json") for record in legacy.values()])
        self._legacy = legacy

    ##########################################
    ############### DOCUMENTS ################
    ##########################################

    def get_schema_version(self) -> int:
        return self._schema_version

    def set_schema_version(self, version: int) -> None:
        self._save_documents(dict(self._documents), version)

    def get_document(self, document_key: str) -> DocumentIndex | None:
        return self._documents.get(document_key)

    def get_document_by_id(self, vector_id: str) -> DocumentIndex | None:
        for doc in self._documents.values():
            if doc.id == vector_id:
                return doc
        return None

    def list_documents(self) -> list[DocumentIndex]:
        return list(self._documents.values())

    def get_vector_ids(self) -> set[str]:
        return {doc.id for doc in self._documents.values()}

    def put_document(self, document: DocumentIndex) -> None:
        documents = dict(self._documents)
        documents[document.document_key] = document
        self._save_documents(documents, self._schema_version)

    def delete_document(self, document_key: str) -> None:
        if document_key not in self._documents:
            return
        documents = dict(self._documents)
        del documents[document_key]
        self._save_documents(documents, self._schema_version)

    def delete_documents(self, document_keys: list[str]) -> None:
        """Delete several documents with a single write; unknown keys are ignored."""
        doomed = set(document_keys)
        documents = {key: doc for key, doc in self._documents.items() if key not in doomed}
        if len(documents) != len(self._documents):
            self._save_documents(documents, self._schema_version)

    ##########################################
    ############ PENDING TASKS ###############
    ##########################################

    def list_pending_tasks(self) -> list[PendingIndexTask]:
        return list(self._pending.values())

    def get_pending_task(self, document_key: str, page_index: int) -> PendingIndexTask | None:
        return self._pending.get((document_key, page_index))

    def put_pending_task(self, task: PendingIndexTask) -> None:
        """Persist `task`, replacing any record for the same (document_key, page_index)."""
        pending = dict(self._pending)
        pending[task.key] = task
        self._save_pending(pending)

    def delete_pending_task(self, document_key: str, page_index: int, only_if: PendingIndexTask | None = None) -> bool:
        """Delete the record for a page.

        Args:
            document_key (str): Document of the task.
            page_index (int): Page of the task.
            only_if (PendingIndexTask | None): Only delete when the stored record
                still equals this one, so a superseding schedule is left alone.

        Returns:
            bool: True if a record was deleted.
        """
        key = (document_key, page_index)
        current = self._pending.get(key)
        if current is None or (only_if is not None and current != only_if):
            return False
        pending = dict(self._pending)
        del pending[key]
        self._save_pending(pending)
        return True

    ##########################################
    ############ LEGACY RECORDS ##############
    ##########################################

    def list_legacy_records(self) -> list[LegacyPageRecord]:
        return list(self._legacy.values())

    def delete_legacy_records(self, record_ids: list[str]) -> None:
        doomed = set(record_ids)
        legacy = {rid: record for rid, record in self._legacy.items() if rid not in doomed}
        if len(legacy) != len(self._legacy):
            self._save_legacy(legacy)

    def clear_legacy_records(self) -> None:
        if self._legacy or self._legacy_path().exists():
            self._save_legacy({})
