"""Upgrade of the legacy one-vector-per-page index to per-document vectors.

The store carries an explicit schema version. Anything below
CURRENT_SCHEMA_VERSION (including stores written before the tag existed)
is migrated document by document: each legacy group is merged into its
DocumentIndex with a single embed, and only then are that group's legacy
vectors and records removed. An interrupted migration therefore resumes with
the remaining groups on the next start. The version is bumped once no legacy
records are left.
"""

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.errors import BookmarkIndexError
from shared.helper.HelperConfig import HelperConfig
from shared.models.index import CURRENT_SCHEMA_VERSION, BatchReport, LegacyPageRecord
from services.bookmark_index.DocumentIndexStore import DocumentIndexStore
from services.bookmark_index.IndexingService import IndexingService
from services.bookmark_index.MetadataStore import MetadataStore


class SchemaMigrator:
    """Migrates legacy page records into DocumentIndex records."""

    def __init__(
        self,
        helper_config: HelperConfig,
        metadata_store: MetadataStore,
        document_index_store: DocumentIndexStore,
        rag_client: RAGClientInterface,
        indexing_service: IndexingService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._metadata = metadata_store
        self._index_store = document_index_store
        self._rag_client = rag_client
        self._indexing = indexing_service

    def needs_migration(self) -> bool:
        return self._metadata.get_schema_version() < CURRENT_SCHEMA_VERSION

    async def migrate(self) -> BatchReport:
        """Migrate all legacy records. A no-op on an up-to-date store.

        Returns:
            BatchReport: Legacy records migrated (indexed) and those whose
                document failed and stays pending for the next run (failed).
        """
        report = BatchReport()
        if not self.needs_migration():
            return report

        groups: dict[str, list[LegacyPageRecord]] = {}
        for record in self._metadata.list_legacy_records():
            groups.setdefault(record.document_key, []).append(record)
        self.logging.info(
            "Migrating schema v%d to v%d: %d legacy record(s) in %d document(s).",
            self._metadata.get_schema_version(), CURRENT_SCHEMA_VERSION,
            sum(len(group) for group in groups.values()), len(groups),
        )

        for document_key, records in groups.items():
            if await self._migrate_document(document_key, records):
                report.indexed += len(records)
            else:
                report.failed += len(records)

        if self._metadata.list_legacy_records():
            self.logging.warning(
                "Migration incomplete, %d legacy record(s) left for the next start.", report.failed
            )
            return report

        self._metadata.clear_legacy_records()
        self._metadata.set_schema_version(CURRENT_SCHEMA_VERSION)
        self.logging.info("Migration complete: %d record(s) migrated.", report.indexed)
        return report

    async def _migrate_document(self, document_key: str, records: list[LegacyPageRecord]) -> bool:
        try:
            await self._indexing.do_call_with_retry(
                self._index_store.add_pages,
                document_key,
                [record.to_page_entry() for record in records],
                description=f"migration of '{document_key}'",
            )
        except BookmarkIndexError as e:
            self.logging.error("Migration of '%s' failed: %s", document_key, e)
            return False

        record_ids = [record.id for record in records]
        try:
            await self._rag_client.do_delete_points(record_ids)
        except BookmarkIndexError as e:
            # the orphan sweep removes them later
            self.logging.warning("Could not delete legacy vectors of '%s': %s", document_key, e)
        self._metadata.delete_legacy_records(record_ids)
        return True
