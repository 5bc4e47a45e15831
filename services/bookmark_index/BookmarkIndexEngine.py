"""Facade of the bookmark index.

Composed once by the host from injected clients and stores; every component
receives its collaborators explicitly, so tests can swap any of them for a
fake.
"""

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.errors import BookmarkIndexError, ReindexInProgressError
from shared.helper.HelperConfig import HelperConfig
from shared.models.index import BatchReport
from shared.models.search import SearchCandidate
from services.bookmark_index.DocumentIndexStore import DocumentIndexStore
from services.bookmark_index.IndexingService import IndexingService
from services.bookmark_index.MetadataStore import MetadataStore
from services.bookmark_index.PendingTaskScheduler import PendingTaskScheduler
from services.bookmark_index.SchemaMigrator import SchemaMigrator
from services.bookmark_index.SearchCoordinator import DEFAULT_TOP_K, SearchCoordinator
from services.bookmarks.BookmarkRegistry import BookmarkRegistry
from services.bookmarks.PageTextSourceInterface import PageTextSourceInterface


class BookmarkIndexEngine:
    """Entry point for bookmark events, searches and index maintenance."""

    def __init__(
        self,
        helper_config: HelperConfig,
        metadata_store: MetadataStore,
        embed_client: EmbedClientInterface,
        llm_client: LLMClientInterface,
        rag_client: RAGClientInterface,
        bookmark_source: BookmarkRegistry,
        text_source: PageTextSourceInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._metadata = metadata_store
        self._bookmarks = bookmark_source

        self.index_store = DocumentIndexStore(helper_config, metadata_store, embed_client, rag_client)
        self.indexing = IndexingService(helper_config, self.index_store, llm_client, text_source, bookmark_source)
        self.scheduler = PendingTaskScheduler(
            helper_config, metadata_store, self.index_store, bookmark_source, self.indexing.do_index_page
        )
        self.search_coordinator = SearchCoordinator(helper_config, self.index_store, embed_client, rag_client)
        self.migrator = SchemaMigrator(helper_config, metadata_store, self.index_store, rag_client, self.indexing)

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def start(self) -> None:
        """Migrate a legacy store, sweep orphaned vectors and resume pending tasks."""
        await self.migrator.migrate()
        try:
            await self.index_store.cleanup_orphans()
        except BookmarkIndexError as e:
            self.logging.warning("Orphan cleanup skipped: %s", e)
        await self.scheduler.reconcile_on_startup()
        self.logging.info(
            "Bookmark index ready: %d document(s), %d pending task(s).",
            len(self.index_store.list_documents()), self.scheduler.get_pending_count(),
        )

    async def shutdown(self) -> None:
        """Stop in-memory timers. Pending records stay persisted."""
        await self.scheduler.shutdown()

    ##########################################
    ############ BOOKMARK EVENTS #############
    ##########################################

    def on_bookmark_added(self, document_key: str, page_index: int, delay: float | None = None) -> bool:
        return self.scheduler.schedule(document_key, page_index, delay)

    async def on_bookmark_removed(self, document_key: str, page_index: int) -> bool:
        """Cancel pending work for the page and drop it from its document index.

        Returns:
            bool: True if an indexed page was removed.
        """
        self.scheduler.cancel(document_key, page_index)
        if not self.index_store.is_indexed(document_key, page_index):
            return False
        try:
            await self.index_store.remove_page(document_key, page_index)
        except BookmarkIndexError as e:
            self.logging.error("Removing page %d of '%s' from the index failed: %s", page_index, document_key, e)
            return False
        return True

    def index_missing_bookmarks(self, document_key: str | None = None) -> int:
        """Schedule every bookmarked page that is neither indexed nor pending, to run now.

        Returns:
            int: Number of pages scheduled.
        """
        scheduled = 0
        for bookmark in self._bookmarks.get_bookmarks(document_key):
            if self.scheduler.has_pending(bookmark.document_key, bookmark.page_index):
                continue
            if self.scheduler.schedule(bookmark.document_key, bookmark.page_index, delay=0):
                scheduled += 1
        self.logging.info("Scheduled %d missing bookmark(s) for indexing.", scheduled)
        return scheduled

    ##########################################
    ################ QUERIES #################
    ##########################################

    async def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> list[SearchCandidate]:
        return await self.search_coordinator.search(query, top_k)

    def is_indexed(self, document_key: str, page_index: int) -> bool:
        return self.index_store.is_indexed(document_key, page_index)

    def get_status(self, document_key: str, page_index: int) -> dict:
        return {
            "indexed": self.index_store.is_indexed(document_key, page_index),
            "pending": self.scheduler.has_pending(document_key, page_index),
        }

    def get_index_status(self) -> dict:
        done, total = self.indexing.get_reindex_progress()
        return {
            "documents": len(self.index_store.list_documents()),
            "pages": self.index_store.get_indexed_page_count(),
            "pending_tasks": self.scheduler.get_pending_count(),
            "schema_version": self._metadata.get_schema_version(),
            "reindexing": self.indexing.is_reindexing(),
            "reindex_done": done,
            "reindex_total": total,
        }

    ##########################################
    ############## MAINTENANCE ###############
    ##########################################

    def is_reindexing(self) -> bool:
        return self.indexing.is_reindexing()

    async def rebuild_all(self) -> BatchReport:
        return await self.indexing.do_full_reindex()

    async def clear_all(self) -> int:
        """Delete every document index.

        Raises:
            ReindexInProgressError: While a full reindex is running.
        """
        if self.indexing.is_reindexing():
            raise ReindexInProgressError("Cannot clear the index while a full reindex is running.")
        return await self.index_store.clear_all()
