"""Per-document aggregate index.

Each document with at least one indexed page owns exactly one vector: the
embedding of the ordered concatenation of all its page summaries. Any change
to the page set rebuilds that vector under a fresh id. Rebuilds of the same
document are serialised with a per-document asyncio.Lock because each one is
a read-then-write of the whole page set.
"""

import asyncio
from collections import defaultdict
from contextlib import AsyncExitStack

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.models.index import CURRENT_SCHEMA_VERSION, DocumentIndex, PageIndexEntry
from services.bookmark_index.MetadataStore import MetadataStore


class DocumentIndexStore:
    """Owns DocumentIndex records and their vector index entries."""

    def __init__(
        self,
        helper_config: HelperConfig,
        metadata_store: MetadataStore,
        embed_client: EmbedClientInterface,
        rag_client: RAGClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._metadata = metadata_store
        self._embed_client = embed_client
        self._rag_client = rag_client
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    ##########################################
    ################ LOOKUP ##################
    ##########################################

    def is_indexed(self, document_key: str, page_index: int) -> bool:
        document = self._metadata.get_document(document_key)
        return document is not None and document.has_page(page_index)

    def get_document(self, document_key: str) -> DocumentIndex | None:
        return self._metadata.get_document(document_key)

    def get_document_by_id(self, vector_id: str) -> DocumentIndex | None:
        return self._metadata.get_document_by_id(vector_id)

    def list_documents(self) -> list[DocumentIndex]:
        return self._metadata.list_documents()

    def get_indexed_page_count(self) -> int:
        return sum(len(doc.pages) for doc in self._metadata.list_documents())

    ##########################################
    ############### MUTATION #################
    ##########################################

    async def add_page(
        self,
        document_key: str,
        page_index: int,
        summary: str,
        highlight_excerpts: list[str] | None = None,
    ) -> DocumentIndex:
        """Add a page to its document's aggregate and rebuild the document vector.

        Adding a page that is already indexed is a no-op.

        Args:
            document_key (str): Document the page belongs to.
            page_index (int): Zero-based page number.
            summary (str): Search summary of the page.
            highlight_excerpts (list[str] | None): Highlighted text on the page.

        Returns:
            DocumentIndex: The document index after the call.

        Raises:
            ValueError: If the page has neither summary nor excerpts to search by.
            RateLimitedError, ProviderUnavailableError: If embedding or the vector
                insert fails. The previous DocumentIndex is left untouched.
        """
        entry = PageIndexEntry(page_index=page_index, summary=summary, highlight_excerpts=highlight_excerpts or None)
        if not entry.search_text.strip():
            raise ValueError("Page %d of '%s' has no summary text to index." % (page_index, document_key))

        async with self._locks[document_key]:
            current = self._metadata.get_document(document_key)
            if current is not None and current.has_page(page_index):
                self.logging.debug("Page %d of '%s' is already indexed.", page_index, document_key)
                return current

            base = current or DocumentIndex(document_key=document_key)
            rebuilt = await self._rebuild(current, base.with_pages([*base.pages, entry]))
            self.logging.info(
                "Indexed page %d of '%s' (%d page(s) in document).",
                page_index, document_key, len(rebuilt.pages),
            )
            return rebuilt

    async def add_pages(self, document_key: str, entries: list[PageIndexEntry]) -> DocumentIndex | None:
        """Add several pages with a single rebuild.

        Already indexed pages are ignored; pages without any summary text are
        dropped with a warning.

        Returns:
            DocumentIndex | None: The document index after the call, None if
                nothing was indexed for the document and no usable entries were given.
        """
        blank = [e.page_index for e in entries if not e.search_text.strip()]
        if blank:
            self.logging.warning("Dropping page(s) %s of '%s': no summary text.", blank, document_key)

        async with self._locks[document_key]:
            current = self._metadata.get_document(document_key)
            new_entries = [
                e for e in entries
                if e.search_text.strip() and (current is None or not current.has_page(e.page_index))
            ]
            if not new_entries:
                return current
            base = current or DocumentIndex(document_key=document_key)
            return await self._rebuild(current, base.with_pages([*base.pages, *new_entries]))

    async def remove_page(self, document_key: str, page_index: int) -> DocumentIndex | None:
        """Remove a page from its document's aggregate.

        Removing the last page deletes the document index and its vector.
        Removing a page that is not indexed is a no-op.

        Returns:
            DocumentIndex | None: The document index after the call, None if it no longer exists.
        """
        async with self._locks[document_key]:
            current = self._metadata.get_document(document_key)
            if current is None or not current.has_page(page_index):
                return current

            remaining = [page for page in current.pages if page.page_index != page_index]
            if not remaining:
                await self._rag_client.do_delete_points([current.id])
                self._metadata.delete_document(document_key)
                self.logging.info("Removed last page %d of '%s'; document index deleted.", page_index, document_key)
                return None

            rebuilt = await self._rebuild(current, current.with_pages(remaining))
            self.logging.info(
                "Removed page %d of '%s' (%d page(s) left).", page_index, document_key, len(rebuilt.pages)
            )
            return rebuilt

    async def remove_document(self, document_key: str) -> bool:
        """Delete a document's index and vector entirely.

        Returns:
            bool: True if the document was indexed.
        """
        async with self._locks[document_key]:
            current = self._metadata.get_document(document_key)
            if current is None:
                return False
            await self._rag_client.do_delete_points([current.id])
            self._metadata.delete_document(document_key)
            self.logging.info("Removed document index for '%s'.", document_key)
            return True

    async def clear_all(self) -> int:
        """Delete every document index and vector known when the call starts.

        Holds the lock of every affected document, so no rebuild of those
        documents lands in between; documents first indexed meanwhile are kept.

        Returns:
            int: Number of document indexes removed.
        """
        keys = sorted(doc.document_key for doc in self._metadata.list_documents())
        async with AsyncExitStack() as stack:
            # sorted acquisition; every other mutation holds a single key
            for key in keys:
                await stack.enter_async_context(self._locks[key])
            documents = [doc for doc in map(self._metadata.get_document, keys) if doc is not None]
            if documents:
                await self._rag_client.do_delete_points([doc.id for doc in documents])
            self._metadata.delete_documents([doc.document_key for doc in documents])
        self.logging.info("Cleared %d document index(es).", len(documents))
        return len(documents)

    async def cleanup_orphans(self) -> int:
        """Delete vectors that no document index refers to.

        Orphans are left behind when a rebuild inserted the new vector but the
        process died, or the backend failed, before the old one was deleted.

        Returns:
            int: Number of orphaned vectors deleted.
        """
        known_ids = self._metadata.get_vector_ids()
        stored_ids = await self._rag_client.do_scroll_all_ids()
        orphan_ids = [vector_id for vector_id in stored_ids if vector_id not in known_ids]
        if not orphan_ids:
            self.logging.debug("Orphan cleanup: no stale vectors found.")
            return 0
        await self._rag_client.do_delete_points(orphan_ids)
        self.logging.info("Orphan cleanup: removed %d stale vector(s).", len(orphan_ids))
        return len(orphan_ids)

    ##########################################
    ################ REBUILD #################
    ##########################################

    async def _rebuild(self, current: DocumentIndex | None, rebuilt: DocumentIndex) -> DocumentIndex:
        """Embed `rebuilt`, store its vector and metadata, then retire `current`'s vector.

        Must be called with the document lock held. The new vector is written
        under a fresh id before the metadata switches over, so any failure up
        to and including the metadata write leaves `current` fully intact.
        """
        vectors = await self._embed_client.do_embed(rebuilt.combined_text)
        payload = VectorPoint(
            document_key=rebuilt.document_key,
            page_indices=rebuilt.page_indices,
            schema_version=CURRENT_SCHEMA_VERSION,
            updated_at=rebuilt.updated_at.isoformat(),
        )
        await self._rag_client.do_upsert_points([
            {"id": rebuilt.id, "vector": vectors[0], "payload": payload.model_dump()},
        ])
        try:
            self._metadata.put_document(rebuilt)
        except OSError:
            await self._delete_quietly(rebuilt.id, rebuilt.document_key)
            raise

        if current is not None:
            await self._delete_quietly(current.id, current.document_key)
        return rebuilt

    async def _delete_quietly(self, vector_id: str, document_key: str) -> None:
        try:
            await self._rag_client.do_delete_points([vector_id])
        except Exception as exc:
            # left for cleanup_orphans(); search ignores ids without metadata
            self.logging.warning(
                "Could not delete vector %s of '%s': %s", vector_id, document_key, exc
            )
