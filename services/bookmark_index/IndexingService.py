"""Indexing pipeline.

Turns a bookmarked page into a DocumentIndex entry: fetch the page text,
summarise it for search, add the summary to the document's aggregate.

Single pages (scheduled jobs) run without retries; failures propagate to the
scheduler, which logs them. Batch operations wrap each provider call in the
bounded rate-limit retry of `do_call_with_retry()` and isolate per-item
failures so one bad page never aborts the batch.
"""

import asyncio
from typing import Any, Awaitable, Callable

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.errors import BookmarkIndexError, PageTextUnavailableError, RateLimitedError, ReindexInProgressError
from shared.helper.HelperConfig import HelperConfig
from shared.models.index import BatchReport
from services.bookmark_index.DocumentIndexStore import DocumentIndexStore
from services.bookmarks.BookmarkRegistry import BookmarkRegistry
from services.bookmarks.PageTextSourceInterface import PageTextSourceInterface

RETRY_HINT_MARGIN_SECONDS = 2  # added on top of a provider's retry hint


class IndexingService:
    """Runs the summarise-and-index pipeline for single pages and batches."""

    def __init__(
        self,
        helper_config: HelperConfig,
        document_index_store: DocumentIndexStore,
        llm_client: LLMClientInterface,
        text_source: PageTextSourceInterface,
        bookmark_source: BookmarkRegistry,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._index_store = document_index_store
        self._llm_client = llm_client
        self._text_source = text_source
        self._bookmarks = bookmark_source

        self._rate_limit_wait = float(helper_config.get_number_val("INDEX_RATE_LIMIT_WAIT_SECONDS", default=30))
        self._max_retries = int(helper_config.get_number_val("INDEX_RATE_LIMIT_MAX_RETRIES", default=3))
        self._batch_throttle = float(helper_config.get_number_val("INDEX_BATCH_THROTTLE_SECONDS", default=0.5))
        self._sleep = asyncio.sleep

        self._reindex_running = False
        self._reindex_done = 0
        self._reindex_total = 0

    ##########################################
    ############## SINGLE PAGE ###############
    ##########################################

    async def do_index_page(
        self,
        document_key: str,
        page_index: int,
        should_continue: Callable[[], bool] | None = None,
    ) -> bool:
        """Index one bookmarked page.

        The bookmark, the indexed state and `should_continue` are re-checked
        before every provider call, so a page whose bookmark was removed in
        the meantime never reaches the summary or embedding backend.

        Args:
            document_key (str): Document of the page.
            page_index (int): Zero-based page number.
            should_continue (Callable[[], bool] | None): Extra check, e.g. "my
                pending task has not been cancelled".

        Returns:
            bool: True if the page was indexed, False if it was no longer wanted.

        Raises:
            PageTextUnavailableError: If the page has no extractable text.
            RateLimitedError, ProviderUnavailableError, NotInitializedError: On backend failures.
        """
        def still_wanted() -> bool:
            return (
                self._bookmarks.is_bookmarked(document_key, page_index)
                and not self._index_store.is_indexed(document_key, page_index)
                and (should_continue is None or should_continue())
            )

        if not still_wanted():
            return False
        raw_text = await self._text_source.do_fetch_page_text(document_key, page_index)
        excerpts = self._bookmarks.get_highlight_excerpts(document_key, page_index)

        if not still_wanted():
            return False
        summary = await self._llm_client.do_summarize(raw_text, excerpts)

        if not still_wanted():
            self.logging.debug("Page %d of '%s' no longer wanted after summarising.", page_index, document_key)
            return False
        await self._index_store.add_page(document_key, page_index, summary, excerpts)
        return True

    ##########################################
    ################# BATCH ##################
    ##########################################

    def is_reindexing(self) -> bool:
        return self._reindex_running

    def get_reindex_progress(self) -> tuple[int, int]:
        """Bookmarks processed and total of the running (or last) full reindex."""
        return self._reindex_done, self._reindex_total

    async def do_full_reindex(self) -> BatchReport:
        """Drop every document index and rebuild it from the current bookmarks.

        Only one full reindex runs at a time.

        Returns:
            BatchReport: Pages indexed, skipped (no text) and failed.

        Raises:
            ReindexInProgressError: If another full reindex is still running.
        """
        if self._reindex_running:
            raise ReindexInProgressError("A full reindex is already running.")
        self._reindex_running = True
        self._reindex_done = self._reindex_total = 0
        try:
            report = await self._run_full_reindex()
        finally:
            self._reindex_running = False

        self.logging.info(
            "Full reindex complete: %d indexed, %d skipped, %d failed.",
            report.indexed, report.skipped, report.failed,
        )
        return report

    async def _run_full_reindex(self) -> BatchReport:
        cleared = await self._index_store.clear_all()
        self.logging.info("Full reindex started (%d document index(es) cleared).", cleared)

        seen: set[tuple[str, int]] = set()
        bookmarks = []
        for bookmark in self._bookmarks.get_bookmarks():
            key = (bookmark.document_key, bookmark.page_index)
            if key not in seen:
                seen.add(key)
                bookmarks.append(bookmark)
        self._reindex_total = len(bookmarks)

        report = BatchReport()
        for position, bookmark in enumerate(bookmarks):
            if position > 0 and self._batch_throttle > 0:
                await self._sleep(self._batch_throttle)
            outcome = await self._reindex_one(bookmark.document_key, bookmark.page_index)
            if outcome is True:
                report.indexed += 1
            elif outcome is False:
                report.skipped += 1
            else:
                report.failed += 1
            self._reindex_done = position + 1
            self.logging.debug("Full reindex progress: %d/%d.", self._reindex_done, self._reindex_total)
        return report

    async def _reindex_one(self, document_key: str, page_index: int) -> bool | None:
        """Returns True when indexed, False when skipped, None when failed."""
        try:
            raw_text = await self._text_source.do_fetch_page_text(document_key, page_index)
        except PageTextUnavailableError as e:
            self.logging.warning("Skipping page %d of '%s': %s", page_index, document_key, e)
            return False

        excerpts = self._bookmarks.get_highlight_excerpts(document_key, page_index)
        label = f"page {page_index} of '{document_key}'"
        try:
            summary = await self.do_call_with_retry(
                self._llm_client.do_summarize, raw_text, excerpts, description=f"summary of {label}"
            )
            await self.do_call_with_retry(
                self._index_store.add_page, document_key, page_index, summary, excerpts,
                description=f"embedding of {label}",
            )
        except (BookmarkIndexError, ValueError) as e:
            self.logging.error("Reindex of %s failed: %s", label, e)
            return None
        return True

    ##########################################
    ################# RETRY ##################
    ##########################################

    async def do_call_with_retry(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        description: str = "provider call",
        **kwargs,
    ) -> Any:
        """Await `func(*args, **kwargs)`, backing off on rate limits.

        Waits the provider's hint plus a small margin when one is given,
        else INDEX_RATE_LIMIT_WAIT_SECONDS, and gives up after
        INDEX_RATE_LIMIT_MAX_RETRIES retries.

        Raises:
            RateLimitedError: When the retries are exhausted.
            Exception: Any other error of `func`, without retrying.
        """
        attempt = 0
        while True:
            try:
                return await func(*args, **kwargs)
            except RateLimitedError as e:
                if attempt >= self._max_retries:
                    self.logging.error("Rate limit persists for %s after %d retries.", description, attempt)
                    raise
                attempt += 1
                wait = e.retry_after + RETRY_HINT_MARGIN_SECONDS if e.retry_after is not None else self._rate_limit_wait
                self.logging.warning(
                    "Rate limited during %s, retry %d/%d in %.1fs.", description, attempt, self._max_retries, wait
                )
                await self._sleep(wait)
