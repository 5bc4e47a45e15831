"""Delayed, durable indexing jobs.

Bookmarking a page does not index it right away: the job waits for a delay
(INDEX_DELAY_SECONDS) so that quickly undone bookmarks never cost a provider
call. Each job is persisted before its in-memory timer starts, which lets
`reconcile_on_startup()` pick up where a previous session stopped.

There is at most one live job per (document_key, page_index). `schedule()`
and `cancel()` are plain synchronous methods: nothing can interleave between
cancelling the previous job, persisting the new record and starting the new
timer.
"""

import asyncio
from typing import Awaitable, Callable

from shared.errors import NotInitializedError, PageTextUnavailableError
from shared.helper.HelperConfig import HelperConfig
from shared.models.index import PendingIndexTask, utcnow
from services.bookmark_index.DocumentIndexStore import DocumentIndexStore
from services.bookmark_index.MetadataStore import MetadataStore
from services.bookmarks.BookmarkRegistry import BookmarkRegistry

# (document_key, page_index, should_continue) -> True if the page was indexed
IndexPageCallable = Callable[[str, int, Callable[[], bool]], Awaitable[bool]]


class PendingTaskScheduler:
    """Owns PendingIndexTask records and their in-memory timers."""

    def __init__(
        self,
        helper_config: HelperConfig,
        metadata_store: MetadataStore,
        document_index_store: DocumentIndexStore,
        bookmark_source: BookmarkRegistry,
        index_page: IndexPageCallable,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._metadata = metadata_store
        self._index_store = document_index_store
        self._bookmarks = bookmark_source
        self._index_page = index_page
        self._default_delay = float(helper_config.get_number_val("INDEX_DELAY_SECONDS", default=180))
        self._jobs: dict[tuple[str, int], asyncio.Task] = {}

    ##########################################
    ################ CHECKER #################
    ##########################################

    def has_pending(self, document_key: str, page_index: int) -> bool:
        return self._metadata.get_pending_task(document_key, page_index) is not None

    def get_pending_count(self) -> int:
        return len(self._metadata.list_pending_tasks())

    @property
    def live_jobs(self) -> list[asyncio.Task]:
        return [job for job in self._jobs.values() if not job.done()]

    ##########################################
    ############### SCHEDULING ###############
    ##########################################

    def schedule(self, document_key: str, page_index: int, delay: float | None = None) -> bool:
        """Schedule indexing of a page after `delay` seconds.

        Any existing job for the page is superseded. Must be called from a
        running event loop.

        Args:
            document_key (str): Document of the bookmarked page.
            page_index (int): Bookmarked page.
            delay (float | None): Seconds to wait; INDEX_DELAY_SECONDS if None.

        Returns:
            bool: False if the page is already indexed and nothing was scheduled.
        """
        if self._index_store.is_indexed(document_key, page_index):
            self.logging.debug("Page %d of '%s' is already indexed, not scheduling.", page_index, document_key)
            return False

        self._cancel_job((document_key, page_index))
        task = PendingIndexTask(
            document_key=document_key,
            page_index=page_index,
            delay_seconds=self._default_delay if delay is None else max(0.0, float(delay)),
        )
        self._metadata.put_pending_task(task)
        self._start_job(task, task.delay_seconds)
        self.logging.info(
            "Scheduled indexing of page %d of '%s' in %.0fs.", page_index, document_key, task.delay_seconds
        )
        return True

    def cancel(self, document_key: str, page_index: int) -> bool:
        """Cancel the job of a page and delete its record. Idempotent.

        Returns:
            bool: True if there was anything to cancel.
        """
        had_job = self._cancel_job((document_key, page_index))
        had_record = self._metadata.delete_pending_task(document_key, page_index)
        if had_job or had_record:
            self.logging.info("Cancelled pending indexing of page %d of '%s'.", page_index, document_key)
        return had_job or had_record

    async def reconcile_on_startup(self) -> int:
        """Resume persisted tasks from a previous session.

        Moot tasks (bookmark gone, page already indexed) are discarded,
        overdue ones start right away and the rest wait for their remaining time.

        Returns:
            int: Number of tasks resumed.
        """
        now = utcnow()
        resumed = 0
        discarded = 0
        for task in self._metadata.list_pending_tasks():
            if task.key in self._jobs:
                continue
            if not self._is_wanted(task):
                self._metadata.delete_pending_task(task.document_key, task.page_index, only_if=task)
                discarded += 1
                continue
            self._start_job(task, max(0.0, task.remaining_seconds(now)))
            resumed += 1

        if resumed or discarded:
            self.logging.info("Pending tasks reconciled: %d resumed, %d discarded.", resumed, discarded)
        return resumed

    async def wait_for_jobs(self) -> None:
        """Wait until every live job has finished."""
        while self.live_jobs:
            await asyncio.gather(*self.live_jobs, return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop all timers. Persisted records are kept for the next start."""
        jobs = list(self._jobs.values())
        for job in jobs:
            job.cancel()
        await asyncio.gather(*jobs, return_exceptions=True)
        self._jobs.clear()

    ##########################################
    ################# JOBS ###################
    ##########################################

    def _start_job(self, task: PendingIndexTask, delay: float) -> None:
        job = asyncio.get_running_loop().create_task(
            self._run_job(task, delay), name=f"index:{task.document_key}:{task.page_index}"
        )
        self._jobs[task.key] = job
        job.add_done_callback(lambda done, key=task.key: self._forget_job(key, done))

    def _cancel_job(self, key: tuple[str, int]) -> bool:
        job = self._jobs.pop(key, None)
        if job is None:
            return False
        if not job.done():
            job.cancel()
        return True

    def _forget_job(self, key: tuple[str, int], job: asyncio.Task) -> None:
        if self._jobs.get(key) is job:
            del self._jobs[key]

    def _is_current(self, task: PendingIndexTask) -> bool:
        return self._metadata.get_pending_task(task.document_key, task.page_index) == task

    def _is_wanted(self, task: PendingIndexTask) -> bool:
        return (
            self._bookmarks.is_bookmarked(task.document_key, task.page_index)
            and not self._index_store.is_indexed(task.document_key, task.page_index)
        )

    async def _run_job(self, task: PendingIndexTask, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)

        # state captured at schedule time is never trusted
        if not self._is_current(task):
            return
        if not self._is_wanted(task):
            self.logging.debug("Pending task for page %d of '%s' is moot.", task.page_index, task.document_key)
            self._metadata.delete_pending_task(task.document_key, task.page_index, only_if=task)
            return

        try:
            await self._index_page(task.document_key, task.page_index, lambda: self._is_current(task))
        except NotInitializedError as e:
            # keep the record, the next start retries it
            self.logging.warning(
                "Backends not ready for page %d of '%s', keeping task: %s", task.page_index, task.document_key, e
            )
            return
        except PageTextUnavailableError as e:
            self.logging.warning("Skipping page %d of '%s': %s", task.page_index, task.document_key, e)
        except Exception as e:
            self.logging.error(
                "Indexing page %d of '%s' failed: %s", task.page_index, task.document_key, e, exc_info=True
            )
        self._metadata.delete_pending_task(task.document_key, task.page_index, only_if=task)
