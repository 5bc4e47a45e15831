"""Pydantic models for the bookmark index.

Hierarchy:
  PageIndexEntry   : search-relevant content of one bookmarked page.
  DocumentIndex    : aggregate of all indexed pages of one document; one vector each.
  PendingIndexTask : durable record of a scheduled, not yet executed indexing job.
  LegacyPageRecord : one-vector-per-page record of the old schema, read for migration.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from pydantic import BaseModel, Field

CURRENT_SCHEMA_VERSION = 2


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_vector_id() -> str:
    return str(uuid4())


class PageIndexEntry(BaseModel):
    """One bookmarked page as it is represented in the index.

    Attributes:
        page_index:         Zero-based page number within the document.
        summary:            Search-oriented summary generated from the page text.
        highlight_excerpts: Text the user highlighted on the page, if any.
    """

    page_index: int
    summary: str
    highlight_excerpts: list[str] | None = None

    @property
    def search_text(self) -> str:
        """Page representation used for reranking: summary plus excerpts."""
        if self.highlight_excerpts:
            return self.summary + " " + " ".join(self.highlight_excerpts)
        return self.summary

    @property
    def tagged_text(self) -> str:
        """Page block inside the combined document text, tagged with its 1-based page number."""
        excerpts = "".join(f" [{excerpt}]" for excerpt in self.highlight_excerpts or [])
        return f"[P{self.page_index + 1}] {self.summary}{excerpts}"


class DocumentIndex(BaseModel):
    """Aggregated index entry of a document.

    The vector stored under `id` is always the embedding of `combined_text`
    for the current `pages`. Any change to the page set produces a new
    DocumentIndex with a freshly minted `id`.

    Attributes:
        id:           Vector store key, regenerated on every mutation.
        document_key: Stable identity of the document (e.g. its file name).
        pages:        Indexed pages, strictly ascending by page_index.
        created_at:   When the first page of the document was indexed.
        updated_at:   When the page set last changed.
    """

    id: str = Field(default_factory=new_vector_id)
    document_key: str
    pages: list[PageIndexEntry] = []
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def combined_text(self) -> str:
        return "\n\n".join(page.tagged_text for page in self.pages)

    @property
    def page_indices(self) -> list[int]:
        return [page.page_index for page in self.pages]

    def has_page(self, page_index: int) -> bool:
        return any(page.page_index == page_index for page in self.pages)

    def with_pages(self, pages: list[PageIndexEntry]) -> "DocumentIndex":
        """Return a rebuilt copy holding `pages` (sorted, deduplicated) under a new id."""
        unique: dict[int, PageIndexEntry] = {}
        for page in pages:
            unique.setdefault(page.page_index, page)
        return DocumentIndex(
            id=new_vector_id(),
            document_key=self.document_key,
            pages=[unique[index] for index in sorted(unique)],
            created_at=self.created_at,
            updated_at=utcnow(),
        )


class PendingIndexTask(BaseModel):
    """A scheduled indexing job, persisted so it survives restarts.

    Attributes:
        document_key:  Document the bookmarked page belongs to.
        page_index:    Bookmarked page.
        scheduled_at:  When the job was scheduled.
        delay_seconds: Delay between scheduling and execution.
    """

    document_key: str
    page_index: int
    scheduled_at: datetime = Field(default_factory=utcnow)
    delay_seconds: float = 180.0

    @property
    def key(self) -> tuple[str, int]:
        return (self.document_key, self.page_index)

    @property
    def due_at(self) -> datetime:
        return self.scheduled_at + timedelta(seconds=self.delay_seconds)

    def remaining_seconds(self, now: datetime | None = None) -> float:
        """Seconds until the job is due; zero or negative once it is overdue."""
        return (self.due_at - (now or utcnow())).total_seconds()


class LegacyPageRecord(BaseModel):
    """Old-schema index record: one vector per bookmarked page.

    Attributes:
        id:                 Vector store key of the page vector.
        book_id:            Library identifier of the book, if it was known.
        document_key:       Document the page belongs to.
        page_index:         Zero-based page number.
        summary:            Search summary of the page.
        highlight_excerpts: Highlighted text on the page, if any.
        created_at:         When the page was indexed.
    """

    id: str
    book_id: str | None = None
    document_key: str
    page_index: int
    summary: str
    highlight_excerpts: list[str] | None = None
    created_at: datetime = Field(default_factory=utcnow)

    def to_page_entry(self) -> PageIndexEntry:
        return PageIndexEntry(
            page_index=self.page_index,
            summary=self.summary,
            highlight_excerpts=self.highlight_excerpts,
        )


class Bookmark(BaseModel):
    """A user-marked page, as kept by the BookmarkRegistry."""

    document_key: str
    page_index: int
    created_at: datetime = Field(default_factory=utcnow)
    highlight_excerpts: list[str] | None = None


class BatchReport(BaseModel):
    """Outcome counts of a batch operation (full reindex, migration)."""

    indexed: int = 0
    skipped: int = 0
    failed: int = 0
