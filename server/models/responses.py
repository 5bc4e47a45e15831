from pydantic import BaseModel


class BookmarkStatusResponse(BaseModel):
    document_key: str
    page_index: int
    indexed: bool
    pending: bool


class SearchResultItem(BaseModel):
    document_key: str
    page_index: int
    summary: str
    highlight_excerpts: list[str] | None
    score: float


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResultItem]
    total: int


class IndexStatusResponse(BaseModel):
    documents: int
    pages: int
    pending_tasks: int
    schema_version: int
    reindexing: bool = False
    reindex_done: int = 0
    reindex_total: int = 0


class IndexActionResponse(BaseModel):
    status: str
    count: int | None = None
