from pydantic import BaseModel, Field


class BookmarkRequest(BaseModel):
    document_key: str = Field(min_length=1)
    page_index: int = Field(ge=0)
    highlight_excerpts: list[str] | None = None


class BookmarkRemoveRequest(BaseModel):
    document_key: str = Field(min_length=1)
    page_index: int = Field(ge=0)


class SearchRequest(BaseModel):
    query: str
    limit: int = Field(default=5, ge=1, le=50)
