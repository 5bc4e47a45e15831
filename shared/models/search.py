"""Pydantic models for search results."""

from pydantic import BaseModel


class SearchCandidate(BaseModel):
    """A page scored during one search call. Never persisted.

    Attributes:
        document_key:       Document the page belongs to.
        page_index:         Zero-based page number.
        summary:            Search summary of the page.
        highlight_excerpts: Highlighted text on the page, if any.
        score:              Cosine similarity to the query, in [-1, 1].
        coarse_rank:        Position of the document in the coarse phase (0 = best).
    """

    document_key: str
    page_index: int
    summary: str
    highlight_excerpts: list[str] | None = None
    score: float
    coarse_rank: int = 0


class VectorHit(BaseModel):
    """One nearest-neighbour hit from the vector index."""

    id: str
    score: float
    payload: dict = {}
