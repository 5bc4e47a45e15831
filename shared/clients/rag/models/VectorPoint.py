"""VectorPoint model: metadata stored alongside each document vector in a RAG backend."""

from pydantic import BaseModel


class VectorPoint(BaseModel):
    """Payload stored next to the aggregate vector of one document.

    The payload is informational: the authoritative page list lives in the
    local metadata store and search results are always resolved through it.

    Attributes:
        document_key:   Stable identity of the document (e.g. source file name).
        page_indices:   Pages covered by the vector, ascending.
        schema_version: Index schema the vector was written with.
        updated_at:     ISO-8601 time of the rebuild that produced the vector.
    """

    document_key: str
    page_indices: list[int] = []
    schema_version: int
    updated_at: str | None = None
