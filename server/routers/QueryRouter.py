from fastapi import APIRouter, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import SearchRequest
from server.models.responses import SearchResponse, SearchResultItem
from shared.errors import SearchUnavailableError

router = APIRouter(prefix="/query", tags=["query"])


@router.post("")
async def query_bookmarks(
    request: Request,
    body: SearchRequest,
    _: None = Depends(verify_api_key),
) -> SearchResponse:
    """Execute a semantic search over the bookmarked pages.

    Args:
        request (Request): FastAPI request (provides app.state.engine).
        body (SearchRequest): JSON body with query string and limit.
        _ (None): Auth dependency result (unused).

    Returns:
        SearchResponse: Matching pages, best first.

    Raises:
        HTTPException: 503 if the search backends are unavailable.
    """
    try:
        candidates = await request.app.state.engine.search(body.query, body.limit)
    except SearchUnavailableError as e:
        raise HTTPException(status_code=503, detail="search unavailable") from e

    results = [
        SearchResultItem(
            document_key=c.document_key,
            page_index=c.page_index,
            summary=c.summary,
            highlight_excerpts=c.highlight_excerpts,
            score=c.score,
        )
        for c in candidates
    ]
    return SearchResponse(query=body.query, results=results, total=len(results))
