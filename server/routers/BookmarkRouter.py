from fastapi import APIRouter, Depends, Query, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import BookmarkRemoveRequest, BookmarkRequest
from server.models.responses import BookmarkStatusResponse

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


def _status(request: Request, document_key: str, page_index: int) -> BookmarkStatusResponse:
    status = request.app.state.engine.get_status(document_key, page_index)
    return BookmarkStatusResponse(document_key=document_key, page_index=page_index, **status)


@router.post("")
async def add_bookmark(
    request: Request,
    body: BookmarkRequest,
    _: None = Depends(verify_api_key),
) -> BookmarkStatusResponse:
    """Bookmark a page and schedule its indexing.

    Args:
        request (Request): FastAPI request (provides app.state.engine and app.state.bookmark_registry).
        body (BookmarkRequest): JSON body with document_key, page_index and optional highlight_excerpts.
        _ (None): Auth dependency result (unused).

    Returns:
        BookmarkStatusResponse: Index state of the page after scheduling.
    """
    request.app.state.bookmark_registry.add_bookmark(body.document_key, body.page_index, body.highlight_excerpts)
    request.app.state.engine.on_bookmark_added(body.document_key, body.page_index)
    return _status(request, body.document_key, body.page_index)


@router.delete("")
async def remove_bookmark(
    request: Request,
    body: BookmarkRemoveRequest,
    _: None = Depends(verify_api_key),
) -> BookmarkStatusResponse:
    """Remove a bookmark, cancel its pending indexing and drop the page from the index."""
    request.app.state.bookmark_registry.remove_bookmark(body.document_key, body.page_index)
    await request.app.state.engine.on_bookmark_removed(body.document_key, body.page_index)
    return _status(request, body.document_key, body.page_index)


@router.get("/status")
async def bookmark_status(
    request: Request,
    document_key: str = Query(..., min_length=1),
    page_index: int = Query(..., ge=0),
    _: None = Depends(verify_api_key),
) -> BookmarkStatusResponse:
    return _status(request, document_key, page_index)
