from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request

from server.dependencies.auth import verify_api_key
from server.models.responses import IndexActionResponse, IndexStatusResponse
from shared.errors import ReindexInProgressError

router = APIRouter(prefix="/index", tags=["index"])


async def _run_rebuild(engine) -> None:
    try:
        await engine.rebuild_all()
    except ReindexInProgressError as e:
        # two requests passed the check before either task started
        engine.logging.warning("Rebuild request dropped: %s", e)


@router.post("/rebuild")
async def rebuild_index(
    request: Request,
    background_tasks: BackgroundTasks,
    _: None = Depends(verify_api_key),
) -> IndexActionResponse:
    """Drop all document indexes and rebuild them from the bookmarks in the background.

    Args:
        request (Request): FastAPI request (provides app.state.engine).
        background_tasks (BackgroundTasks): FastAPI background task queue.
        _ (None): Auth dependency result (unused).

    Returns:
        IndexActionResponse: Acknowledgement payload.

    Raises:
        HTTPException: 409 if a full reindex is already running.
    """
    engine = request.app.state.engine
    if engine.is_reindexing():
        raise HTTPException(status_code=409, detail="reindex in progress")
    background_tasks.add_task(_run_rebuild, engine)
    return IndexActionResponse(status="accepted")


@router.post("/missing")
async def index_missing(
    request: Request,
    document_key: str | None = Query(default=None),
    _: None = Depends(verify_api_key),
) -> IndexActionResponse:
    """Schedule every bookmarked page that is not indexed yet."""
    count = request.app.state.engine.index_missing_bookmarks(document_key)
    return IndexActionResponse(status="scheduled", count=count)


@router.delete("")
async def clear_index(
    request: Request,
    _: None = Depends(verify_api_key),
) -> IndexActionResponse:
    try:
        count = await request.app.state.engine.clear_all()
    except ReindexInProgressError as e:
        raise HTTPException(status_code=409, detail="reindex in progress") from e
    return IndexActionResponse(status="cleared", count=count)


@router.get("/status")
async def index_status(
    request: Request,
    _: None = Depends(verify_api_key),
) -> IndexStatusResponse:
    return IndexStatusResponse(**request.app.state.engine.get_index_status())
