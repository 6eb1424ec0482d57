"""
FastAPI routes for the newsfilter API.
"""
import asyncio
from collections.abc import AsyncIterator
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, StreamingResponse

from newsfilter.errors import ClassifierPreconditionError, FetchRunInProgressError
from newsfilter.models.domain import SourceFetchResult
from newsfilter.repositories import fetch_log as fetch_log_repo
from newsfilter.runtime import Runtime
from newsfilter.services.events import FetchEvent, QueueEventSink
from newsfilter.services.orchestrator import SOURCE_NOT_FOUND, FetchOrchestrator

logger = structlog.get_logger(__name__)
router = APIRouter()

KEEP_ALIVE_COMMENT = ": keep-alive\n\n"


def get_runtime(request: Request) -> Runtime:
    """Dependency returning the service objects built at startup."""
    return request.app.state.runtime


RuntimeDep = Annotated[Runtime, Depends(get_runtime)]


def source_result_payload(result: SourceFetchResult) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "sourceId": result.source_id,
        "sourceName": result.source_name,
        "articlesFound": result.articles_found,
        "newArticles": result.new_articles,
    }
    if result.error is not None:
        payload["error"] = result.error
    return payload


async def run_fetch_all_into(orchestrator: FetchOrchestrator, sink: QueueEventSink) -> None:
    """Drive one fetch-all run into `sink`, always closing it at the end."""
    try:
        await orchestrator.run_fetch_all(sink)
    except FetchRunInProgressError as e:
        await sink.emit(FetchEvent("error", {"error": str(e)}))
    except Exception as e:
        logger.error("Fetch run failed", error=str(e), exc_info=True)
        await sink.emit(FetchEvent("error", {"error": str(e)}))
    finally:
        await sink.close()


async def stream_events(sink: QueueEventSink, heartbeat_seconds: float) -> AsyncIterator[str]:
    """Yield SSE frames until the sink is closed, with keep-alive comments while idle."""
    while True:
        try:
            event = await asyncio.wait_for(sink.queue.get(), timeout=heartbeat_seconds)
        except asyncio.TimeoutError:
            yield KEEP_ALIVE_COMMENT
            continue
        if event is None:
            break
        yield event.to_sse()


# ============================================================================
# Fetch Routes
# ============================================================================


@router.post("/fetch")
async def fetch_all_sources(runtime: RuntimeDep):
    """
    Fetch every enabled source and stream progress as Server-Sent Events.

    The run continues in the background if the client disconnects.
    """
    orchestrator = runtime.orchestrator
    if await orchestrator.count_enabled_sources() == 0:
        return {"data": {"message": "No enabled sources", "results": []}}

    if orchestrator.is_running:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"error": str(FetchRunInProgressError())},
        )

    sink = QueueEventSink()
    runtime.spawn(run_fetch_all_into(orchestrator, sink))

    return StreamingResponse(
        stream_events(sink, runtime.settings.stream_heartbeat_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/fetch/clear-scores")
async def clear_scores(runtime: RuntimeDep):
    """Reset every article's relevance verdict."""
    cleared = await runtime.classifier.clear_all_scores()
    return {"data": {"cleared": cleared}}


@router.post("/fetch/filter")
async def filter_articles(runtime: RuntimeDep):
    """Run one classification pass over unfiltered articles."""
    try:
        summary = await runtime.classifier.filter_articles()
    except ClassifierPreconditionError as e:
        logger.warning("Filter refused", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": f"Filter failed: {e}"},
        )
    return {"data": summary.model_dump()}


@router.get("/fetch/log")
async def get_fetch_log(
    runtime: RuntimeDep,
    limit: int = Query(default=100, ge=1, le=1000),
):
    """Most recent fetch attempts first."""
    async with runtime.database.async_session() as session:
        entries = await fetch_log_repo.list_fetch_logs(session, limit=limit)
    return {"data": [entry.model_dump(mode="json") for entry in entries]}


@router.post("/fetch/{source_id}")
async def fetch_one_source(source_id: int, runtime: RuntimeDep):
    """Fetch a single source by id."""
    result = await runtime.orchestrator.fetch_source(source_id)
    if result.error == SOURCE_NOT_FOUND:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": result.error},
        )
    return {"data": source_result_payload(result)}
