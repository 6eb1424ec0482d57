"""
Progress events emitted by a fetch-all run, and the sinks that receive them.
"""
import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import structlog

from newsfilter.models.domain import FilterSummary, SourceFetchResult

logger = structlog.get_logger(__name__)

SOURCE_START = "source-start"
SOURCE_DONE = "source-done"
FETCH_COMPLETE = "fetch-complete"
FILTER_START = "filter-start"
FILTER_DONE = "filter-done"


@dataclass(frozen=True)
class FetchEvent:
    """A named event with a JSON payload."""
    name: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> str:
        """Serialize as one Server-Sent Events frame."""
        return f"event: {self.name}\ndata: {json.dumps(self.data)}\n\n"


class EventSink(Protocol):
    async def emit(self, event: FetchEvent) -> None: ...


class CollectingEventSink:
    """Keeps every event in memory."""

    def __init__(self):
        self.events: list[FetchEvent] = []

    async def emit(self, event: FetchEvent) -> None:
        self.events.append(event)

    @property
    def names(self) -> list[str]:
        return [event.name for event in self.events]


class QueueEventSink:
    """Hands events to a consumer through an asyncio.Queue; None marks the end."""

    def __init__(self, queue: Optional[asyncio.Queue] = None):
        self.queue: asyncio.Queue = queue or asyncio.Queue()

    async def emit(self, event: FetchEvent) -> None:
        await self.queue.put(event)

    async def close(self) -> None:
        await self.queue.put(None)


class LoggingEventSink:
    """Writes each event to the structured log."""

    async def emit(self, event: FetchEvent) -> None:
        logger.info("Fetch event", fetch_event=event.name, **event.data)


def source_start(source_id: int, source_name: str) -> FetchEvent:
    return FetchEvent(SOURCE_START, {"sourceId": source_id, "sourceName": source_name})


def source_done(result: SourceFetchResult) -> FetchEvent:
    data: dict[str, Any] = {
        "sourceId": result.source_id,
        "sourceName": result.source_name,
        "status": "success" if result.ok else "error",
        "articlesFound": result.articles_found,
        "newArticles": result.new_articles,
    }
    if not result.ok:
        data["error"] = result.error
    return FetchEvent(SOURCE_DONE, data)


def fetch_complete(total: int, failed: int, new_articles: int) -> FetchEvent:
    return FetchEvent(
        FETCH_COMPLETE,
        {"total": total, "failed": failed, "newArticles": new_articles},
    )


def filter_start(unfiltered: int) -> FetchEvent:
    return FetchEvent(FILTER_START, {"unfiltered": unfiltered})


def filter_done(summary: FilterSummary) -> FetchEvent:
    return FetchEvent(FILTER_DONE, summary.model_dump())
