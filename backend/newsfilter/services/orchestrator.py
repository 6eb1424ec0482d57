"""
Fetch orchestration.

Runs one attempt per source: adapter fetch, ingestion, last-fetched
bookkeeping and exactly one fetch-log row. The fetch-all run walks the
enabled sources strictly one after another, reports progress through an
event sink and hands new articles to the classifier.
"""
import asyncio
from typing import Optional

import structlog

from newsfilter.core.clock import utcnow
from newsfilter.errors import FetchRunInProgressError, SourceFetchError
from newsfilter.models.database import Database, DBSource
from newsfilter.models.domain import FetchRunSummary, FetchStatus, FilterSummary, SourceFetchResult
from newsfilter.repositories import fetch_log as fetch_log_repo
from newsfilter.repositories import sources as sources_repo
from newsfilter.services import events
from newsfilter.services.classifier import RelevanceClassifier
from newsfilter.services.events import EventSink
from newsfilter.services.ingestion import delete_old_articles, insert_articles
from newsfilter.sources.registry import AdapterRegistry

logger = structlog.get_logger(__name__)

SOURCE_NOT_FOUND = "Source not found"


class FetchOrchestrator:
    """Coordinates source attempts, retention sweeps and auto-classification."""

    def __init__(
        self,
        database: Database,
        adapters: AdapterRegistry,
        classifier: Optional[RelevanceClassifier] = None,
    ):
        self.database = database
        self.adapters = adapters
        self.classifier = classifier
        self._run_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    async def count_enabled_sources(self) -> int:
        async with self.database.async_session() as session:
            return len(await sources_repo.list_enabled_source_rows(session))

    async def purge_old_articles(self) -> int:
        async with self.database.async_session() as session:
            return await delete_old_articles(session)

    async def fetch_source(self, source_id: int) -> SourceFetchResult:
        """Fetch one source by id. Never raises for source-level failures."""
        async with self.database.async_session() as session:
            row = await sources_repo.get_source_row(session, source_id)
            if row is None:
                return SourceFetchResult(source_id=source_id, error=SOURCE_NOT_FOUND)
            return await self._attempt(session, row)

    async def _attempt(self, session, row: DBSource) -> SourceFetchResult:
        # Captured up front: a rollback expires the row
        source_id, source_name = row.id, row.name
        started_at = utcnow()

        try:
            source = sources_repo.to_source(row)
            adapter = self.adapters.get(source.kind)
            if adapter is None:
                raise SourceFetchError(f"No adapter for source kind: {source.kind.value}")

            raw_articles = await adapter.fetch(source)
            new_count = await insert_articles(session, source_id, raw_articles, commit=False)

            await sources_repo.update_last_fetched_at(session, source_id)
            await fetch_log_repo.create_fetch_log(
                session,
                source_id=source_id,
                status=FetchStatus.SUCCESS,
                articles_found=len(raw_articles),
                started_at=started_at,
                completed_at=utcnow(),
            )
            # One commit covers the new articles and the success log row
            await session.commit()
        except Exception as e:
            await session.rollback()
            message = str(e) or type(e).__name__
            logger.error(
                "Source fetch failed",
                source_id=source_id,
                source_name=source_name,
                error=message,
                exc_info=True,
            )
            await fetch_log_repo.create_fetch_log(
                session,
                source_id=source_id,
                status=FetchStatus.ERROR,
                articles_found=0,
                started_at=started_at,
                completed_at=utcnow(),
                error_message=message,
            )
            await session.commit()
            return SourceFetchResult(
                source_id=source_id,
                source_name=source_name,
                error=message,
            )

        logger.info(
            "Source fetched",
            source_id=source_id,
            source_name=source_name,
            articles_found=len(raw_articles),
            new_articles=new_count,
        )
        return SourceFetchResult(
            source_id=source_id,
            source_name=source_name,
            articles_found=len(raw_articles),
            new_articles=new_count,
        )

    async def run_fetch_all(self, sink: EventSink) -> FetchRunSummary:
        """
        Fetch every enabled source in order, then classify if anything is new.

        Raises:
            FetchRunInProgressError: another run holds the lock
        """
        if self._run_lock.locked():
            raise FetchRunInProgressError()

        async with self._run_lock:
            return await self._run_fetch_all(sink)

    async def _run_fetch_all(self, sink: EventSink) -> FetchRunSummary:
        summary = FetchRunSummary()
        summary.purged = await self.purge_old_articles()

        async with self.database.async_session() as session:
            rows = await sources_repo.list_enabled_source_rows(session)
            sources = [(row.id, row.name) for row in rows]

        logger.info("Fetch run started", sources=len(sources))
        summary.total = len(sources)

        for source_id, source_name in sources:
            await sink.emit(events.source_start(source_id, source_name))
            result = await self.fetch_source(source_id)
            if result.source_name is None:
                result.source_name = source_name

            summary.results.append(result)
            if result.ok:
                summary.new_articles += result.new_articles
            else:
                summary.failed += 1
            await sink.emit(events.source_done(result))

        await sink.emit(events.fetch_complete(summary.total, summary.failed, summary.new_articles))

        if summary.new_articles > 0:
            await sink.emit(events.filter_start(summary.new_articles))
            summary.filter = await self._auto_filter()
            await sink.emit(events.filter_done(summary.filter))

        summary.purged += await self.purge_old_articles()
        logger.info(
            "Fetch run complete",
            total=summary.total,
            failed=summary.failed,
            new_articles=summary.new_articles,
            purged=summary.purged,
        )
        return summary

    async def _auto_filter(self) -> FilterSummary:
        if self.classifier is None:
            return FilterSummary(errors=["Classifier not configured"])
        try:
            result = await self.classifier.filter_articles()
        except Exception as e:
            logger.error("Auto-filter failed", error=str(e))
            return FilterSummary(errors=[str(e)])
        logger.info("Auto-filter complete", filtered=result.filtered, batches=result.batches)
        return result
