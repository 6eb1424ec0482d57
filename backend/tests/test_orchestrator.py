"""
Tests for the fetch orchestrator: per-source isolation, fetch-log
bookkeeping, event order, auto-classification and the overlap guard.
"""
import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from helpers import add_source, make_raw
from newsfilter.core.clock import utcnow
from newsfilter.errors import FetchRunInProgressError, NoActiveCriteriaError, SourceFetchError
from newsfilter.models.database import DBArticle, DBSource
from newsfilter.models.domain import FetchStatus, FilterSummary, SourceKind
from newsfilter.repositories import fetch_log as fetch_log_repo
from newsfilter.services.events import CollectingEventSink, FetchEvent
from newsfilter.services.orchestrator import FetchOrchestrator


class FakeAdapter:
    """Returns canned articles per source name, or raises for listed names."""

    def __init__(self, kind=SourceKind.FEED, articles=None, failures=None, gate=None):
        self.kind = kind
        self.articles = articles or {}
        self.failures = failures or {}
        self.gate = gate
        self.calls = []

    async def fetch(self, source):
        self.calls.append(source.name)
        if self.gate is not None:
            await self.gate.wait()
        if source.name in self.failures:
            raise self.failures[source.name]
        return list(self.articles.get(source.name, []))


class FakeClassifier:
    def __init__(self, outcome=None):
        self.outcome = outcome or FilterSummary(filtered=2, batches=1)
        self.calls = 0

    async def filter_articles(self):
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


async def all_logs(database):
    async with database.async_session() as session:
        return await fetch_log_repo.list_fetch_logs(session, limit=100)


class TestFetchSource:
    """Tests for a single source attempt."""

    def test_success_writes_log_and_last_fetched(self, run_db):
        async def scenario(database):
            source_id = await add_source(database, name="Good")
            adapter = FakeAdapter(articles={"Good": [make_raw("https://g.test/1"), make_raw("https://g.test/1")]})
            result = await FetchOrchestrator(database, {SourceKind.FEED: adapter}).fetch_source(source_id)
            async with database.async_session() as session:
                row = await session.get(DBSource, source_id)
            return result, await all_logs(database), row.last_fetched_at

        result, logs, last_fetched_at = run_db(scenario)

        assert result.ok
        assert (result.articles_found, result.new_articles) == (2, 1)
        assert len(logs) == 1
        assert logs[0].status == "success"
        assert logs[0].articles_found == 2
        assert logs[0].error_message is None
        assert last_fetched_at is not None

    def test_failure_writes_error_log(self, run_db):
        async def scenario(database):
            source_id = await add_source(database, name="Broken")
            adapter = FakeAdapter(failures={"Broken": SourceFetchError("Failed to fetch feed: 500 Internal Server Error")})
            result = await FetchOrchestrator(database, {SourceKind.FEED: adapter}).fetch_source(source_id)
            async with database.async_session() as session:
                row = await session.get(DBSource, source_id)
            return result, await all_logs(database), row.last_fetched_at

        result, logs, last_fetched_at = run_db(scenario)

        assert result.error == "Failed to fetch feed: 500 Internal Server Error"
        assert result.articles_found == 0
        assert [(log.status, log.articles_found, log.error_message) for log in logs] == [
            ("error", 0, "Failed to fetch feed: 500 Internal Server Error"),
        ]
        assert last_fetched_at is None

    def test_failed_bookkeeping_rolls_back_articles(self, run_db, monkeypatch):
        """Articles from an attempt whose success log cannot be written are not kept."""
        create_fetch_log = fetch_log_repo.create_fetch_log

        async def failing_success_log(session, **kwargs):
            if kwargs["status"] == FetchStatus.SUCCESS:
                raise RuntimeError("fetch log unavailable")
            return await create_fetch_log(session, **kwargs)

        monkeypatch.setattr(fetch_log_repo, "create_fetch_log", failing_success_log)

        async def scenario(database):
            source_id = await add_source(database, name="Good")
            adapter = FakeAdapter(articles={"Good": [make_raw("https://g.test/1")]})
            result = await FetchOrchestrator(database, {SourceKind.FEED: adapter}).fetch_source(source_id)
            async with database.async_session() as session:
                stored = (await session.execute(select(DBArticle))).scalars().all()
                row = await session.get(DBSource, source_id)
            return result, await all_logs(database), stored, row.last_fetched_at

        result, logs, stored, last_fetched_at = run_db(scenario)

        assert result.error == "fetch log unavailable"
        assert stored == []
        assert last_fetched_at is None
        assert [(log.status, log.error_message) for log in logs] == [("error", "fetch log unavailable")]

    def test_unknown_source(self, run_db):
        async def scenario(database):
            result = await FetchOrchestrator(database, {}).fetch_source(4242)
            return result, await all_logs(database)

        result, logs = run_db(scenario)

        assert result.error == "Source not found"
        assert logs == []

    def test_missing_adapter(self, run_db):
        async def scenario(database):
            source_id = await add_source(
                database, name="Page", kind=SourceKind.PAGE, config={"page_url": "https://p.test/"}
            )
            result = await FetchOrchestrator(database, {}).fetch_source(source_id)
            return result, await all_logs(database)

        result, logs = run_db(scenario)

        assert result.error == "No adapter for source kind: page"
        assert [log.status for log in logs] == ["error"]

    def test_invalid_stored_config_is_an_attempt_failure(self, run_db):
        async def scenario(database):
            source_id = await add_source(database, name="Misconfigured", config={})
            adapter = FakeAdapter()
            result = await FetchOrchestrator(database, {SourceKind.FEED: adapter}).fetch_source(source_id)
            return result, await all_logs(database), adapter.calls

        result, logs, calls = run_db(scenario)

        assert not result.ok
        assert "feed_url" in result.error
        assert [log.status for log in logs] == ["error"]
        assert calls == []


class TestRunFetchAll:
    """Tests for the sequential fetch-all run."""

    def test_failing_source_is_isolated(self, run_db):
        """Three sources, the middle one fails; the others still complete."""
        async def scenario(database):
            alpha = await add_source(database, name="Alpha")
            beta = await add_source(database, name="Beta")
            gamma = await add_source(database, name="Gamma")
            adapter = FakeAdapter(
                articles={
                    "Alpha": [make_raw("https://alpha.test/1")],
                    "Gamma": [make_raw("https://gamma.test/1"), make_raw("https://gamma.test/2")],
                },
                failures={"Beta": SourceFetchError("Failed to fetch feed: 502 Bad Gateway")},
            )
            classifier = FakeClassifier()
            sink = CollectingEventSink()
            summary = await FetchOrchestrator(
                database, {SourceKind.FEED: adapter}, classifier
            ).run_fetch_all(sink)
            return (alpha, beta, gamma), adapter.calls, sink, summary, classifier, await all_logs(database)

        (alpha, beta, gamma), calls, sink, summary, classifier, logs = run_db(scenario)

        # Enabled sources run newest first
        assert calls == ["Gamma", "Beta", "Alpha"]
        assert sink.names == [
            "source-start", "source-done",
            "source-start", "source-done",
            "source-start", "source-done",
            "fetch-complete",
            "filter-start",
            "filter-done",
        ]
        beta_done = sink.events[3].data
        assert beta_done["sourceId"] == beta
        assert beta_done["status"] == "error"
        assert beta_done["error"] == "Failed to fetch feed: 502 Bad Gateway"

        assert sink.events[6] == FetchEvent("fetch-complete", {"total": 3, "failed": 1, "newArticles": 3})
        assert sink.events[7].data == {"unfiltered": 3}
        assert sink.events[8].data == {"filtered": 2, "batches": 1, "errors": []}

        assert (summary.total, summary.failed, summary.new_articles) == (3, 1, 3)
        assert classifier.calls == 1
        assert sorted(log.status for log in logs) == ["error", "success", "success"]

    def test_no_new_articles_skips_filter(self, run_db):
        async def scenario(database):
            await add_source(database, name="Quiet")
            classifier = FakeClassifier()
            sink = CollectingEventSink()
            await FetchOrchestrator(database, {SourceKind.FEED: FakeAdapter()}, classifier).run_fetch_all(sink)
            return sink.names, classifier.calls

        names, calls = run_db(scenario)

        assert names == ["source-start", "source-done", "fetch-complete"]
        assert calls == 0

    def test_classifier_failure_reported_in_filter_done(self, run_db):
        async def scenario(database):
            await add_source(database, name="Busy")
            adapter = FakeAdapter(articles={"Busy": [make_raw("https://busy.test/1")]})
            sink = CollectingEventSink()
            await FetchOrchestrator(
                database, {SourceKind.FEED: adapter}, FakeClassifier(NoActiveCriteriaError())
            ).run_fetch_all(sink)
            return sink.events[-1]

        event = run_db(scenario)

        assert event.name == "filter-done"
        assert event.data == {
            "filtered": 0,
            "batches": 0,
            "errors": ["No active criteria. Add or activate criteria before filtering."],
        }

    def test_disabled_sources_are_skipped(self, run_db):
        async def scenario(database):
            await add_source(database, name="On")
            await add_source(database, name="Off", enabled=False)
            adapter = FakeAdapter()
            await FetchOrchestrator(database, {SourceKind.FEED: adapter}).run_fetch_all(CollectingEventSink())
            return adapter.calls

        assert run_db(scenario) == ["On"]

    def test_run_purges_expired_articles(self, run_db):
        async def scenario(database):
            source_id = await add_source(database, name="Archive")
            async with database.async_session() as session:
                session.add(DBArticle(
                    source_id=source_id, external_id="stale", title="Stale",
                    url="https://archive.test/stale", published_at=utcnow() - timedelta(days=30),
                ))
                await session.commit()
            summary = await FetchOrchestrator(
                database, {SourceKind.FEED: FakeAdapter()}
            ).run_fetch_all(CollectingEventSink())
            async with database.async_session() as session:
                urls = list((await session.execute(select(DBArticle.url))).scalars())
            return summary, urls

        summary, urls = run_db(scenario)

        assert summary.purged == 1
        assert urls == []

    def test_overlapping_run_is_rejected(self, run_db):
        async def scenario(database):
            await add_source(database, name="Slow")
            gate = asyncio.Event()
            orchestrator = FetchOrchestrator(database, {SourceKind.FEED: FakeAdapter(gate=gate)})

            first = asyncio.create_task(orchestrator.run_fetch_all(CollectingEventSink()))
            while not orchestrator.is_running:
                await asyncio.sleep(0)

            second_sink = CollectingEventSink()
            with pytest.raises(FetchRunInProgressError):
                await orchestrator.run_fetch_all(second_sink)

            gate.set()
            summary = await first
            return second_sink.events, summary, orchestrator.is_running

        second_events, summary, still_running = run_db(scenario)

        assert second_events == []
        assert summary.total == 1
        assert still_running is False
