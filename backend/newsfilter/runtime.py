"""
Wiring of the long-lived service objects shared by the API, scheduler and CLI.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from newsfilter.config import Settings, get_settings
from newsfilter.models.database import Database
from newsfilter.services.classifier import RelevanceClassifier
from newsfilter.services.llm import ModelClient
from newsfilter.services.orchestrator import FetchOrchestrator
from newsfilter.sources.registry import build_adapter_registry


@dataclass
class Runtime:
    settings: Settings
    database: Database
    model: ModelClient
    classifier: RelevanceClassifier
    orchestrator: FetchOrchestrator
    background_tasks: set[asyncio.Task] = field(default_factory=set)

    def spawn(self, coro) -> asyncio.Task:
        """Run `coro` detached from the caller, keeping a reference until done."""
        task = asyncio.create_task(coro)
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)
        return task

    async def close(self) -> None:
        """Cancel detached work and wait for it to unwind before disposing the engine."""
        tasks = list(self.background_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.database.dispose()


def build_runtime(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    client_factory: Optional[Callable[[str], Any]] = None,
) -> Runtime:
    """Build the database, model client, adapters, classifier and orchestrator."""
    settings = settings or get_settings()
    database = database or Database(settings.database_url)

    model = ModelClient(database, settings, client_factory=client_factory)
    classifier = RelevanceClassifier(
        database,
        model,
        batch_size=settings.filter_batch_size,
        max_articles=settings.filter_max_articles,
    )
    adapters = build_adapter_registry(model, settings, transport=transport)
    orchestrator = FetchOrchestrator(database, adapters, classifier)

    return Runtime(
        settings=settings,
        database=database,
        model=model,
        classifier=classifier,
        orchestrator=orchestrator,
    )
