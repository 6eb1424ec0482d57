"""
Adapter registry: one adapter per source kind, built once at startup.
"""
from typing import Optional

import httpx

from newsfilter.config import Settings
from newsfilter.models.domain import SourceKind
from newsfilter.services.llm import ModelClient
from newsfilter.sources.base import SourceAdapter
from newsfilter.sources.board import BoardAdapter
from newsfilter.sources.feed import FeedAdapter
from newsfilter.sources.page import PageAdapter

AdapterRegistry = dict[SourceKind, SourceAdapter]


def build_adapter_registry(
    model: ModelClient,
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AdapterRegistry:
    """Create the kind -> adapter mapping handed to the orchestrator."""
    common = {"timeout": settings.http_timeout_seconds, "transport": transport}
    adapters: list[SourceAdapter] = [
        FeedAdapter(**common),
        BoardAdapter(
            base_url=settings.board_api_url,
            batch_size=settings.board_batch_size,
            **common,
        ),
        PageAdapter(model, **common),
    ]
    return {adapter.kind: adapter for adapter in adapters}
