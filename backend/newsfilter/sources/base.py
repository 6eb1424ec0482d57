"""
Base interface for source adapters.
All adapters (feed, board, page) implement this interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx

from newsfilter.models.domain import Source, SourceKind


@dataclass
class RawArticle:
    """
    Article data from an adapter before persistence.

    This is the intermediate format between source-specific data
    and the stored Article model.
    """
    external_id: str
    title: str
    url: str
    summary: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[datetime] = None  # naive UTC
    raw_content: Optional[str] = None


class SourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    Adapters only read from the outside world; they never write to the
    store. They raise only when the whole attempt cannot complete.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self._transport = transport

    @property
    @abstractmethod
    def kind(self) -> SourceKind:
        """Return the source kind this adapter handles."""
        pass

    @abstractmethod
    async def fetch(self, source: Source) -> list[RawArticle]:
        """
        Fetch the current articles of a source.

        Args:
            source: The source to fetch, with a config matching `kind`

        Returns:
            RawArticle objects in source order
        """
        pass

    def _client(self, **kwargs) -> httpx.AsyncClient:
        """Create an HTTP client bound to this adapter's transport."""
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
            **kwargs,
        )
