"""
Discussion board adapter for the Hacker News Firebase API.
API docs: https://github.com/HackerNews/API
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from newsfilter.errors import SourceFetchError
from newsfilter.models.domain import BoardConfig, Source, SourceKind
from newsfilter.sources.base import RawArticle, SourceAdapter
from newsfilter.sources.text import strip_markup, truncate

logger = logging.getLogger(__name__)

LIST_ENDPOINTS = {
    "top": "topstories",
    "new": "newstories",
    "best": "beststories",
}

DISCUSSION_URL = "https://news.ycombinator.com/item?id={id}"
SUMMARY_LIMIT = 1000


class BoardAdapter(SourceAdapter):
    """Fetches a ranked story list and the story bodies behind it."""

    BASE_URL = "https://hacker-news.firebaseio.com/v0"

    def __init__(
        self,
        base_url: Optional[str] = None,
        batch_size: int = 10,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.batch_size = batch_size

    @property
    def kind(self) -> SourceKind:
        return SourceKind.BOARD

    async def fetch(self, source: Source) -> list[RawArticle]:
        config: BoardConfig = source.config
        endpoint = LIST_ENDPOINTS[config.list_type]

        async with self._client() as client:
            response = await client.get(f"{self.base_url}/{endpoint}.json")
            if not response.is_success:
                raise SourceFetchError(f"Board API error: {response.status_code}")

            ids = response.json() or []
            if not isinstance(ids, list):
                raise SourceFetchError("Board API returned an unexpected id list")
            ids = ids[: config.max_items]

            articles: list[RawArticle] = []
            # Batches run one after another so output keeps list order
            for start in range(0, len(ids), self.batch_size):
                batch = ids[start:start + self.batch_size]
                items = await asyncio.gather(
                    *(self._fetch_item(client, item_id) for item_id in batch)
                )
                for item in items:
                    try:
                        article = self._to_article(item)
                    except (TypeError, ValueError, OverflowError, OSError) as e:
                        logger.warning(f"Skipping malformed board item {item.get('id')}: {e}")
                        continue
                    if article:
                        articles.append(article)

        logger.debug(f"Board list '{config.list_type}': {len(articles)} stories from {len(ids)} ids")
        return articles

    async def _fetch_item(self, client: httpx.AsyncClient, item_id: Any) -> Optional[dict]:
        """Fetch one item body; any failure yields None."""
        try:
            response = await client.get(f"{self.base_url}/item/{item_id}.json")
            if not response.is_success:
                return None
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Skipping board item {item_id}: {e}")
            return None
        return data if isinstance(data, dict) else None

    def _to_article(self, item: Optional[dict]) -> Optional[RawArticle]:
        """Map a story item; dead, deleted and non-story items give None."""
        if not item or item.get("dead") or item.get("deleted"):
            return None
        if item.get("type") != "story" or item.get("id") is None:
            return None

        item_id = item["id"]
        published_at = None
        if item.get("time"):
            published_at = datetime.fromtimestamp(item["time"], tz=timezone.utc).replace(tzinfo=None)

        return RawArticle(
            external_id=str(item_id),
            title=item.get("title") or "Untitled",
            url=item.get("url") or DISCUSSION_URL.format(id=item_id),
            summary=truncate(strip_markup(item.get("text")), SUMMARY_LIMIT),
            author=item.get("by") or None,
            published_at=published_at,
        )
