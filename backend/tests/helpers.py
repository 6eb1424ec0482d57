"""
Builders and fakes shared by the test modules.
"""
import re
from datetime import datetime
from typing import Callable, Optional, Union

from newsfilter.errors import MissingCredentialError
from newsfilter.models.database import Database
from newsfilter.models.domain import SourceKind
from newsfilter.repositories import sources as sources_repo
from newsfilter.sources.base import RawArticle


class StubModel:
    """Stands in for ModelClient. Replies come from a string, a list or a callable."""

    def __init__(
        self,
        reply: Union[str, list, Callable[[str], str], Exception, None] = "[]",
        api_key: Optional[str] = "test-key",
    ):
        self.reply = reply
        self.api_key = api_key
        self.prompts: list[str] = []

    async def resolve_api_key(self) -> str:
        if not self.api_key:
            raise MissingCredentialError()
        return self.api_key

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self.reply
        if isinstance(reply, list):
            reply = reply.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(prompt)
        return reply


def ids_in_prompt(prompt: str) -> list[int]:
    return [int(match) for match in re.findall(r"^- ID: (\d+)", prompt, flags=re.MULTILINE)]


def make_raw(
    url: str,
    title: str = "Title",
    published_at: Optional[datetime] = None,
    external_id: Optional[str] = None,
) -> RawArticle:
    return RawArticle(
        external_id=external_id or url,
        title=title,
        url=url,
        published_at=published_at,
    )


async def add_source(
    database: Database,
    name: str = "Example feed",
    kind: SourceKind = SourceKind.FEED,
    config: Optional[dict] = None,
    enabled: bool = True,
) -> int:
    if config is None:
        config = {"feed_url": f"https://{name.lower().replace(' ', '-')}.test/feed.xml"}
    async with database.async_session() as session:
        row = await sources_repo.create_source(session, name, kind, config, enabled)
        await session.commit()
        return row.id
