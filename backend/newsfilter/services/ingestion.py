"""
Ingestion and retention.

Turns adapter output into stored articles: drops items outside the
retention window, dedups against every stored URL and within the batch,
and commits the survivors in a single transaction.
"""
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from newsfilter.core.clock import utcnow
from newsfilter.repositories import articles as articles_repo
from newsfilter.sources.base import RawArticle

logger = structlog.get_logger(__name__)

RETENTION_WINDOW = timedelta(days=14)


def retention_cutoff(now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) - RETENTION_WINDOW


def is_within_retention(published_at: Optional[datetime], cutoff: datetime) -> bool:
    """Undated articles are never considered old."""
    return published_at is None or published_at >= cutoff


async def insert_articles(
    session: AsyncSession,
    source_id: int,
    raw_articles: Sequence[RawArticle],
    now: Optional[datetime] = None,
    commit: bool = True,
) -> int:
    """
    Store the new articles of one source attempt.

    Returns the number of rows inserted. Items are considered in input
    order, so the first of two items sharing a URL wins. With
    `commit=False` the rows are only flushed and the caller commits them
    together with the rest of its unit of work.
    """
    if not raw_articles:
        return 0

    cutoff = retention_cutoff(now)
    recent = [raw for raw in raw_articles if is_within_retention(raw.published_at, cutoff)]
    if not recent:
        return 0

    seen = await articles_repo.find_stored_urls(session, (raw.url for raw in recent))
    to_insert: list[RawArticle] = []
    for raw in recent:
        if not raw.url or raw.url in seen:
            continue
        seen.add(raw.url)
        to_insert.append(raw)

    if not to_insert:
        return 0

    articles_repo.add_articles(session, source_id, to_insert)
    if commit:
        await session.commit()
    else:
        await session.flush()

    logger.info(
        "Articles inserted",
        source_id=source_id,
        received=len(raw_articles),
        inserted=len(to_insert),
    )
    return len(to_insert)


async def delete_old_articles(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """Purge dated, unpinned articles published before the retention cutoff."""
    deleted = await articles_repo.delete_published_before(session, retention_cutoff(now))
    await session.commit()
    if deleted:
        logger.info("Old articles purged", deleted=deleted)
    return deleted
