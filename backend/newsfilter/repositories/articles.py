"""
Article reads and writes used by ingestion, retention and classification.
"""
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from newsfilter.models.database import DBArticle
from newsfilter.models.domain import Article
from newsfilter.sources.base import RawArticle


async def find_stored_urls(session: AsyncSession, urls: Iterable[str]) -> set[str]:
    """Return the subset of `urls` already stored under any source."""
    candidates = list({u for u in urls if u})
    if not candidates:
        return set()

    found: set[str] = set()
    # Stay well below SQLite's bound-parameter limit
    for start in range(0, len(candidates), 500):
        chunk = candidates[start:start + 500]
        result = await session.execute(select(DBArticle.url).where(DBArticle.url.in_(chunk)))
        found.update(result.scalars())
    return found


def add_articles(session: AsyncSession, source_id: int, raw_articles: Sequence[RawArticle]) -> None:
    """Stage new article rows. Downstream columns keep their defaults."""
    session.add_all(
        DBArticle(
            source_id=source_id,
            external_id=raw.external_id,
            title=raw.title,
            url=raw.url,
            summary=raw.summary,
            author=raw.author,
            published_at=raw.published_at,
            raw_content=raw.raw_content,
        )
        for raw in raw_articles
    )


async def get_article_by_url(session: AsyncSession, url: str) -> Optional[Article]:
    result = await session.execute(select(DBArticle).where(DBArticle.url == url))
    row = result.scalar_one_or_none()
    return Article.model_validate(row) if row else None


async def count_articles(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(DBArticle.id)))
    return result.scalar_one()


async def list_unfiltered_articles(session: AsyncSession, limit: int = 200) -> list[Article]:
    """Articles without a verdict, most recently created first."""
    result = await session.execute(
        select(DBArticle)
        .where(DBArticle.filtered_at.is_(None))
        .order_by(DBArticle.created_at.desc(), DBArticle.id.desc())
        .limit(limit)
    )
    return [Article.model_validate(row) for row in result.scalars()]


async def update_article_relevance(
    session: AsyncSession,
    article_id: int,
    score: float,
    reason: str,
    is_relevant: bool,
    filtered_at: datetime,
) -> bool:
    """Write all four relevance fields in one statement."""
    result = await session.execute(
        update(DBArticle)
        .where(DBArticle.id == article_id)
        .values(
            relevance_score=score,
            relevance_reason=reason,
            is_relevant=is_relevant,
            filtered_at=filtered_at,
        )
    )
    return result.rowcount > 0


async def clear_all_scores(session: AsyncSession) -> int:
    result = await session.execute(
        update(DBArticle).values(
            relevance_score=None,
            relevance_reason=None,
            is_relevant=None,
            filtered_at=None,
        )
    )
    return result.rowcount


async def delete_published_before(
    session: AsyncSession,
    cutoff: datetime,
    keep_pinned: bool = True,
) -> int:
    """Delete dated articles older than `cutoff`. Undated rows are never touched."""
    stmt = delete(DBArticle).where(
        DBArticle.published_at.is_not(None),
        DBArticle.published_at < cutoff,
    )
    if keep_pinned:
        stmt = stmt.where(DBArticle.episode_id.is_(None))
    result = await session.execute(stmt)
    return result.rowcount
