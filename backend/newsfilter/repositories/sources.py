"""
Source lookups and the single write the fetch pipeline performs on sources.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from newsfilter.core.clock import utcnow
from newsfilter.models.database import DBSource
from newsfilter.models.domain import Source, SourceKind, parse_source_config


def to_source(row: DBSource) -> Source:
    """
    Convert a stored row into a typed Source.

    Raises pydantic.ValidationError when the stored config does not
    match the row's kind.
    """
    return Source(
        id=row.id,
        name=row.name,
        kind=SourceKind(row.kind),
        config=parse_source_config(row.kind, row.config),
        enabled=row.enabled,
        config_key=row.config_key,
        last_fetched_at=row.last_fetched_at,
    )


async def get_source_row(session: AsyncSession, source_id: int) -> Optional[DBSource]:
    return await session.get(DBSource, source_id)


async def list_enabled_source_rows(session: AsyncSession) -> list[DBSource]:
    """Enabled sources, newest first."""
    result = await session.execute(
        select(DBSource)
        .where(DBSource.enabled.is_(True))
        .order_by(DBSource.created_at.desc(), DBSource.id.desc())
    )
    return list(result.scalars())


async def create_source(
    session: AsyncSession,
    name: str,
    kind: SourceKind,
    config: dict,
    enabled: bool = True,
    config_key: Optional[str] = None,
) -> DBSource:
    row = DBSource(
        name=name,
        kind=SourceKind(kind).value,
        config=config,
        enabled=enabled,
        config_key=config_key,
    )
    session.add(row)
    await session.flush()
    return row


async def upsert_source_by_key(
    session: AsyncSession,
    config_key: str,
    name: str,
    kind: SourceKind,
    config: dict,
    enabled: bool = True,
) -> DBSource:
    """Create or overwrite the source identified by `config_key`."""
    result = await session.execute(select(DBSource).where(DBSource.config_key == config_key))
    row = result.scalar_one_or_none()
    if row is None:
        return await create_source(session, name, kind, config, enabled, config_key)

    row.name = name
    row.kind = SourceKind(kind).value
    row.config = config
    row.enabled = enabled
    row.updated_at = utcnow()
    await session.flush()
    return row


async def list_config_keys(session: AsyncSession) -> list[str]:
    result = await session.execute(
        select(DBSource.config_key).where(DBSource.config_key.is_not(None))
    )
    return list(result.scalars())


async def update_last_fetched_at(
    session: AsyncSession,
    source_id: int,
    fetched_at: Optional[datetime] = None,
) -> None:
    now = fetched_at or utcnow()
    await session.execute(
        update(DBSource)
        .where(DBSource.id == source_id)
        .values(last_fetched_at=now, updated_at=now)
    )
