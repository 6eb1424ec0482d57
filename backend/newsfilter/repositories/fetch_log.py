"""
Append-only audit of per-source fetch attempts.

Rows are written once and never updated or deleted here.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from newsfilter.models.database import DBFetchLog
from newsfilter.models.domain import FetchLogEntry, FetchStatus


async def create_fetch_log(
    session: AsyncSession,
    source_id: int,
    status: FetchStatus,
    articles_found: int,
    started_at: datetime,
    completed_at: datetime,
    error_message: Optional[str] = None,
) -> FetchLogEntry:
    row = DBFetchLog(
        source_id=source_id,
        status=FetchStatus(status).value,
        articles_found=articles_found,
        error_message=error_message,
        started_at=started_at,
        completed_at=completed_at,
    )
    session.add(row)
    await session.flush()
    return FetchLogEntry.model_validate(row)


async def list_fetch_logs(session: AsyncSession, limit: int = 50) -> list[FetchLogEntry]:
    """Most recent attempts first."""
    result = await session.execute(
        select(DBFetchLog)
        .order_by(DBFetchLog.started_at.desc(), DBFetchLog.id.desc())
        .limit(limit)
    )
    return [FetchLogEntry.model_validate(row) for row in result.scalars()]


async def list_fetch_logs_for_source(
    session: AsyncSession,
    source_id: int,
    limit: int = 20,
) -> list[FetchLogEntry]:
    result = await session.execute(
        select(DBFetchLog)
        .where(DBFetchLog.source_id == source_id)
        .order_by(DBFetchLog.started_at.desc(), DBFetchLog.id.desc())
        .limit(limit)
    )
    return [FetchLogEntry.model_validate(row) for row in result.scalars()]
