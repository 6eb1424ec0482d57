"""
Relevance criteria.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from newsfilter.models.database import DBCriterion
from newsfilter.models.domain import Criterion


async def list_active_criteria(session: AsyncSession) -> list[Criterion]:
    """Active criteria, newest first."""
    result = await session.execute(
        select(DBCriterion)
        .where(DBCriterion.is_active.is_(True))
        .order_by(DBCriterion.created_at.desc(), DBCriterion.id.desc())
    )
    return [Criterion.model_validate(row) for row in result.scalars()]


async def create_criterion(
    session: AsyncSession,
    name: str,
    description: str,
    is_active: bool = True,
) -> Criterion:
    row = DBCriterion(name=name, description=description, is_active=is_active)
    session.add(row)
    await session.flush()
    await session.refresh(row)
    return Criterion.model_validate(row)
