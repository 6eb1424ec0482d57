"""
Key/value application settings.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from newsfilter.core.clock import utcnow
from newsfilter.models.database import DBAppSetting


async def get_setting_value(session: AsyncSession, key: str) -> Optional[str]:
    result = await session.execute(
        select(DBAppSetting.value).where(DBAppSetting.key == key)
    )
    return result.scalar_one_or_none()


async def upsert_setting(session: AsyncSession, key: str, value: str) -> None:
    """Insert or replace a setting. Flushes but does not commit."""
    setting = await session.get(DBAppSetting, key)
    if setting is None:
        session.add(DBAppSetting(key=key, value=value, updated_at=utcnow()))
    else:
        setting.value = value
        setting.updated_at = utcnow()
    await session.flush()
