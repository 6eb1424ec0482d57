"""
Sync of file-declared sources (sources.json) into the sources table.

Each entry is upserted by its `key`. Entries that do not validate are
skipped with a warning; rows whose key disappeared from the file are
reported but left in place.
"""
import json
from pathlib import Path
from typing import Union

import structlog
from pydantic import BaseModel, Field, ValidationError

from newsfilter.models.database import Database
from newsfilter.models.domain import SourceKind, parse_source_config
from newsfilter.repositories import sources as sources_repo

logger = structlog.get_logger(__name__)


class SourceEntry(BaseModel):
    """One entry of sources.json."""
    key: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    kind: SourceKind
    config: dict = Field(default_factory=dict)
    enabled: bool = True


def load_source_entries(path: Union[str, Path]) -> list[SourceEntry]:
    """Read and validate the file. A missing or unreadable file gives []."""
    path = Path(path)
    if not path.exists():
        return []

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Failed to read sources file", path=str(path), error=str(e))
        return []

    if not isinstance(raw, list):
        logger.error("Sources file must contain a JSON array", path=str(path))
        return []

    entries = []
    for item in raw:
        try:
            entry = SourceEntry.model_validate(item)
            # Normalize the config through its typed model
            typed = parse_source_config(entry.kind.value, entry.config)
            entry.config = typed.model_dump(exclude={"kind"})
        except ValidationError as e:
            logger.warning("Skipping invalid source entry", entry=item, error=str(e))
            continue
        entries.append(entry)
    return entries


async def sync_sources(database: Database, path: Union[str, Path]) -> int:
    """Upsert every valid entry of `path`; returns the number synced."""
    entries = load_source_entries(path)
    if not entries:
        return 0

    keys_in_file = set()
    async with database.async_session() as session:
        for entry in entries:
            keys_in_file.add(entry.key)
            await sources_repo.upsert_source_by_key(
                session,
                config_key=entry.key,
                name=entry.name,
                kind=entry.kind,
                config=entry.config,
                enabled=entry.enabled,
            )
        await session.commit()

        for key in await sources_repo.list_config_keys(session):
            if key not in keys_in_file:
                logger.warning("Source in database but not in sources file", config_key=key)

    logger.info("Sources synced", count=len(keys_in_file), path=str(path))
    return len(keys_in_file)
