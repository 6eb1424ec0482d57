"""
Tests for syncing sources.json into the sources table.
"""
import json

from sqlalchemy import select

from newsfilter.models.database import DBSource
from newsfilter.services.source_sync import load_source_entries, sync_sources


ENTRIES = [
    {"key": "hn-top", "name": "HN top", "kind": "board", "config": {"list_type": "top"}},
    {"key": "py-blog", "name": "Python blog", "kind": "feed", "config": {"feed_url": "https://blog.python.test/rss"}},
    {"key": "bad-kind", "name": "Bad", "kind": "gopher", "config": {}},
    {"name": "No key", "kind": "feed", "config": {"feed_url": "https://x.test/rss"}},
    {"key": "no-url", "name": "No url", "kind": "page", "config": {}},
]


def write_sources(tmp_path, entries) -> str:
    path = tmp_path / "sources.json"
    path.write_text(json.dumps(entries), encoding="utf-8")
    return str(path)


async def all_sources(database) -> dict[str, DBSource]:
    async with database.async_session() as session:
        result = await session.execute(select(DBSource))
        return {row.config_key: row for row in result.scalars()}


class TestSourceSync:
    """Tests for loading and upserting file-declared sources."""

    def test_invalid_entries_are_skipped(self, tmp_path):
        entries = load_source_entries(write_sources(tmp_path, ENTRIES))

        assert [entry.key for entry in entries] == ["hn-top", "py-blog"]
        # Defaults are filled in from the typed config
        assert entries[0].config == {"list_type": "top", "max_items": 30}

    def test_missing_or_malformed_file(self, tmp_path):
        assert load_source_entries(tmp_path / "absent.json") == []

        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_source_entries(path) == []

    def test_sync_upserts_by_key(self, run_db, tmp_path):
        path = write_sources(tmp_path, ENTRIES)

        async def scenario(database):
            first = await sync_sources(database, path)
            before = await all_sources(database)

            updated = [dict(ENTRIES[1], name="Python blog (renamed)", enabled=False)]
            second = await sync_sources(database, write_sources(tmp_path, updated))
            after = await all_sources(database)
            return first, before, second, after

        first, before, second, after = run_db(scenario)

        assert first == 2
        assert set(before) == {"hn-top", "py-blog"}
        assert second == 1
        assert after["py-blog"].id == before["py-blog"].id
        assert after["py-blog"].name == "Python blog (renamed)"
        assert after["py-blog"].enabled is False
        # Sources removed from the file are kept
        assert "hn-top" in after
