"""
Shared fixtures.
"""
import asyncio

import pytest

from newsfilter.models.database import Database


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'newsfilter-test.db'}"


@pytest.fixture
def run_db(database_url):
    """
    Run an async scenario against a fresh database.

    The database lives for a single event loop: it is created, handed to
    the scenario and disposed inside the same asyncio.run call.
    """

    def runner(scenario):
        async def main():
            database = Database(database_url)
            await database.create_tables()
            try:
                return await scenario(database)
            finally:
                await database.dispose()

        return asyncio.run(main())

    return runner
