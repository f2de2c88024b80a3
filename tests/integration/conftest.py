"""Fixtures for tests against a running Dolt sql-server.

Set DOLT_TEST_HOST (and optionally DOLT_TEST_PORT, DOLT_TEST_USER,
DOLT_TEST_PASSWORD, DOLT_TEST_DATABASE) to run them.
"""

import os
import uuid
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio

from versioned_session import ConnectionConfig, Session, connect

DOLT_TEST_HOST = os.getenv("DOLT_TEST_HOST")
TEST_BRANCH_PREFIX = "itest_"


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless a server is configured."""
    if DOLT_TEST_HOST:
        return
    skip = pytest.mark.skip(reason="DOLT_TEST_HOST is not set")
    for item in items:
        if "integration" in item.nodeid.split("::")[0]:
            item.add_marker(pytest.mark.integration)
            item.add_marker(skip)


@pytest.fixture(scope="session")
def config() -> ConnectionConfig:
    return ConnectionConfig(
        host=DOLT_TEST_HOST or "localhost",
        port=int(os.getenv("DOLT_TEST_PORT", "3306")),
        user=os.getenv("DOLT_TEST_USER", "root"),
        password=os.getenv("DOLT_TEST_PASSWORD", ""),
        database=os.getenv("DOLT_TEST_DATABASE", "versioned_session_test"),
        pool_max_size=2,
    )


@pytest_asyncio.fixture
async def session(config: ConnectionConfig) -> AsyncGenerator[Session, None]:
    """Session on main that removes its test branches afterwards."""
    session = await connect(config)
    await session.checkout_branch("main")
    try:
        yield session
    finally:
        await session.reset_hard()
        await session.checkout_branch("main")
        for branch in await session.list_branches():
            if branch.name.startswith(TEST_BRANCH_PREFIX):
                await session.delete_branch(branch.name)
        await session.close()


@pytest.fixture
def unique_name() -> Callable[[str], str]:
    """Names that do not collide between runs."""
    suffix = uuid.uuid4().hex[:8]

    def make(kind: str) -> str:
        return f"{TEST_BRANCH_PREFIX}{kind}_{suffix}"
    return make


@pytest_asyncio.fixture
async def scratch(session: Session, unique_name) -> AsyncGenerator[str, None]:
    """Check out a fresh branch holding one committed table; yields the table name."""
    table = unique_name("people")
    await session.checkout_branch(unique_name("base"), create_if_missing=True)
    await session.apply_schema(
        f"CREATE TABLE {table} (id INT PRIMARY KEY, name VARCHAR(255))"
    )
    await session.insert_rows(table, [{"id": 1, "name": "Tim"}, {"id": 2, "name": "Aaron"}])
    await session.commit("Tester <tester@example.com>", "Create scratch table")
    yield table
