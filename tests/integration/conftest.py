"""
Integration test fixtures — real PostgreSQL.

Requires a PostgreSQL server reachable at TEST_DATABASE_URL, e.g.:
  docker run -d -p 5433:5432 -e POSTGRES_USER=p2p_test \
      -e POSTGRES_PASSWORD=p2p_test -e POSTGRES_DB=p2p_test postgres:16

Tests are skipped when the server is not reachable.
"""

import os
import socket

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from p2p_queue.database import Base
from p2p_queue.store.sql import SqlQueueStore


# ── Service availability check ─────────────────────────────────────────────

def _port_open(host: str, port: int, timeout: float = 1.0) -> bool:
    """Return True if a TCP connection to host:port succeeds."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


_PG_HOST = os.environ.get("PGHOST", "localhost")
_PG_PORT = int(os.environ.get("PGPORT", "5433"))
PG_UP = _port_open(_PG_HOST, _PG_PORT)

TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL",
    f"postgresql+asyncpg://p2p_test:p2p_test@{_PG_HOST}:{_PG_PORT}/p2p_test",
)


# ── Real async engine + store ──────────────────────────────────────────────

@pytest_asyncio.fixture
async def pg_engine():
    """Engine on a freshly created schema, dropped after the test."""
    if not PG_UP:
        pytest.skip("PostgreSQL not available")
    from p2p_queue.store import tables  # noqa: F401

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def store(pg_engine):
    """Overrides the in-memory store for every integration test."""
    return SqlQueueStore(async_sessionmaker(pg_engine, expire_on_commit=False))
