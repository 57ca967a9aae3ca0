"""Pytest configuration and shared fixtures."""

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from site_analytics.common.config.settings import (
    ApiConfig,
    DatabaseConfig,
    PipelineConfig,
    QueueConfig,
    RedisConfig,
    WorkerConfig,
)


@pytest.fixture
def test_config() -> PipelineConfig:
    """Configuration with short timeouts so loops turn over quickly."""
    return PipelineConfig(
        redis=RedisConfig(host="localhost", port=6379),
        queue=QueueConfig(name="test:events", dequeue_timeout_seconds=1),
        database=DatabaseConfig(name="analytics_test", create_schema=False),
        worker=WorkerConfig(backoff_seconds=0.05, drain_seconds=0.5, log_every=100, queue_report_every=10),
        api=ApiConfig(port=0, enqueue_drain_seconds=1.0)
    )


@pytest.fixture
def sample_event_data() -> Dict[str, Any]:
    """A fully populated page view."""
    return {
        "site_id": "s1",
        "event_type": "page_view",
        "path": "/pricing",
        "user_id": "user-42",
        "timestamp": "2024-01-01T00:00:00Z"
    }


@pytest.fixture
def mock_redis_client():
    """Mock redis.asyncio client."""
    client = AsyncMock()
    client.ping.return_value = True
    client.lpush.return_value = 1
    client.brpop.return_value = None
    client.llen.return_value = 0
    return client


def make_mock_pool(conn: Optional[AsyncMock] = None) -> MagicMock:
    """Mock asyncpg pool whose acquire() yields `conn` and never swallows errors."""
    conn = conn or AsyncMock()
    pool = MagicMock()
    acquire_ctx = pool.acquire.return_value
    acquire_ctx.__aenter__.return_value = conn
    acquire_ctx.__aexit__.return_value = False
    pool.close = AsyncMock()
    pool.connection = conn
    return pool


@pytest.fixture
def mock_pool():
    return make_mock_pool()


class FakeRedis:
    """In-memory stand-in for the few list commands the queue uses."""

    def __init__(self):
        self.lists: Dict[str, List[str]] = {}
        self.closed = False
        self.available = True

    def _check(self):
        if not self.available:
            raise RedisConnectionError("Connection refused")

    async def ping(self):
        self._check()
        return True

    async def lpush(self, name: str, value: str) -> int:
        self._check()
        self.lists.setdefault(name, []).insert(0, value)
        return len(self.lists[name])

    async def brpop(self, keys, timeout: float = 0):
        self._check()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            for key in keys:
                items = self.lists.get(key)
                if items:
                    return key, items.pop()
            if loop.time() >= deadline:
                return None
            await asyncio.sleep(0.01)

    async def llen(self, name: str) -> int:
        self._check()
        return len(self.lists.get(name, []))

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


class FakeEventsTable:
    """
    In-memory `events` table behind a pool-shaped object.

    Inserts are captured from the bound parameters; the two stats queries are
    answered from the captured rows using the same page_view rules.
    """

    def __init__(self):
        self.rows: List[Dict[str, Any]] = []
        self.fail_next_inserts = 0
        self.released = 0
        self.closed = False

    def acquire(self, timeout: Optional[float] = None):
        table = self

        class _Acquire:
            async def __aenter__(self):
                return table

            async def __aexit__(self, *exc):
                table.released += 1
                return False

        return _Acquire()

    async def execute(self, query: str, *args):
        if self.fail_next_inserts:
            self.fail_next_inserts -= 1
            raise asyncpg.InterfaceError("connection was closed in the middle of operation")
        site_id, event_type, path, user_id, timestamp = args
        self.rows.append({
            "site_id": site_id,
            "event_type": event_type,
            "path": path,
            "user_id": user_id,
            "timestamp": timestamp
        })
        return "INSERT 0 1"

    def _page_views(self, site_id: str, day: Optional[date] = None):
        return [
            row for row in self.rows
            if row["site_id"] == site_id
            and row["event_type"] == "page_view"
            and (day is None or row["timestamp"].date() == day)
        ]

    async def fetchrow(self, query: str, site_id: str, day: Optional[date] = None):
        views = self._page_views(site_id, day)
        return {
            "total_views": len(views),
            "unique_users": len({r["user_id"] for r in views if r["user_id"] is not None})
        }

    async def fetch(self, query: str, site_id: str, day: Optional[date] = None):
        counts: Dict[str, int] = {}
        for row in self._page_views(site_id, day):
            if row["path"] is not None:
                counts[row["path"]] = counts.get(row["path"], 0) + 1
        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:10]
        return [{"path": path, "views": views} for path, views in ranked]

    async def close(self):
        self.closed = True


@pytest.fixture
def events_table() -> FakeEventsTable:
    return FakeEventsTable()
