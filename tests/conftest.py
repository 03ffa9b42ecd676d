"""Pytest 配置和共享 fixtures。"""
# ruff: noqa: E402

import sys
from pathlib import Path

# Add the project root to sys.path so `from crawl_scheduler...` and `import main` work without installation
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


import asyncio
from types import SimpleNamespace
from typing import Any, cast

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from crawl_scheduler.core.config import KeysConfig
from crawl_scheduler.core.datastore import DataStore
from crawl_scheduler.core.models import Base
from crawl_scheduler.core.queues import WorkQueues
from crawl_scheduler.core.tracker import DedupTracker
from crawl_scheduler.crawler.spider import FetchResult

# ==================== Redis 替身 ====================


class DummyRedis:
    """只实现调度器用到的 list / set / zset 命令的内存 Redis。

    列表以 Python list 保存，下标 0 为左端。
    """

    def __init__(self) -> None:
        self.lists: dict[str, list[str]] = {}
        self.sets: dict[str, set[str]] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self) -> None:
        pass

    async def lpush(self, key: str, *values: str) -> int:
        self._check()
        lst = self.lists.setdefault(key, [])
        for v in values:
            lst.insert(0, v)
        return len(lst)

    async def rpush(self, key: str, *values: str) -> int:
        self._check()
        lst = self.lists.setdefault(key, [])
        lst.extend(values)
        return len(lst)

    async def rpop(self, key: str) -> str | None:
        self._check()
        lst = self.lists.get(key)
        if not lst:
            return None
        return lst.pop()

    async def lmove(self, first_list: str, second_list: str, src: str = "LEFT", dest: str = "RIGHT") -> str | None:
        self._check()
        source = self.lists.get(first_list)
        if not source:
            return None
        value = source.pop() if src == "RIGHT" else source.pop(0)
        target = self.lists.setdefault(second_list, [])
        if dest == "LEFT":
            target.insert(0, value)
        else:
            target.append(value)
        return value

    async def lpos(self, key: str, value: str) -> int | None:
        self._check()
        lst = self.lists.get(key, [])
        return lst.index(value) if value in lst else None

    async def llen(self, key: str) -> int:
        self._check()
        return len(self.lists.get(key, []))

    async def sadd(self, key: str, *members: str) -> int:
        self._check()
        s = self.sets.setdefault(key, set())
        added = len(set(members) - s)
        s.update(members)
        return added

    async def sismember(self, key: str, member: str) -> int:
        self._check()
        return int(member in self.sets.get(key, set()))

    async def scard(self, key: str) -> int:
        self._check()
        return len(self.sets.get(key, set()))

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        self._check()
        z = self.zsets.setdefault(key, {})
        added = len(set(mapping) - set(z))
        z.update(mapping)
        return added

    async def zrangebyscore(
        self, key: str, min: float, max: float, withscores: bool = False
    ) -> list[Any]:
        self._check()
        z = self.zsets.get(key, {})
        rows = sorted(((m, s) for m, s in z.items() if min <= s <= max), key=lambda r: (r[1], r[0]))
        if withscores:
            return rows
        return [m for m, _ in rows]


# ==================== 抓取替身 ====================


class StubFetcher:
    """返回固定结果并记录调用的抓取器。"""

    def __init__(self, result: FetchResult | None = None) -> None:
        self.result = result or FetchResult(
            content="<html></html>",
            links=("http://www.example.com/new1", "http://www.example.com/new2", "http://www.example.com/new3"),
        )
        self.calls: list[str] = []

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        return self.result


class FakeSleep:
    """注入 PeriodicScheduler 的 sleep：放行前 ticks 次，之后一直阻塞。"""

    def __init__(self, ticks: int) -> None:
        self.ticks = ticks
        self.delays: list[float] = []
        self.exhausted = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if len(self.delays) > self.ticks:
            self.exhausted.set()
            await asyncio.Event().wait()


# ==================== Fixtures ====================


@pytest.fixture
def keys():
    return KeysConfig()


@pytest.fixture
def dummy_redis():
    return DummyRedis()


@pytest.fixture
def queues(dummy_redis, keys):
    return WorkQueues(cast("Any", dummy_redis), keys)


@pytest.fixture
def tracker(dummy_redis, keys):
    return DedupTracker(cast("Any", dummy_redis), keys)


@pytest.fixture
def stub_fetcher():
    return StubFetcher()


@pytest_asyncio.fixture
async def db_engine():
    """SQLite 内存数据库，所有会话共享同一个连接。"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def db_container(db_engine):
    return SimpleNamespace(
        db_engine=db_engine,
        async_sessionmaker=async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False),
    )


@pytest.fixture
def datastore(db_container):
    return DataStore(cast("Any", db_container))
