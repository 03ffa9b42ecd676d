"""URL 去重与访问记录模块。

基于 Redis 的两种结构：
- 已发现集合 (SET)：所有曾经发现过的 URL，插入幂等
- 已访问有序集合 (ZSET)：按完成时间戳排序的已访问 URL，支持时间范围查询
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from .errors import QueueError

if TYPE_CHECKING:
    import redis.asyncio as redis

    from .config import KeysConfig


class DedupTracker:
    """URL 去重追踪器。

    Attributes:
        redis: Redis异步客户端实例
        discovered_key: 已发现集合的键名
        visited_key: 已访问有序集合的键名
    """

    def __init__(self, redis_client: redis.Redis, keys: KeysConfig):
        self.redis = redis_client
        self.discovered_key = keys.discovered
        self.visited_key = keys.visited

    async def mark_discovered(self, url: str) -> bool:
        """将 URL 加入已发现集合。

        Returns:
            bool: URL 此前是否不在集合中。重复插入不会报错。
        """
        try:
            added = await self.redis.sadd(self.discovered_key, url)  # type: ignore[misc]
        except RedisError as e:
            raise QueueError("mark_discovered", self.discovered_key, str(e)) from e
        return bool(added)

    async def is_discovered(self, url: str) -> bool:
        """检查 URL 是否已在已发现集合中。"""
        try:
            return bool(await self.redis.sismember(self.discovered_key, url))  # type: ignore[misc]
        except RedisError as e:
            raise QueueError("is_discovered", self.discovered_key, str(e)) from e

    async def discovered_count(self) -> int:
        try:
            return int(await self.redis.scard(self.discovered_key))  # type: ignore[misc]
        except RedisError as e:
            raise QueueError("discovered_count", self.discovered_key, str(e)) from e

    async def mark_visited(self, url: str, timestamp: float | None = None) -> None:
        """记录 URL 的访问完成时间。

        同一 URL 再次访问时刷新其时间戳。

        Args:
            url: 已访问的 URL。
            timestamp: Unix 时间戳（秒），默认为当前时间。
        """
        score = time.time() if timestamp is None else timestamp
        try:
            await self.redis.zadd(self.visited_key, {url: score})
        except RedisError as e:
            raise QueueError("mark_visited", self.visited_key, str(e)) from e

    async def visited_between(self, start: float, end: float) -> list[tuple[str, float]]:
        """查询时间范围 [start, end] 内访问过的 URL。

        Returns:
            list[tuple[str, float]]: (url, 时间戳) 列表，按时间戳升序。
        """
        try:
            rows = await self.redis.zrangebyscore(self.visited_key, start, end, withscores=True)
        except RedisError as e:
            raise QueueError("visited_between", self.visited_key, str(e)) from e
        return [(member, float(score)) for member, score in rows]
