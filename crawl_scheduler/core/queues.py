"""工作队列模块。

两条 Redis 列表：
- 就绪队列：等待提升的任务快照 (JSON)
- Worker 队列：等待执行的任务 id

生产者从左侧 LPUSH，消费者从右侧取出，右端即队首（最早入队）。
Worker 队列的领取是原子的 "队首移到队尾"：条目不会被删除，
没有新任务时同一个 id 会一直循环，Worker 每轮都会重新检查任务状态。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from .errors import QueueError, TaskPayloadError

if TYPE_CHECKING:
    import redis.asyncio as redis

    from .config import KeysConfig


class WorkQueues:
    """就绪队列与 Worker 队列。

    Attributes:
        redis: Redis异步客户端实例
        ready_key: 就绪队列键名
        worker_key: Worker 队列键名
    """

    def __init__(self, redis_client: redis.Redis, keys: KeysConfig):
        self.redis = redis_client
        self.ready_key = keys.ready_queue
        self.worker_key = keys.worker_queue

    async def push_ready(self, payload: str) -> None:
        """将序列化的任务快照放入就绪队列尾部。"""
        try:
            await self.redis.lpush(self.ready_key, payload)  # type: ignore[misc]
        except RedisError as e:
            raise QueueError("push_ready", self.ready_key, str(e)) from e

    async def pop_ready(self) -> str | None:
        """从就绪队列队首取出一个任务快照。

        Returns:
            str | None: 任务快照，队列为空时返回 None（正常情况，不是错误）。
        """
        try:
            return await self.redis.rpop(self.ready_key)  # type: ignore[misc]
        except RedisError as e:
            raise QueueError("pop_ready", self.ready_key, str(e)) from e

    async def requeue_ready(self, payload: str) -> None:
        """将任务快照放回就绪队列队首 (RPUSH)，下一次 pop_ready 会先取到它。"""
        try:
            await self.redis.rpush(self.ready_key, payload)  # type: ignore[misc]
        except RedisError as e:
            raise QueueError("requeue_ready", self.ready_key, str(e)) from e

    async def push_worker(self, task_id: int) -> None:
        """将任务 id 放入 Worker 队列尾部。"""
        try:
            await self.redis.lpush(self.worker_key, str(task_id))  # type: ignore[misc]
        except RedisError as e:
            raise QueueError("push_worker", self.worker_key, str(e)) from e

    async def claim_worker_rotate(self) -> int | None:
        """原子地将 Worker 队列队首的 id 移到队尾并返回。

        条目始终保留在队列中，调用方无需确认。

        Returns:
            int | None: 任务 id，队列为空时返回 None。

        Raises:
            QueueError: Redis 不可用。
            TaskPayloadError: 队列条目不是整数 id（条目已被移到队尾）。
        """
        try:
            raw = await self.redis.lmove(self.worker_key, self.worker_key, "RIGHT", "LEFT")  # type: ignore[misc]
        except RedisError as e:
            raise QueueError("claim_worker_rotate", self.worker_key, str(e)) from e

        if raw is None:
            return None
        try:
            return int(raw)
        except (TypeError, ValueError) as e:
            raise TaskPayloadError(f"invalid task id in worker queue: {raw!r}") from e

    async def worker_contains(self, task_id: int) -> bool:
        """检查任务 id 是否已在 Worker 队列中 (LPOS)。"""
        try:
            position = await self.redis.lpos(self.worker_key, str(task_id))  # type: ignore[misc]
        except RedisError as e:
            raise QueueError("worker_contains", self.worker_key, str(e)) from e
        return position is not None

    async def ready_size(self) -> int:
        try:
            return int(await self.redis.llen(self.ready_key))  # type: ignore[misc]
        except RedisError as e:
            raise QueueError("ready_size", self.ready_key, str(e)) from e

    async def worker_size(self) -> int:
        try:
            return int(await self.redis.llen(self.worker_key))  # type: ignore[misc]
        except RedisError as e:
            raise QueueError("worker_size", self.worker_key, str(e)) from e
