"""任务服务模块。

提供任务的调度入口和状态控制：
- schedule_task: 写入种子和任务，并注册周期提升触发器
- start_task / pause_task / stop_task: 显式修改并持久化任务状态
- enqueue_task: 将任务快照放入就绪队列
- promote_once: 触发器逻辑，从就绪队列取出一个快照并把任务 id 推入 Worker 队列
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..core.errors import QueueError, TaskPayloadError
from ..core.metrics import PROMOTIONS
from ..core.models import TaskStatus
from .tasks import TaskPayload

if TYPE_CHECKING:
    from ..core.datastore import DataStore
    from ..core.models import CrawlTask
    from ..core.queues import WorkQueues
    from .scheduler import PeriodicScheduler

log = logging.getLogger("service")


class TaskService:
    """任务服务。

    Attributes:
        datastore: 数据存储层实例。
        queues: 工作队列。
        scheduler: 周期调度器。
    """

    def __init__(self, datastore: DataStore, queues: WorkQueues, scheduler: PeriodicScheduler):
        self.datastore = datastore
        self.queues = queues
        self.scheduler = scheduler

    async def schedule_task(self, name: str, url: str, priority: int, interval_seconds: int) -> CrawlTask:
        """创建新的周期任务。

        写入种子和 stopped 状态的任务，然后注册按 interval_seconds 触发的提升触发器。
        priority 只做校验和记录，不参与提升和领取的顺序。

        Args:
            name: 任务名称。
            url: 种子 URL，全局唯一。
            priority: 任务优先级。
            interval_seconds: 触发间隔（秒）。

        Returns:
            CrawlTask: 新创建的任务。

        Raises:
            SeedExistsError: 种子 URL 已存在，此时不会注册触发器。
            ValueError: 参数不合法。
        """
        if not isinstance(priority, int):
            raise ValueError(f"priority must be an int, got {priority!r}")
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than 0")

        task = await self.datastore.schedule_records(name, url)
        log.info(f"Scheduled task id={task.id} name={name!r} url={url} priority={priority}")

        self.attach_trigger(task, interval_seconds)
        return task

    def attach_trigger(self, task: CrawlTask, interval_seconds: int) -> str:
        """为已有任务注册提升触发器。"""
        return self.scheduler.register(interval_seconds, self.promote_once, name=f"promote-task-{task.id}")

    async def start_task(self, task: CrawlTask) -> CrawlTask:
        return await self._set_status(task, TaskStatus.RUNNING)

    async def pause_task(self, task: CrawlTask) -> CrawlTask:
        return await self._set_status(task, TaskStatus.PAUSED)

    async def stop_task(self, task: CrawlTask) -> CrawlTask:
        return await self._set_status(task, TaskStatus.STOPPED)

    async def _set_status(self, task: CrawlTask, status: TaskStatus) -> CrawlTask:
        previous = task.status
        task.status = status
        try:
            saved = await self.datastore.save_task(task)
        except Exception:
            task.status = previous
            raise
        log.info(f"Task id={task.id} status {previous} -> {status}")
        return saved

    async def enqueue_task(self, task: CrawlTask) -> None:
        """将任务快照序列化后放入就绪队列。"""
        payload = TaskPayload.from_task(task)
        await self.queues.push_ready(payload.to_json())
        log.debug(f"Enqueued task id={task.id} to ready queue.")

    async def promote_once(self) -> int | None:
        """从就绪队列提升一个任务到 Worker 队列。

        就绪队列为空、快照无法解析或 Redis 出错时只记录日志并跳过本次触发。
        无法解析的快照已被取出，会被丢弃；推入 Worker 队列失败的快照会被放回就绪队列队首。

        Returns:
            int | None: 被提升的任务 id，跳过时返回 None。
        """
        try:
            raw = await self.queues.pop_ready()
        except QueueError as e:
            PROMOTIONS.labels(status="error").inc()
            log.error(f"Promotion skipped, pop_ready failed: {e}")
            return None

        if raw is None:
            PROMOTIONS.labels(status="empty").inc()
            log.debug("Ready queue is empty. Nothing to promote.")
            return None

        try:
            payload = TaskPayload.from_json(raw)
        except TaskPayloadError as e:
            PROMOTIONS.labels(status="invalid").inc()
            log.error(f"Dropping undecodable ready queue entry: {e}")
            return None

        try:
            await self.queues.push_worker(payload.id)
        except QueueError as e:
            PROMOTIONS.labels(status="error").inc()
            log.error(f"Promotion of task id={payload.id} failed: {e}")
            await self._restore_ready(raw)
            return None

        PROMOTIONS.labels(status="promoted").inc()
        log.debug(f"Promoted task id={payload.id} to worker queue.")
        return payload.id

    async def _restore_ready(self, raw: str) -> None:
        """把已取出但未能提升的快照放回就绪队列队首。"""
        try:
            await self.queues.requeue_ready(raw)
        except QueueError as e:
            log.error(f"Ready queue entry lost, requeue failed: {e}; payload={raw!r}")
            return
        log.info("Ready queue entry restored to the head of the queue.")
