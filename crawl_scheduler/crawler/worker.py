"""工作器模块。

Worker 是进程内唯一的消费循环，每轮：
1. 原子地领取 Worker 队列队首的任务 id（id 被移到队尾，不会丢失）
2. 从数据库重新读取任务
3. 只有任务状态为 running 时才同步执行爬取步骤

可恢复的错误只记录日志，循环不会因此退出。
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from ..core.metrics import WORKER_ITERATIONS
from ..core.models import TaskStatus

if TYPE_CHECKING:
    from ..core.datastore import DataStore
    from ..core.queues import WorkQueues
    from .spider import Spider


class WorkerOutcome(StrEnum):
    """单轮循环的结果。"""

    IDLE = "idle"  # Worker 队列为空
    ERROR = "error"  # 领取、读取或爬取失败
    MISSING = "missing"  # 任务不存在
    SKIPPED = "skipped"  # 任务不是 running 状态
    CRAWLED = "crawled"


class Worker:
    """工作器类，负责消费 Worker 队列中的任务 id。

    Attributes:
        queues: 工作队列。
        datastore: 数据存储层实例。
        spider: 爬取步骤执行器。
        backoff_seconds: 非爬取轮次之后的固定等待时间。
        log: 日志记录器。
    """

    def __init__(
        self,
        queues: WorkQueues,
        datastore: DataStore,
        spider: Spider,
        backoff_seconds: float = 1.0,
        worker_id: int = 0,
    ):
        self.queues = queues
        self.datastore = datastore
        self.spider = spider
        self.backoff_seconds = backoff_seconds
        self.log = logging.getLogger(f"Worker-{worker_id}")

    async def run(self):
        """工作器主循环。

        除 CRAWLED 之外的每一轮结束后固定等待 backoff_seconds，
        这是队列为空或出错时唯一的节流手段。收到 CancelledError 时正常退出。
        """
        self.log.info("Starting...")

        while True:
            try:
                outcome = await self.run_once()
                if outcome is not WorkerOutcome.CRAWLED:
                    await asyncio.sleep(self.backoff_seconds)

            except asyncio.CancelledError:
                self.log.info("Cancelled. Exiting.")
                break
            except Exception as e:
                self.log.exception(f"An unexpected error occurred in worker loop: {e}")
                await asyncio.sleep(self.backoff_seconds)

    async def run_once(self) -> WorkerOutcome:
        """执行一轮领取 → 读取 → 状态检查 → 爬取。"""
        outcome = await self._iterate()
        WORKER_ITERATIONS.labels(outcome=outcome.value).inc()
        return outcome

    async def _iterate(self) -> WorkerOutcome:
        try:
            task_id = await self.queues.claim_worker_rotate()
        except Exception as e:
            self.log.error(f"claim_worker_rotate failed: {e}")
            return WorkerOutcome.ERROR

        if task_id is None:
            return WorkerOutcome.IDLE

        try:
            task = await self.datastore.load_task(task_id)
        except Exception as e:
            self.log.error(f"load_task failed for task id={task_id}: {e}")
            return WorkerOutcome.ERROR

        if task is None:
            self.log.warning(f"Task id={task_id} not found; leaving it in the worker queue.")
            return WorkerOutcome.MISSING

        if task.status != TaskStatus.RUNNING:
            self.log.debug(f"Task id={task_id} is {task.status}; skipped.")
            return WorkerOutcome.SKIPPED

        try:
            await self.spider.crawl(task.url)
        except Exception as e:
            self.log.exception(f"Crawl step failed for task id={task_id} url={task.url}: {e}")
            return WorkerOutcome.ERROR

        return WorkerOutcome.CRAWLED
