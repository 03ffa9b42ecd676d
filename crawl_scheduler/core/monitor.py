"""系统监控模块。

后台定期采集调度器的运行指标：
- 事件循环延迟
- 数据库连接池状态
- 就绪队列 / Worker 队列长度与已发现集合大小

采集失败只在首次记录 warning，恢复后重新计数。
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .metrics import DB_POOL_STATS, DISCOVERED_SET_SIZE, EVENT_LOOP_LAG, QUEUE_SIZE

if TYPE_CHECKING:
    from .container import Container
    from .queues import WorkQueues
    from .tracker import DedupTracker

log = logging.getLogger("monitor")

# 指标 state 标签 → 连接池方法名
POOL_STATES = (
    ("capacity", "size"),
    ("available", "checkedin"),
    ("acquired", "checkedout"),
    ("overflow", "overflow"),
)


class SystemMonitor:
    """系统监控器。

    Attributes:
        container: 依赖注入容器，提供数据库引擎。
        queues: 工作队列，为 None 时不采集队列长度。
        tracker: 去重追踪器，为 None 时不采集集合大小。
        interval: 采集间隔（秒）。
    """

    def __init__(
        self,
        container: Container,
        queues: WorkQueues | None = None,
        tracker: DedupTracker | None = None,
        interval: float = 1.0,
    ):
        if interval <= 0:
            raise ValueError("interval must be greater than 0")

        self.container = container
        self.queues = queues
        self.tracker = tracker
        self.interval = interval
        self._warned: set[str] = set()

    def _warn_once(self, source: str, error: Exception) -> None:
        if source not in self._warned:
            log.warning(f"Failed to collect {source} stats: {error}")
            self._warned.add(source)

    def _collect_db_pool_stats(self) -> None:
        engine = self.container.db_engine
        pool = getattr(engine, "pool", None) if engine else None
        if pool is None:
            self._warned.discard("DB pool")
            return

        failed = False
        for state, method in POOL_STATES:
            try:
                value = getattr(pool, method)()
            except Exception as e:
                failed = True
                self._warn_once("DB pool", e)
                continue

            # StaticPool 等实现没有计数，返回值不是数字时跳过
            if isinstance(value, int | float) and not isinstance(value, bool):
                DB_POOL_STATS.labels(state=state).set(float(max(0, value)))

        if not failed:
            self._warned.discard("DB pool")

    async def _collect_queue_stats(self) -> None:
        try:
            if self.queues is not None:
                QUEUE_SIZE.labels(queue="ready").set(await self.queues.ready_size())
                QUEUE_SIZE.labels(queue="worker").set(await self.queues.worker_size())
            if self.tracker is not None:
                DISCOVERED_SET_SIZE.set(await self.tracker.discovered_count())
        except Exception as e:
            self._warn_once("queue", e)
            return

        self._warned.discard("queue")

    async def collect(self) -> None:
        """执行一次完整采集。"""
        self._collect_db_pool_stats()
        await self._collect_queue_stats()

    async def run(self) -> None:
        """监控主循环，按固定节拍采集，被取消时退出。"""
        log.info("System Monitor started.")
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval

        try:
            while True:
                await asyncio.sleep(max(0.0, next_tick - loop.time()))

                woke_at = loop.time()
                EVENT_LOOP_LAG.observe(max(0.0, woke_at - next_tick))
                next_tick = woke_at + self.interval

                try:
                    await self.collect()
                except Exception as e:
                    log.exception(f"Unexpected error in System Monitor loop: {e}")

        except asyncio.CancelledError:
            log.info("System Monitor stopped.")
