"""周期调度器模块。

每个注册的触发器拥有一个独立的定时循环（asyncio.Task），按固定间隔触发。
每次触发都在新的 asyncio.Task 中执行，耗时较长的触发不会推迟下一次触发，
因此触发器本身必须是可重入的。触发器抛出的异常只记录日志，定时器不会因此停止。
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import TYPE_CHECKING

from ..core.metrics import TRIGGER_ERRORS

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    Trigger = Callable[[], Awaitable[object]]

log = logging.getLogger("scheduler")


class PeriodicScheduler:
    """周期调度器。

    定时器注册后一直处于 armed 状态，直到 shutdown() 在进程退出时统一取消。
    暂停任务由 Worker 的状态检查完成，而不是撤销定时器。

    Attributes:
        _timers: 触发器名 → 定时循环任务
        _inflight: 正在执行的触发任务
        _fires: 每个触发器的累计触发次数
    """

    def __init__(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
        self._sleep = sleep
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._inflight: set[asyncio.Task[None]] = set()
        self._fires: Counter[str] = Counter()

    @property
    def registered(self) -> list[str]:
        """已注册的触发器名称。"""
        return list(self._timers)

    def fire_count(self, name: str) -> int:
        return self._fires[name]

    def register(self, interval_seconds: float, trigger: Trigger, *, name: str | None = None) -> str:
        """注册一个按固定间隔重复执行的触发器。

        第一次触发发生在注册后的一个间隔之后。

        Args:
            interval_seconds: 触发间隔（秒），必须大于 0。
            trigger: 无参数的异步触发函数。
            name: 触发器名称，默认自动生成。

        Returns:
            str: 触发器名称。

        Raises:
            ValueError: 间隔不合法或名称重复。
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than 0")

        name = name or f"trigger-{len(self._timers) + 1}"
        if name in self._timers:
            raise ValueError(f"Trigger already registered: {name}")

        self._timers[name] = asyncio.create_task(self._run_timer(name, interval_seconds, trigger), name=name)
        log.info(f"Registered trigger {name} every {interval_seconds}s.")
        return name

    async def _run_timer(self, name: str, interval: float, trigger: Trigger) -> None:
        loop = asyncio.get_running_loop()
        expected_wake_time = loop.time() + interval

        while True:
            await self._sleep(max(0.0, expected_wake_time - loop.time()))
            expected_wake_time += interval
            if expected_wake_time < loop.time():
                # 错过的触发不补发
                expected_wake_time = loop.time() + interval

            self._fires[name] += 1
            firing = asyncio.create_task(self._fire(name, trigger), name=f"{name}-fire-{self._fires[name]}")
            self._inflight.add(firing)
            firing.add_done_callback(self._inflight.discard)

    async def _fire(self, name: str, trigger: Trigger) -> None:
        try:
            await trigger()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            TRIGGER_ERRORS.labels(trigger=name).inc()
            log.exception(f"Trigger {name} failed: {e}")

    async def drain(self) -> None:
        """等待当前正在执行的触发完成。"""
        while pending := [t for t in self._inflight if not t.done()]:
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """取消全部定时器以及正在执行的触发。"""
        tasks = [*self._timers.values(), *self._inflight]
        for t in tasks:
            if not t.done():
                t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._timers.clear()
        self._inflight.clear()
        log.info("Periodic scheduler shut down.")
