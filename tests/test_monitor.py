"""系统监控模块测试。"""

import asyncio
from types import SimpleNamespace
from typing import Any, cast

import pytest

from crawl_scheduler.core import monitor as monitor_module
from crawl_scheduler.core.monitor import SystemMonitor


class _DummyPool:
    def size(self):
        return 10

    def checkedin(self):
        return 7

    def checkedout(self):
        return 3

    def overflow(self):
        return 1


class _MetricHandle:
    def __init__(self, calls: list, label: str):
        self.calls = calls
        self.label = label

    def set(self, value: float):
        self.calls.append((self.label, value))


class _LabeledMetric:
    def __init__(self):
        self.calls: list[tuple[str, float]] = []

    def labels(self, **kwargs):
        (label,) = kwargs.values()
        return _MetricHandle(self.calls, label)


class _Log:
    def __init__(self):
        self.warnings: list[str] = []

    def warning(self, msg, *_):
        self.warnings.append(msg)

    def info(self, *_):
        pass

    def exception(self, *_):
        pass


def test_monitor_interval_must_be_positive():
    """interval 必须为正数。"""
    container = cast("Any", SimpleNamespace(db_engine=None))

    with pytest.raises(ValueError, match="interval must be greater than 0"):
        SystemMonitor(container=container, interval=0)


def test_collect_db_pool_stats_sets_metrics(monkeypatch):
    metric = _LabeledMetric()
    monkeypatch.setattr(monitor_module, "DB_POOL_STATS", metric)

    container = cast("Any", SimpleNamespace(db_engine=SimpleNamespace(pool=_DummyPool())))
    SystemMonitor(container=container)._collect_db_pool_stats()

    assert metric.calls == [("capacity", 10.0), ("available", 7.0), ("acquired", 3.0), ("overflow", 1.0)]


def test_collect_db_pool_stats_partial_failure_logs_once(monkeypatch):
    """单个指标采集失败不阻断其他指标，warning 只记录一次。"""

    class _PartiallyBrokenPool(_DummyPool):
        def size(self):
            raise RuntimeError("boom")

    metric = _LabeledMetric()
    fake_log = _Log()
    monkeypatch.setattr(monitor_module, "DB_POOL_STATS", metric)
    monkeypatch.setattr(monitor_module, "log", fake_log)

    container = cast("Any", SimpleNamespace(db_engine=SimpleNamespace(pool=_PartiallyBrokenPool())))
    monitor = SystemMonitor(container=container)

    monitor._collect_db_pool_stats()
    monitor._collect_db_pool_stats()

    assert len(fake_log.warnings) == 1
    assert ("available", 7.0) in metric.calls
    assert ("capacity", 10.0) not in metric.calls


@pytest.mark.asyncio
async def test_collect_queue_stats(monkeypatch, queues, tracker):
    queue_metric = _LabeledMetric()
    set_sizes: list[float] = []
    monkeypatch.setattr(monitor_module, "QUEUE_SIZE", queue_metric)
    monkeypatch.setattr(monitor_module, "DISCOVERED_SET_SIZE", SimpleNamespace(set=set_sizes.append))

    await queues.push_ready("{}")
    await queues.push_worker(1)
    await queues.push_worker(2)
    await tracker.mark_discovered("http://a")

    container = cast("Any", SimpleNamespace(db_engine=None))
    await SystemMonitor(container=container, queues=queues, tracker=tracker)._collect_queue_stats()

    assert queue_metric.calls == [("ready", 1), ("worker", 2)]
    assert set_sizes == [1]


@pytest.mark.asyncio
async def test_collect_queue_stats_failure_logs_once(monkeypatch, queues, dummy_redis):
    fake_log = _Log()
    monkeypatch.setattr(monitor_module, "log", fake_log)
    dummy_redis.fail = True

    container = cast("Any", SimpleNamespace(db_engine=None))
    monitor = SystemMonitor(container=container, queues=queues)

    await monitor._collect_queue_stats()
    await monitor._collect_queue_stats()

    assert len(fake_log.warnings) == 1


@pytest.mark.asyncio
async def test_monitor_run_can_be_cancelled(monkeypatch):
    """run 循环应能被取消并正常退出。"""
    lag_values: list[float] = []
    monkeypatch.setattr(monitor_module, "EVENT_LOOP_LAG", SimpleNamespace(observe=lag_values.append))

    container = cast("Any", SimpleNamespace(db_engine=None))
    monitor = SystemMonitor(container=container, interval=0.01)

    task = asyncio.create_task(monitor.run())
    await asyncio.sleep(0.05)
    task.cancel()

    await task
    assert task.done()
    assert lag_values, "Expected EVENT_LOOP_LAG to be observed at least once"
