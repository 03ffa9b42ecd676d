"""WorkQueues / DedupTracker 单元测试。"""

from collections import Counter

import pytest

from crawl_scheduler.core.errors import QueueError, TaskPayloadError

# ==================== 就绪队列 ====================


@pytest.mark.asyncio
async def test_pop_ready_returns_oldest_first(queues):
    await queues.push_ready("a")
    await queues.push_ready("b")

    assert await queues.pop_ready() == "a"
    assert await queues.pop_ready() == "b"


@pytest.mark.asyncio
async def test_pop_ready_empty_is_not_an_error(queues):
    assert await queues.pop_ready() is None


# ==================== Worker 队列 ====================


@pytest.mark.asyncio
async def test_claim_empty_worker_queue_returns_none(queues):
    assert await queues.claim_worker_rotate() is None


@pytest.mark.asyncio
async def test_claim_rotates_head_to_tail(queues):
    for task_id in (1, 2, 3):
        await queues.push_worker(task_id)

    claimed = [await queues.claim_worker_rotate() for _ in range(7)]

    assert claimed == [1, 2, 3, 1, 2, 3, 1]


@pytest.mark.asyncio
async def test_single_id_cycles_indefinitely(queues):
    """没有新任务时，同一个 id 会被反复领取。"""
    await queues.push_worker(9)

    assert [await queues.claim_worker_rotate() for _ in range(5)] == [9] * 5
    assert await queues.worker_size() == 1


@pytest.mark.asyncio
async def test_claim_preserves_queue_membership(queues, dummy_redis, keys):
    for task_id in (5, 1, 5, 7):
        await queues.push_worker(task_id)
    before = Counter(dummy_redis.lists[keys.worker_queue])

    for _ in range(11):
        await queues.claim_worker_rotate()

    assert Counter(dummy_redis.lists[keys.worker_queue]) == before


@pytest.mark.asyncio
async def test_claim_invalid_id_raises_and_keeps_entry(queues, dummy_redis, keys):
    await dummy_redis.lpush(keys.worker_queue, "not-an-id")

    with pytest.raises(TaskPayloadError):
        await queues.claim_worker_rotate()

    assert dummy_redis.lists[keys.worker_queue] == ["not-an-id"]


@pytest.mark.asyncio
async def test_queue_connection_failure_raises_queue_error(queues, dummy_redis):
    dummy_redis.fail = True

    with pytest.raises(QueueError) as exc_info:
        await queues.claim_worker_rotate()

    assert exc_info.value.operation == "claim_worker_rotate"
    assert exc_info.value.key == "worker"


@pytest.mark.asyncio
async def test_queue_sizes(queues):
    await queues.push_ready("x")
    await queues.push_worker(1)
    await queues.push_worker(2)

    assert await queues.ready_size() == 1
    assert await queues.worker_size() == 2


# ==================== 去重追踪 ====================


@pytest.mark.asyncio
async def test_mark_discovered_is_idempotent(tracker):
    assert await tracker.mark_discovered("http://a") is True
    assert await tracker.mark_discovered("http://a") is False

    assert await tracker.is_discovered("http://a")
    assert not await tracker.is_discovered("http://b")
    assert await tracker.discovered_count() == 1


@pytest.mark.asyncio
async def test_visited_between_orders_by_timestamp(tracker):
    await tracker.mark_visited("http://late", 300.0)
    await tracker.mark_visited("http://early", 100.0)
    await tracker.mark_visited("http://middle", 200.0)

    assert await tracker.visited_between(100.0, 250.0) == [("http://early", 100.0), ("http://middle", 200.0)]


@pytest.mark.asyncio
async def test_revisit_refreshes_timestamp(tracker):
    await tracker.mark_visited("http://a", 100.0)
    await tracker.mark_visited("http://a", 500.0)

    assert await tracker.visited_between(0, 1000) == [("http://a", 500.0)]


@pytest.mark.asyncio
async def test_mark_visited_defaults_to_now(tracker, monkeypatch):
    monkeypatch.setattr("crawl_scheduler.core.tracker.time.time", lambda: 1234.5)

    await tracker.mark_visited("http://a")

    assert await tracker.visited_between(1234, 1235) == [("http://a", 1234.5)]


@pytest.mark.asyncio
async def test_tracker_connection_failure(tracker, dummy_redis):
    dummy_redis.fail = True

    with pytest.raises(QueueError):
        await tracker.mark_discovered("http://a")


@pytest.mark.asyncio
async def test_worker_contains(queues):
    await queues.push_worker(4)

    assert await queues.worker_contains(4)
    assert not await queues.worker_contains(5)


@pytest.mark.asyncio
async def test_requeue_ready_returns_entry_to_head(queues):
    await queues.push_ready("a")
    await queues.push_ready("b")
    first = await queues.pop_ready()

    await queues.requeue_ready(first)

    assert await queues.pop_ready() == "a"
    assert await queues.pop_ready() == "b"
