"""错误类型模块。

按照失败来源划分：
- StoreError: 持久化存储不可用或写入失败
- SeedExistsError: 种子 URL 违反唯一约束
- QueueError: Redis 队列 / 集合服务不可用
- TaskPayloadError: 队列中的任务载荷无法解析
"""

from __future__ import annotations


class CrawlSchedulerError(Exception):
    """所有调度错误的基类。"""


class StoreError(CrawlSchedulerError):
    """持久化存储操作失败。

    Attributes:
        operation: 失败的操作名称。
    """

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class SeedExistsError(StoreError):
    """种子 URL 已存在（唯一约束冲突），调用方不应重试。"""

    def __init__(self, url: str):
        self.url = url
        super().__init__("create_seed", f"seed url already exists: {url}")


class QueueError(CrawlSchedulerError):
    """Redis 队列或集合操作失败。"""

    def __init__(self, operation: str, key: str, message: str):
        self.operation = operation
        self.key = key
        super().__init__(f"{operation} on '{key}' failed: {message}")


class TaskPayloadError(ValueError, CrawlSchedulerError):
    """任务载荷格式错误。"""
