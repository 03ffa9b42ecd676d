"""核心模块包。

包含调度系统的核心组件：
- Container: 依赖注入容器，管理所有外部资源
- DataStore: 持久化存储层（任务、种子、URL 记录）
- DedupTracker: 基于 Redis 的 URL 去重与访问记录
- WorkQueues: 就绪队列与 Worker 队列
- initialize: 应用初始化逻辑
"""

from .config import Config
from .container import Container
from .datastore import DataStore
from .errors import CrawlSchedulerError, QueueError, SeedExistsError, StoreError, TaskPayloadError
from .initialize import initialize_application, register_configured_tasks
from .models import CrawlTask, Seed, TaskStatus, UrlRecord
from .queues import WorkQueues
from .tracker import DedupTracker

__all__ = [
    "Config",
    "Container",
    "CrawlSchedulerError",
    "CrawlTask",
    "DataStore",
    "DedupTracker",
    "QueueError",
    "Seed",
    "SeedExistsError",
    "StoreError",
    "TaskPayloadError",
    "TaskStatus",
    "UrlRecord",
    "WorkQueues",
    "initialize_application",
    "register_configured_tasks",
]
