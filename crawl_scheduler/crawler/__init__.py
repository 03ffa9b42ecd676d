"""爬虫调度模块包。

包含调度系统的执行组件：
- PeriodicScheduler: 周期触发器
- TaskService: 任务调度入口与状态控制
- Spider: 爬取步骤
- Worker: 消费 Worker 队列并按状态执行爬取
"""

from .scheduler import PeriodicScheduler
from .service import TaskService
from .spider import FetchResult, HttpPageFetcher, PageFetcher, Spider
from .tasks import TaskPayload
from .worker import Worker, WorkerOutcome
