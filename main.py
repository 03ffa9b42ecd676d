"""周期爬虫调度器主入口模块。

启动顺序固定：
1. 连接数据库、Redis，打开 HTTP 会话（失败则进程退出）
2. 注册配置文件中的周期任务（每个任务一个提升触发器）
3. 启动系统监控，进入 Worker 循环直到收到取消信号
"""

import asyncio
import logging
import platform
import sys
from pathlib import Path

from prometheus_client import start_http_server

from crawl_scheduler.core import (
    Config,
    DataStore,
    DedupTracker,
    WorkQueues,
    initialize_application,
    register_configured_tasks,
)
from crawl_scheduler.core.config import TomlConfigSettingsSource
from crawl_scheduler.core.monitor import SystemMonitor
from crawl_scheduler.crawler import HttpPageFetcher, PeriodicScheduler, Spider, TaskService, Worker
from crawl_scheduler.utils import setup_logging

log = logging.getLogger("main")


async def main(config: Config | None = None):
    """统一入口，初始化资源后常驻运行 Worker 循环。"""
    container = await initialize_application(config)
    app_config = container.config

    assert container.redis_client is not None
    assert container.http_session is not None

    datastore = DataStore(container)
    queues = WorkQueues(container.redis_client, app_config.keys)
    tracker = DedupTracker(container.redis_client, app_config.keys)
    scheduler = PeriodicScheduler()
    service = TaskService(datastore, queues, scheduler)

    fetcher = HttpPageFetcher(container.http_session, max_links=app_config.fetcher_config.max_links_per_page)
    spider = Spider(fetcher, tracker, datastore)
    worker = Worker(queues, datastore, spider, backoff_seconds=app_config.worker_backoff_seconds)

    tasks: list[asyncio.Task] = []
    try:
        await register_configured_tasks(service, app_config.tasks)

        if app_config.metrics_port:
            start_http_server(app_config.metrics_port)
            log.info(f"Prometheus metrics exposed on port {app_config.metrics_port}.")

        if app_config.monitor_enabled:
            monitor = SystemMonitor(container, queues, tracker, interval=app_config.monitor_interval_seconds)
            tasks.append(asyncio.create_task(monitor.run(), name="monitor"))

        tasks.append(asyncio.create_task(worker.run(), name="worker"))
        log.info("Crawl scheduler is running.")
        await asyncio.gather(*tasks)

    except asyncio.CancelledError:
        log.info("Received cancellation.")
        raise

    except Exception as e:
        log.exception(f"Application failed to start or run: {e}")
        raise

    finally:
        for t in tasks:
            if not t.done():
                t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        log.info("Shutting down application...")
        await scheduler.shutdown()
        await container.teardown()


def setup_event_loop():
    if platform.system() != "Windows":
        try:
            import uvloop  # type: ignore

            asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

        except ImportError:
            # 非关键依赖，降低为 warning，避免冗长堆栈
            log.warning("uvloop not installed; using default asyncio event loop.")

        except Exception as e:
            log.warning(f"Failed to set up uvloop; using default asyncio event loop. Error: {e}")

    else:
        log.info("Running on Windows, using the default ProactorEventLoop.")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Periodic crawl task scheduler")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml (default: project root).")
    parser.add_argument("--log-level", default=None, help="Log level, overrides the LOG_LEVEL environment variable.")
    args = parser.parse_args()

    setup_logging(args.log_level)
    if args.config is not None:
        TomlConfigSettingsSource.config_file = args.config

    setup_event_loop()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Application stopped by user.")
    except Exception as e:
        log.critical(f"Fatal error, exiting: {e}")
        sys.exit(1)
