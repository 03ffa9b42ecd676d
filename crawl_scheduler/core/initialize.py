"""项目初始化模块。

该模块包含应用程序启动时需要执行的初始化任务：
加载配置、连接外部服务、建表，以及注册配置文件中定义的周期任务。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .config import Config
from .container import Container
from .errors import SeedExistsError
from .models import Base

if TYPE_CHECKING:
    from ..crawler.service import TaskService
    from .config import TaskDefinition
    from .models import CrawlTask

log = logging.getLogger("initialize")


async def initialize_application(config: Config | None = None) -> Container:
    """初始化整个应用程序。

    1. 加载配置。
    2. 创建并设置依赖注入容器（连接失败是致命的）。
    3. 创建数据库表。

    Returns:
        Container: 初始化完成的容器实例。
    """
    log.info("Initializing application...")

    app_config = config or Config()

    container = Container(config=app_config)
    await container.setup()

    try:
        await create_tables(container)
    except Exception:
        await container.teardown()
        raise

    log.info("Application initialized successfully.")
    return container


async def create_tables(container: Container) -> None:
    """使用 Base.metadata.create_all 创建所有模型表。"""
    log.info("Initializing database tables...")

    if not container.db_engine:
        raise RuntimeError("Container is not set up properly.")

    try:
        async with container.db_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        log.exception(f"Failed to create database tables: {e}")
        raise

    log.info("Database tables created successfully.")


async def register_configured_tasks(service: TaskService, definitions: list[TaskDefinition]) -> list[CrawlTask]:
    """注册配置文件中的周期任务。

    种子已存在（例如进程重启）时复用已有任务并重新挂载触发器。
    新任务的快照会放入就绪队列；已有任务只有在 Worker 队列中找不到其 id 时才重新入队，
    避免重启后同一 id 在 Worker 队列中重复。autostart 的任务会被设置为 running。

    Returns:
        list[CrawlTask]: 已注册的任务。
    """
    tasks: list[CrawlTask] = []

    for definition in definitions:
        try:
            task = await service.schedule_task(
                definition.name, definition.url, definition.priority, definition.interval_seconds
            )
        except SeedExistsError:
            existing = await service.datastore.get_task_by_url(definition.url)
            if existing is None:
                log.warning(f"Seed {definition.url} exists but no task references it; skipping.")
                continue
            log.info(f"Task for {definition.url} already exists (id={existing.id}); re-attaching trigger.")
            service.attach_trigger(existing, definition.interval_seconds)
            task = existing

            if await service.queues.worker_contains(task.id):
                log.info(f"Task id={task.id} is already in the worker queue; not enqueued again.")
            else:
                await service.enqueue_task(task)
        else:
            await service.enqueue_task(task)

        if definition.autostart:
            task = await service.start_task(task)
        tasks.append(task)

    log.info(f"Registered tasks: {[t.name for t in tasks]}")
    return tasks
