"""数据存储层模块。

该模块封装了与关系型数据库的交互逻辑，负责任务、种子和 URL 记录的持久化。
所有写操作在方法返回前提交。
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import SeedExistsError, StoreError
from .models import CrawlTask, Seed, TaskStatus, UrlRecord, now_utc

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .container import Container

log = logging.getLogger("datastore")

# 支持 ON CONFLICT DO NOTHING 的方言
_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class DataStore:
    """数据存储层，负责与数据库交互。

    提供统一的数据访问接口，包括：
    - 任务的创建、读取与保存
    - 种子写入（URL 唯一）
    - 已发现 URL 的持久化记录

    Attributes:
        container (Container): 依赖注入容器
        async_sessionmaker: 异步数据库会话工厂
    """

    def __init__(self, container: Container):
        """初始化数据存储层。

        Args:
            container: 依赖注入容器，提供数据库会话工厂。
        """
        self.container = container
        self.async_sessionmaker = container.async_sessionmaker

    @asynccontextmanager
    async def get_session(self, operation: str):
        """用于获取数据库会话的异步上下文管理器。

        出错时回滚事务；SQLAlchemy 错误统一包装为 StoreError。

        Args:
            operation: 操作名称，用于日志和错误信息。

        Yields:
            AsyncSession: 异步数据库会话对象。

        Raises:
            StoreError: 数据库操作失败。
        """
        if self.async_sessionmaker is None:
            raise StoreError(operation, "datastore is not connected")

        async with self.async_sessionmaker() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                log.error(f"Database operation {operation} failed: {e}")
                raise StoreError(operation, str(e)) from e
            except Exception:
                await session.rollback()
                raise

    async def create_task(self, name: str, url: str) -> CrawlTask:
        """创建一个处于 stopped 状态的新任务。

        Returns:
            CrawlTask: 已分配 id 的任务对象。
        """
        async with self.get_session("create_task") as session:
            task = CrawlTask(name=name, url=url, status=TaskStatus.STOPPED)
            session.add(task)
            await session.commit()
        log.debug(f"Created task id={task.id} name={name!r} url={url}")
        return task

    async def save_task(self, task: CrawlTask) -> CrawlTask:
        """按 id 保存任务（幂等的 upsert）。

        Args:
            task: 任务对象，可以是其他会话中加载的游离对象。

        Returns:
            CrawlTask: 保存后的任务对象。
        """
        async with self.get_session("save_task") as session:
            merged = await session.merge(task)
            await session.commit()
        log.debug(f"Saved task id={merged.id} status={merged.status}")
        return merged

    async def load_task(self, task_id: int) -> CrawlTask | None:
        """按 id 读取任务的当前状态。

        Returns:
            CrawlTask | None: 任务对象，不存在时返回 None。
        """
        async with self.get_session("load_task") as session:
            return await session.get(CrawlTask, task_id)

    async def get_task_by_url(self, url: str) -> CrawlTask | None:
        """按目标 URL 查找最早创建的任务。"""
        async with self.get_session("get_task_by_url") as session:
            statement = select(CrawlTask).where(CrawlTask.url == url).order_by(CrawlTask.id).limit(1)
            result = await session.execute(statement)
            return result.scalar_one_or_none()

    async def create_seed(self, url: str) -> Seed:
        """写入种子 URL。

        Raises:
            SeedExistsError: URL 已存在。
        """
        async with self.get_session("create_seed") as session:
            seed = Seed(url=url)
            session.add(seed)
            try:
                await session.commit()
            except IntegrityError as e:
                raise SeedExistsError(url) from e
        return seed

    async def schedule_records(self, name: str, url: str) -> CrawlTask:
        """在同一个事务中写入种子和任务。

        种子冲突时整个事务回滚，不会留下孤立的任务记录。

        Raises:
            SeedExistsError: 种子 URL 已存在。
        """
        async with self.get_session("schedule_records") as session:
            session.add(Seed(url=url))
            try:
                await session.flush()
            except IntegrityError as e:
                raise SeedExistsError(url) from e

            task = CrawlTask(name=name, url=url, status=TaskStatus.STOPPED)
            session.add(task)
            await session.commit()
        log.debug(f"Scheduled records for task id={task.id} url={url}")
        return task

    async def save_urls(self, urls: Iterable[str]) -> None:
        """将 URL 批量写入去重记录表。

        使用 "INSERT ... ON CONFLICT DO NOTHING"，已存在的 URL 被忽略。
        """
        unique_urls = list(dict.fromkeys(urls))
        if not unique_urls:
            return

        async with self.get_session("save_urls") as session:
            dialect = session.get_bind().dialect.name
            insert = _INSERT_BY_DIALECT.get(dialect)
            if insert is None:
                raise StoreError("save_urls", f"unsupported database dialect: {dialect}")

            now = now_utc()
            rows = [{"url": u, "created_at": now, "updated_at": now} for u in unique_urls]
            statement = insert(UrlRecord).values(rows).on_conflict_do_nothing(index_elements=["url"])
            await session.execute(statement)
            await session.commit()
        log.debug(f"Saved/ignored {len(unique_urls)} url records.")
