"""依赖注入容器模块。

该模块实现了应用程序的依赖注入容器，负责统一管理和初始化
各种外部资源和服务，包括数据库连接、Redis客户端、HTTP 会话等。
所有客户端在启动时创建一次，进程生命周期内只读，退出时关闭。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import aiohttp
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

if TYPE_CHECKING:
    from .config import Config

log = logging.getLogger("container")


class Container:
    """依赖注入容器。

    Attributes:
        config (Config): 应用程序配置对象
        db_engine (AsyncEngine): SQLAlchemy异步数据库引擎
        async_sessionmaker: 异步数据库会话工厂
        redis_client (redis.Redis): Redis异步客户端
        http_session (aiohttp.ClientSession): 页面抓取使用的 HTTP 会话
    """

    def __init__(self, config: Config):
        """初始化容器。

        Args:
            config: 应用程序的配置对象。
        """
        self.config = config

        self.db_engine: AsyncEngine | None = None
        self.async_sessionmaker: async_sessionmaker[AsyncSession] | None = None
        self.redis_client: redis.Redis | None = None
        self.http_session: aiohttp.ClientSession | None = None

    async def setup(self):
        """异步初始化容器资源。

        依次初始化以下资源：
        1. 数据库异步引擎和会话工厂
        2. Redis异步客户端连接（PING 校验可达）
        3. aiohttp 会话

        启动阶段的连接失败是致命的：会调用teardown()清理已初始化的资源并重新抛出异常。

        Raises:
            Exception: 当资源初始化失败时抛出异常。
        """
        log.info("Initializing container resources...")
        try:
            self.db_engine = create_async_engine(self.config.database_url, echo=self.config.database_echo)
            self.async_sessionmaker = async_sessionmaker(
                bind=self.db_engine, class_=AsyncSession, expire_on_commit=False
            )
            log.info("Database AsyncEngine created.")

            self.redis_client = redis.from_url(self.config.redis_url, decode_responses=True)
            await self.redis_client.ping()  # type: ignore
            log.info("Redis client connected successfully.")

            fetcher_config = self.config.fetcher_config
            self.http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=fetcher_config.timeout_seconds),
                headers={"User-Agent": fetcher_config.user_agent},
            )
            log.info("HTTP session opened.")

            log.info("Container resources initialized successfully.")

        except Exception as e:
            log.exception(f"Failed to initialize container resources: {e}")
            await self.teardown()
            raise

    async def teardown(self):
        """异步关闭并清理所有资源。

        按相反顺序安全关闭所有已初始化的资源，该方法是幂等的，可以安全地多次调用。
        """
        log.info("Tearing down container resources...")

        if self.http_session:
            await self.http_session.close()
            self.http_session = None
            log.info("HTTP session closed.")
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            log.info("Redis client closed.")
        if self.db_engine:
            await self.db_engine.dispose()
            self.db_engine = None
            log.info("Database AsyncEngine disposed.")

        log.info("Container resources torn down successfully.")
