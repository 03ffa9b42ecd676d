"""应用程序配置管理模块。

该模块负责从TOML配置文件中加载应用程序的各项配置，
包括数据库连接、Redis连接、队列键名、Worker 退避、页面抓取以及启动时注册的任务。
支持通过环境变量覆盖配置（例如 REDIS__HOST）。
"""

import tomllib
from pathlib import Path
from typing import Any
from urllib.parse import quote_plus, urlparse

from pydantic import (
    BaseModel,
    Field,
    RedisDsn,
    ValidationError,
    computed_field,
    field_validator,
)
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_FILE = Path(__file__).resolve().parent.parent.parent / "config.toml"


class DatabaseConfig(BaseModel):
    """数据库配置模型

    设置 url 时直接使用该连接串（例如 sqlite+aiosqlite:///crawl.db），否则按各字段拼接 PostgreSQL 连接串。
    """

    url: str | None = None
    host: str = "localhost"
    port: int = 5432
    username: str = "admin"
    password: str = "123456"
    db_name: str = "crawl_scheduler"
    echo: bool = False


class RedisConfig(BaseModel):
    """Redis配置模型"""

    host: str = "localhost"
    port: int = 6379
    username: str = ""
    password: str = ""
    db: int = 0


class KeysConfig(BaseModel):
    """Redis 键名配置"""

    discovered: str = "urls"
    visited: str = "visited"
    ready_queue: str = "tasks"
    worker_queue: str = "worker"


class WorkerConfig(BaseModel):
    """Worker 配置模型"""

    backoff_seconds: float = Field(1.0, gt=0)


class FetcherConfig(BaseModel):
    """页面抓取配置模型"""

    timeout_seconds: float = Field(30.0, gt=0)
    user_agent: str = "crawl-scheduler/0.1"
    max_links_per_page: int = Field(500, gt=0)


class MonitorConfig(BaseModel):
    """监控配置模型"""

    enabled: bool = True
    interval_seconds: float = Field(5.0, gt=0)
    metrics_port: int = Field(0, ge=0)


class TaskDefinition(BaseModel):
    """启动时注册的周期任务"""

    name: str = Field(..., min_length=1)
    url: str
    priority: int = 1
    interval_seconds: int = Field(2, gt=0)
    autostart: bool = False

    @field_validator("url")
    @classmethod
    def _check_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"task url must be an absolute http(s) url: {v!r}")
        return v


def _default_tasks() -> list[TaskDefinition]:
    return [TaskDefinition(name="Job1", url="http://www.example.com", priority=1, interval_seconds=2)]


class PydanticConfig(BaseSettings):
    """Pydantic总配置模型"""

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    keys: KeysConfig = Field(default_factory=KeysConfig)
    worker: WorkerConfig = Field(default_factory=lambda: WorkerConfig(backoff_seconds=1.0))
    fetcher: FetcherConfig = Field(
        default_factory=lambda: FetcherConfig(timeout_seconds=30.0, max_links_per_page=500)
    )
    monitor: MonitorConfig = Field(default_factory=lambda: MonitorConfig(interval_seconds=5.0, metrics_port=0))
    tasks: list[TaskDefinition] = Field(default_factory=_default_tasks)

    @field_validator("tasks")
    @classmethod
    def _unique_task_urls(cls, v: list[TaskDefinition]) -> list[TaskDefinition]:
        seen: set[str] = set()
        for task in v:
            if task.url in seen:
                raise ValueError(f"duplicate task url: {task.url!r}")
            seen.add(task.url)
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )

    @computed_field
    @property
    def database_url(self) -> str:
        """生成数据库连接URL"""
        if self.database.url:
            return self.database.url
        return (
            f"postgresql+asyncpg://{quote_plus(self.database.username)}:{quote_plus(self.database.password)}"
            f"@{self.database.host}:{self.database.port}/{self.database.db_name}"
        )

    @computed_field
    @property
    def redis_url(self) -> RedisDsn:
        """生成Redis连接URL，未设置密码时忽略用户名。"""
        auth = ""
        if self.redis.password:
            auth = f"{quote_plus(self.redis.username)}:{quote_plus(self.redis.password)}@"
        return RedisDsn(f"redis://{auth}{self.redis.host}:{self.redis.port}/{self.redis.db}")


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """TOML 配置文件加载源"""

    config_file: Path = CONFIG_FILE

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        raise NotImplementedError

    def __call__(self) -> dict[str, Any]:
        if not self.config_file.exists():
            return {}
        with self.config_file.open("rb") as f:
            return tomllib.load(f)


class Config:
    """应用程序配置类。

    负责加载和管理应用程序的所有配置项，包括：
    - 数据库与Redis连接配置
    - 队列与集合键名
    - Worker 退避与页面抓取参数
    - 启动时注册的周期任务

    Attributes:
        pydantic_config (PydanticConfig): Pydantic应用配置模型
    """

    pydantic_config: PydanticConfig

    def __init__(self, **overrides: Any):
        """初始化配置对象。

        配置加载优先级：
        1. 显式传入的覆盖项
        2. 环境变量 (例如 REDIS__HOST)
        3. config.toml 配置文件

        Raises:
            ValueError: 配置校验失败。
        """
        try:
            self.pydantic_config = PydanticConfig(**overrides)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e}") from e

    @property
    def database_url(self) -> str:
        """获取数据库连接URL。"""
        return self.pydantic_config.database_url

    @property
    def database_echo(self) -> bool:
        return self.pydantic_config.database.echo

    @property
    def redis_url(self) -> str:
        """获取Redis连接URL。"""
        return str(self.pydantic_config.redis_url)

    @property
    def keys(self) -> KeysConfig:
        """获取 Redis 键名配置。"""
        return self.pydantic_config.keys

    @property
    def worker_backoff_seconds(self) -> float:
        """获取 Worker 空闲 / 出错后的固定退避时间（秒）。"""
        return self.pydantic_config.worker.backoff_seconds

    @property
    def fetcher_config(self) -> FetcherConfig:
        return self.pydantic_config.fetcher

    @property
    def monitor_enabled(self) -> bool:
        return self.pydantic_config.monitor.enabled

    @property
    def monitor_interval_seconds(self) -> float:
        return self.pydantic_config.monitor.interval_seconds

    @property
    def metrics_port(self) -> int:
        """获取 Prometheus 指标端口，0 表示不启动。"""
        return self.pydantic_config.monitor.metrics_port

    @property
    def tasks(self) -> list[TaskDefinition]:
        """获取启动时注册的任务定义。"""
        return self.pydantic_config.tasks
