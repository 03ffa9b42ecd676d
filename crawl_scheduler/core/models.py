"""持久化 ORM 模型。

定义调度器使用的三张表：爬虫任务、种子以及全局去重 URL 记录。
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import DateTime, Enum, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def now_utc() -> datetime:
    """返回带时区的当前 UTC 时间。"""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class TaskStatus(StrEnum):
    """爬虫任务状态。"""

    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class TimestampMixin:
    """创建 / 更新时间字段。"""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc
    )


class CrawlTask(TimestampMixin, Base):
    """爬虫任务。

    状态只能通过 start / pause / stop 显式修改，Worker 每次执行前都会重新读取。

    Attributes:
        id: 自增主键
        name: 任务名称
        url: 任务的目标 URL
        status: 任务状态，默认 stopped
    """

    __tablename__ = "crawl_task"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    status: Mapped[TaskStatus] = mapped_column(
        Enum(
            TaskStatus,
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=TaskStatus.STOPPED,
    )

    def __repr__(self) -> str:
        return f"CrawlTask(id={self.id!r}, name={self.name!r}, url={self.url!r}, status={self.status!r})"


class Seed(TimestampMixin, Base):
    """任务创建时写入的种子 URL，写入后不再修改。"""

    __tablename__ = "seed"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(String(2048), nullable=False, unique=True)


class UrlRecord(TimestampMixin, Base):
    """全局去重后的 URL 记录，作为 Redis 去重集合的持久化审计轨迹。"""

    __tablename__ = "url_record"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(String(2048), nullable=False, unique=True)
