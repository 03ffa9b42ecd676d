"""统一日志配置模块。

提供 setup_logging() 以在应用启动时一次性配置全局日志。
- LOG_LEVEL: 日志级别（默认 INFO）
- LOG_FILE: 额外写入的日志文件路径（按大小轮转），未设置时只输出到 stderr
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%m-%d %H:%M:%S"

# 第三方库日志最低只输出 WARNING
QUIET_LOGGERS = ("aiohttp", "asyncio", "sqlalchemy.engine")


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    return logging.getLevelNamesMapping().get(level.upper(), logging.INFO)


def setup_logging(level: int | str | None = None, log_file: str | None = None) -> None:
    """配置全局日志输出。

    重复调用会先移除根日志器上已有的 handler。

    Args:
        level: 日志级别，int 或名称。若未提供，则读取环境变量 LOG_LEVEL，默认 INFO。
        log_file: 日志文件路径。若未提供，则读取环境变量 LOG_FILE。
    """
    resolved_level = _resolve_level(level)
    log_file = log_file or os.getenv("LOG_FILE")

    root_logger = logging.getLogger()
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)
        h.close()

    root_logger.setLevel(resolved_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(stream=sys.stderr)]
    if log_file:
        handlers.append(RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(resolved_level)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved_level, logging.WARNING))
