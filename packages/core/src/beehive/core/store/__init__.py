"""Beehive Core Store -- 任务存储后端

提供工厂函数按配置打开 SQLite 或 JSON 文档后端，
两者实现同一个 TaskStore 协议。
"""

from pathlib import Path

from ..config import get_db_path, get_hive_path, get_store_backend
from .json_store import HiveDocument, JsonFileTaskStore
from .protocols import TaskStore
from .sqlite_init import init_db, verify_wal_mode
from .sqlite_store import SqliteTaskStore
from .transaction import immediate_transaction


async def open_store(backend: str, path: str | Path) -> TaskStore:
    """打开指定后端的任务存储

    Args:
        backend: "sqlite" 或 "json"
        path: 数据库文件或 JSON 文档路径

    Returns:
        TaskStore 实例
    """
    if backend == "sqlite":
        return await SqliteTaskStore.open(path)
    if backend == "json":
        return JsonFileTaskStore(path)
    raise ValueError(f"Unsupported store backend: {backend!r}")


async def create_store() -> TaskStore:
    """按环境变量配置打开任务存储"""
    backend = get_store_backend()
    path = get_db_path() if backend == "sqlite" else get_hive_path()
    return await open_store(backend, path)


__all__ = [
    "TaskStore",
    "SqliteTaskStore",
    "JsonFileTaskStore",
    "HiveDocument",
    "open_store",
    "create_store",
    "init_db",
    "verify_wal_mode",
    "immediate_transaction",
]
