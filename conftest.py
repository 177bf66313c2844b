"""全局 pytest 配置 -- 两种存储后端的参数化 fixture

依赖 store 的测试会分别在 SQLite 与 JSON 文档后端上各运行一次。
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path

import pytest
import pytest_asyncio
from beehive.core.store import TaskStore, open_store

STORE_BACKENDS = ("sqlite", "json")
PROJECT = "demo"


@pytest.fixture(params=STORE_BACKENDS)
def store_backend(request) -> str:
    """存储后端名称"""
    return request.param


@pytest.fixture
def store_path(store_backend: str, tmp_path: Path) -> Path:
    """后端数据文件路径"""
    return tmp_path / ("hive.db" if store_backend == "sqlite" else "hive.json")


@pytest_asyncio.fixture
async def store_factory(
    store_backend: str,
    store_path: Path,
) -> AsyncGenerator[Callable[[], Awaitable[TaskStore]], None]:
    """在同一数据文件上打开多个独立 Store 实例（模拟多进程）"""
    opened: list[TaskStore] = []

    async def factory() -> TaskStore:
        instance = await open_store(store_backend, store_path)
        opened.append(instance)
        return instance

    yield factory

    for instance in opened:
        await instance.close()


@pytest_asyncio.fixture
async def store(store_factory) -> TaskStore:
    """已初始化的临时 Store"""
    return await store_factory()


@pytest_asyncio.fixture
async def project(store: TaskStore) -> str:
    """已创建的测试项目名"""
    await store.create_project(PROJECT, repo="acme/widgets")
    return PROJECT
