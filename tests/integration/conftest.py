"""集成测试共享 fixture -- 经由 lifespan 按环境变量打开真实存储"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

WEBHOOK_SECRET = "integration-secret"


@pytest_asyncio.fixture
async def hive_env(monkeypatch, store_backend: str, store_path: Path) -> Path:
    """按参数化后端设置存储环境变量"""
    monkeypatch.setenv("BEEHIVE_STORE_BACKEND", store_backend)
    monkeypatch.setenv("BEEHIVE_DB_PATH", str(store_path))
    monkeypatch.setenv("BEEHIVE_HIVE_PATH", str(store_path))
    monkeypatch.setenv("BEEHIVE_GITHUB_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    return store_path


@pytest_asyncio.fixture
async def integration_app(hive_env: Path):
    """集成测试用 FastAPI app（运行完整 lifespan）"""
    from beehive.gateway.main import create_app

    app = create_app()
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def hive(client: AsyncClient) -> dict[str, dict[str, str]]:
    """引导项目并签发 bee 密钥，返回各角色请求头"""
    response = await client.post("/projects", json={"name": "demo", "repo": "acme/widgets"})
    admin = {"Authorization": f"Bearer {response.json()['admin_key']}"}
    response = await client.post(
        "/keys", json={"project": "demo", "role": "bee", "label": "worker"}, headers=admin
    )
    bee = {"Authorization": f"Bearer {response.json()['key']}"}
    return {"admin": admin, "bee": bee}
