"""apps/gateway 测试配置 -- ASGITransport 客户端 + 预置项目与密钥

测试绕过 lifespan，直接把 Store / GitHub 配置挂到 app.state。
"""

import json
from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from beehive.core.models import KeyRole
from beehive.core.store import TaskStore
from beehive.github import GitHubClient, GitHubConfig, compute_signature
from httpx import ASGITransport, AsyncClient

PROJECT = "demo"
WEBHOOK_SECRET = "s3cret"
PR_URL = "https://github.com/acme/widgets/pull/7"


@pytest.fixture
def store_backend() -> str:
    """网关测试只使用 SQLite 后端"""
    return "sqlite"


@pytest.fixture
def github_config() -> GitHubConfig:
    return GitHubConfig(webhook_secret=WEBHOOK_SECRET)


@pytest_asyncio.fixture
async def app(monkeypatch, store: TaskStore, github_config: GitHubConfig):
    """创建测试用 FastAPI app 实例"""
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")
    monkeypatch.setenv("BEEHIVE_LOG_FORMAT", "dev")

    from beehive.gateway.main import create_app

    application = create_app()
    application.state.store = store
    application.state.github_config = github_config
    application.state.github_client = None
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_key(store: TaskStore) -> str:
    """创建测试项目，返回 bootstrap admin 密钥"""
    _, key = await store.create_project(PROJECT, repo="acme/widgets")
    return key


@pytest.fixture
def admin_headers(admin_key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {admin_key}"}


@pytest_asyncio.fixture
async def bee_headers(store: TaskStore, admin_key: str) -> dict[str, str]:
    key, _ = await store.create_api_key(PROJECT, KeyRole.BEE, label="worker")
    return {"Authorization": f"Bearer {key}"}


@pytest.fixture
def github_responder(app) -> Callable[..., list[httpx.Request]]:
    """为 app 安装基于 MockTransport 的 GitHub 客户端，返回请求记录列表"""

    def install(status_code: int = 200, body: dict | None = None) -> list[httpx.Request]:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(status_code, json=body if body is not None else {})

        app.state.github_client = GitHubClient(
            token="ghp_test",
            transport=httpx.MockTransport(handler),
        )
        return requests

    return install


@pytest.fixture
def signed() -> Callable[[dict, str], tuple[bytes, dict[str, str]]]:
    """构造带签名的 webhook 投递"""

    def build(payload: dict, event: str = "pull_request") -> tuple[bytes, dict[str, str]]:
        body = json.dumps(payload).encode()
        headers = {
            "Content-Type": "application/json",
            "X-GitHub-Event": event,
            "X-Hub-Signature-256": compute_signature(body, WEBHOOK_SECRET),
        }
        return body, headers

    return build


@pytest_asyncio.fixture
async def submitted_task(client: AsyncClient, admin_headers: dict[str, str]) -> dict:
    """创建、认领并提交一个任务，返回提交后的任务"""
    created = await client.post(
        "/tasks",
        json={"project": PROJECT, "description": "Implement login"},
        headers=admin_headers,
    )
    task_id = created.json()["id"]
    await client.post(
        f"/tasks/{task_id}/claim",
        json={"project": PROJECT, "bee": "bee-1"},
        headers=admin_headers,
    )
    response = await client.post(
        f"/tasks/{task_id}/submit",
        json={
            "project": PROJECT,
            "pr_url": PR_URL,
            "summary": "Login done",
            "follow_up_tasks": [{"description": "Document login"}],
        },
        headers=admin_headers,
    )
    assert response.status_code == 200
    return response.json()
