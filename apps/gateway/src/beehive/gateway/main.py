"""FastAPI 应用主文件

app 创建 + lifespan 管理：存储后端打开/关闭 + GitHub 客户端初始化 + 路由注册。
访问控制作为应用级依赖，对每个匹配到路由的请求检查一次。
"""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from beehive.core.config import get_store_backend
from beehive.core.store import create_store
from beehive.github import GitHubClient, load_github_config
from fastapi import Depends, FastAPI

from .auth import require_access
from .errors import register_error_handlers
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import health, keys, projects, tasks, webhooks

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时打开存储与 GitHub 客户端，关闭时清理"""
    app.state.store = await create_store()

    github_config = load_github_config()
    app.state.github_config = github_config
    if github_config.enabled:
        app.state.github_client = GitHubClient(
            token=github_config.token.get_secret_value(),
            api_base_url=github_config.api_base_url,
            timeout_s=github_config.timeout_s,
            merge_method=github_config.merge_method,
        )
    else:
        app.state.github_client = None

    log.info(
        "gateway_started",
        store_backend=get_store_backend(),
        github_enabled=github_config.enabled,
        webhook_enabled=bool(github_config.webhook_secret.get_secret_value()),
    )

    yield

    if app.state.github_client is not None:
        await app.state.github_client.aclose()
    await app.state.store.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Beehive Gateway",
        version="0.1.0",
        description="Beehive 任务编排 API",
        lifespan=lifespan,
        dependencies=[Depends(require_access)],
    )

    # 注册中间件（顺序：先 Trace 后 Logging，Logging 位于最外层）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()
    setup_logfire(app)

    register_error_handlers(app)

    # 注册路由
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(projects.router, tags=["projects"])
    app.include_router(keys.router, tags=["keys"])
    app.include_router(webhooks.router, tags=["webhooks"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()


def main() -> None:
    """命令行入口：beehive-gateway"""
    import uvicorn

    uvicorn.run(
        "beehive.gateway.main:app",
        host=os.environ.get("BEEHIVE_HOST", "127.0.0.1"),
        port=int(os.environ.get("BEEHIVE_PORT", "8000")),
        log_config=None,
    )
