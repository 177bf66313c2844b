"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store / GitHub 客户端

实例通过 app.state 管理，在 lifespan 中初始化/清理；
测试可绕过 lifespan 直接设置 app.state。
"""

from beehive.core.store import TaskStore
from beehive.github import GitHubClient, GitHubConfig
from fastapi import Depends, Request

from .services.task_service import TaskService


def get_store(request: Request) -> TaskStore:
    """从 app.state 获取 TaskStore 实例"""
    return request.app.state.store


def get_github_config(request: Request) -> GitHubConfig:
    """从 app.state 获取 GitHub 配置，未设置时使用空配置"""
    return getattr(request.app.state, "github_config", None) or GitHubConfig()


def get_github_client(request: Request) -> GitHubClient | None:
    """从 app.state 获取 GitHub 客户端，未配置 token 时为 None"""
    return getattr(request.app.state, "github_client", None)


def get_task_service(
    store: TaskStore = Depends(get_store),
    github: GitHubClient | None = Depends(get_github_client),
) -> TaskService:
    return TaskService(store, github)
