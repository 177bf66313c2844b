"""GitHubConfig -- GitHub 集成配置加载

从环境变量加载配置。未配置 token 时审批不调用 GitHub，
未配置 webhook secret 时拒绝所有 webhook 投递。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()

_DEFAULT_TIMEOUT_S = 30


class GitHubConfig(BaseModel):
    """GitHub 包配置 -- 从环境变量加载

    环境变量:
        GITHUB_TOKEN: REST API 访问令牌
        BEEHIVE_GITHUB_API_URL: API 基础地址（默认 https://api.github.com）
        BEEHIVE_GITHUB_WEBHOOK_SECRET: webhook 签名密钥
        BEEHIVE_GITHUB_TIMEOUT_S: 调用超时（秒，默认 30）
        BEEHIVE_GITHUB_MERGE_METHOD: 合并方式（squash/merge/rebase）
    """

    api_base_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API 基础 URL",
    )
    token: SecretStr = Field(
        default=SecretStr(""),
        description="访问令牌，为空时不调用 GitHub",
    )
    webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="webhook HMAC 密钥，为空时拒绝所有投递",
    )
    timeout_s: int = Field(
        default=_DEFAULT_TIMEOUT_S,
        ge=1,
        description="API 调用超时（秒）",
    )
    merge_method: Literal["squash", "merge", "rebase"] = Field(
        default="squash",
        description="PR 合并方式",
    )

    @property
    def enabled(self) -> bool:
        """是否配置了访问令牌"""
        return bool(self.token.get_secret_value())


def load_github_config() -> GitHubConfig:
    """从环境变量加载 GitHub 配置

    环境变量映射:
        GITHUB_TOKEN -> token (默认 "")
        BEEHIVE_GITHUB_API_URL -> api_base_url (默认 "https://api.github.com")
        BEEHIVE_GITHUB_WEBHOOK_SECRET -> webhook_secret (默认 "")
        BEEHIVE_GITHUB_TIMEOUT_S -> timeout_s (默认 30)
        BEEHIVE_GITHUB_MERGE_METHOD -> merge_method (默认 "squash")

    Returns:
        GitHubConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("GITHUB_TOKEN"):
        kwargs["token"] = SecretStr(val)

    if val := os.environ.get("BEEHIVE_GITHUB_API_URL"):
        kwargs["api_base_url"] = val

    if val := os.environ.get("BEEHIVE_GITHUB_WEBHOOK_SECRET"):
        kwargs["webhook_secret"] = SecretStr(val)

    if val := os.environ.get("BEEHIVE_GITHUB_MERGE_METHOD"):
        kwargs["merge_method"] = val

    if val := os.environ.get("BEEHIVE_GITHUB_TIMEOUT_S"):
        try:
            kwargs["timeout_s"] = int(val)
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="BEEHIVE_GITHUB_TIMEOUT_S",
                value=val,
                fallback=_DEFAULT_TIMEOUT_S,
            )
            # 使用默认值，不阻塞启动

    return GitHubConfig(**kwargs)
