"""Beehive GitHub -- PR 合并/评论与 webhook 校验

packages/github 的公开接口导出。
"""

# 核心组件
from .client import GitHubClient, rejection_comment

# 配置
from .config import GitHubConfig, load_github_config

# 异常
from .exceptions import GitHubError, GitHubUnreachableError, InvalidPullRequestUrlError

# 数据模型
from .models import MergeResult, PullRequestRef
from .webhook import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    compute_signature,
    merged_pull_request_url,
    verify_signature,
)

__all__ = [
    "GitHubClient",
    "rejection_comment",
    "GitHubConfig",
    "load_github_config",
    "GitHubError",
    "GitHubUnreachableError",
    "InvalidPullRequestUrlError",
    "MergeResult",
    "PullRequestRef",
    "SIGNATURE_HEADER",
    "EVENT_HEADER",
    "compute_signature",
    "verify_signature",
    "merged_pull_request_url",
]
