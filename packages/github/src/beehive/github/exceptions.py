"""GitHub 集成异常体系"""


class GitHubError(Exception):
    """GitHub 包基础异常"""

    def __init__(
        self, message: str, recoverable: bool = True, status_code: int | None = None
    ) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
            status_code: API 返回的 HTTP 状态码（非 HTTP 错误时为 None）
        """
        super().__init__(message)
        self.recoverable = recoverable
        self.status_code = status_code


class GitHubUnreachableError(GitHubError):
    """GitHub API 不可达（连接失败、超时、DNS 解析失败等）"""

    def __init__(self, api_url: str, original_error: Exception) -> None:
        """
        Args:
            api_url: 尝试连接的 API 地址
            original_error: 原始异常
        """
        super().__init__(
            f"GitHub API unreachable: {api_url} -- {original_error}",
            recoverable=True,
        )
        self.api_url = api_url
        self.original_error = original_error


class InvalidPullRequestUrlError(GitHubError):
    """PR 引用不是 github.com/<owner>/<repo>/pull/<number> 格式"""

    def __init__(self, pr_url: str) -> None:
        super().__init__(f"Invalid PR URL format: {pr_url}", recoverable=False)
        self.pr_url = pr_url
