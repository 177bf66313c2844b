"""GitHubClient -- GitHub REST API 调用封装

仅覆盖审批流程需要的两个操作：合并 PR 与在 PR 上评论。
"""

import httpx
import structlog

from .exceptions import GitHubError, GitHubUnreachableError
from .models import MergeResult, PullRequestRef

log = structlog.get_logger()

GITHUB_API_VERSION = "2022-11-28"

# 连接类异常类型集合（转换为 GitHubUnreachableError）
_CONNECTION_ERROR_TYPES = (
    httpx.TimeoutException,
    httpx.NetworkError,
)

# 合并接口拒绝合并时的状态码（不可合并 / head 已变更）
_NOT_MERGEABLE_STATUSES = (405, 409)


def rejection_comment(reason: str) -> str:
    """驳回时发布到 PR 的评论正文"""
    return (
        "**Submission Rejected**\n\n"
        f"**Reason:** {reason or 'No reason provided'}\n\n"
        "---\n\n"
        "Please address the feedback and resubmit."
    )


class GitHubClient:
    """GitHub REST 客户端"""

    def __init__(
        self,
        token: str,
        api_base_url: str = "https://api.github.com",
        timeout_s: int = 30,
        merge_method: str = "squash",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """初始化 GitHub 客户端

        Args:
            token: 访问令牌
            api_base_url: API 基础 URL（GitHub Enterprise 可覆盖）
            timeout_s: 请求超时（秒）
            merge_method: squash / merge / rebase
            transport: 自定义 httpx transport（测试时注入 MockTransport）
        """
        self._api_base_url = api_base_url.rstrip("/")
        self._merge_method = merge_method
        self._http = httpx.AsyncClient(
            base_url=self._api_base_url,
            timeout=timeout_s,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
        )

    async def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        try:
            response = await self._http.request(method, path, json=payload)
        except _CONNECTION_ERROR_TYPES as e:
            log.error(
                "github_request_failed",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GitHubUnreachableError(self._api_base_url, e) from e

        if response.is_error:
            message = response.text
            try:
                message = response.json().get("message", message)
            except ValueError:
                pass
            log.warning(
                "github_request_rejected",
                method=method,
                path=path,
                status_code=response.status_code,
                message=message,
            )
            # 5xx 与 429 可重试；其余（冲突、不可合并、权限）需人工处理
            raise GitHubError(
                f"GitHub API {method} {path} failed ({response.status_code}): {message}",
                recoverable=response.status_code >= 500 or response.status_code == 429,
                status_code=response.status_code,
            )

        return response.json() if response.content else {}

    async def merge_pull_request(self, pr_url: str) -> MergeResult:
        """合并 PR

        Raises:
            InvalidPullRequestUrlError: PR URL 格式不符
            GitHubUnreachableError: API 不可达
            GitHubError: API 返回错误（不可合并、冲突等）
        """
        ref = PullRequestRef.parse(pr_url)
        try:
            data = await self._request(
                "PUT",
                f"{ref.api_path}/merge",
                {"merge_method": self._merge_method},
            )
        except GitHubError as e:
            # 并发 approve 时后到者收到 405/409，PR 已合并则视为成功
            if e.status_code not in _NOT_MERGEABLE_STATUSES:
                raise
            if not await self._already_merged(ref):
                raise
            log.info("pr_already_merged", pr_url=pr_url)
            return MergeResult(merged=True, message="Pull Request already merged")
        result = MergeResult(
            sha=data.get("sha") or "",
            merged=bool(data.get("merged")),
            message=data.get("message") or "",
        )
        if not result.merged:
            raise GitHubError(f"PR not merged: {result.message or pr_url}", recoverable=False)
        log.info("pr_merged", pr_url=pr_url, sha=result.sha)
        return result

    async def _already_merged(self, ref: PullRequestRef) -> bool:
        """查询 PR 是否已合并，查询失败按未合并处理"""
        try:
            data = await self._request("GET", ref.api_path)
        except GitHubError:
            return False
        return data.get("merged") is True

    async def comment_on_pull_request(self, pr_url: str, body: str) -> None:
        """在 PR 上发布评论"""
        ref = PullRequestRef.parse(pr_url)
        await self._request("POST", f"{ref.issue_path}/comments", {"body": body})
        log.info("pr_commented", pr_url=pr_url)

    async def aclose(self) -> None:
        await self._http.aclose()
