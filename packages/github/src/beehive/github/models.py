"""数据模型 -- PullRequestRef + MergeResult"""

import re

from pydantic import BaseModel, Field

from .exceptions import InvalidPullRequestUrlError

_PR_URL_PATTERN = re.compile(r"github\.com/([^/]+)/([^/]+)/pull/(\d+)")


class PullRequestRef(BaseModel):
    """从 PR URL 解析出的定位信息"""

    owner: str
    repo: str
    number: int = Field(ge=1)

    @classmethod
    def parse(cls, pr_url: str) -> "PullRequestRef":
        """解析 https://github.com/<owner>/<repo>/pull/<number>

        Raises:
            InvalidPullRequestUrlError: 格式不符
        """
        match = _PR_URL_PATTERN.search(pr_url)
        if match is None:
            raise InvalidPullRequestUrlError(pr_url)
        owner, repo, number = match.groups()
        return cls(owner=owner, repo=repo, number=int(number))

    @property
    def api_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}/pulls/{self.number}"

    @property
    def issue_path(self) -> str:
        # PR 评论走 issues 接口
        return f"/repos/{self.owner}/{self.repo}/issues/{self.number}"


class MergeResult(BaseModel):
    """合并结果"""

    sha: str = Field(default="", description="合并提交 SHA")
    merged: bool = Field(default=False)
    message: str = Field(default="")
