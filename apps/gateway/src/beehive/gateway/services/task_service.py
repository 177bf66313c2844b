"""TaskService -- 任务流转与外部 PR 副作用的编排

存储层负责原子状态流转；本服务负责在流转前后调用 GitHub：
1. approve：先合并 PR，合并失败抛出 UpstreamError，状态机不推进
2. reject：状态流转提交后在 PR 上评论驳回原因，评论失败只记录日志
3. webhook：PR 已在 GitHub 合并，直接批准对应任务，不再调用 GitHub
"""

import structlog
from beehive.core.exceptions import TaskNotFoundError, UpstreamError
from beehive.core.models import (
    Submission,
    SubmissionCreate,
    Task,
    TaskCreate,
    TaskState,
    TaskUpdate,
)
from beehive.core.store import TaskStore
from beehive.github import GitHubClient, GitHubError, rejection_comment

log = structlog.get_logger()


class TaskService:
    """任务业务服务"""

    def __init__(self, store: TaskStore, github: GitHubClient | None = None) -> None:
        self._store = store
        self._github = github

    # ---- 查询 ----

    async def list_tasks(
        self,
        project: str,
        state: TaskState | None = None,
        role: str | None = None,
    ) -> list[Task]:
        return await self._store.list_tasks(project, state=state, role=role)

    async def get_task(self, project: str, task_id: str) -> Task:
        """查询任务，不存在时抛出 TaskNotFoundError"""
        task = await self._store.get_task(project, task_id)
        if task is None:
            raise TaskNotFoundError(project, task_id)
        return task

    async def get_log(self, project: str, task_id: str) -> list[str]:
        return await self._store.get_task_log(project, task_id)

    # ---- 创建与修改 ----

    async def create_task(self, project: str, spec: TaskCreate) -> Task:
        return await self._store.create_task(project, spec)

    async def update_task(self, project: str, task_id: str, update: TaskUpdate) -> Task:
        return await self._store.update_task(project, task_id, update)

    async def append_log(self, project: str, task_id: str, content: str) -> int:
        return await self._store.append_task_log(project, task_id, content)

    # ---- 认领与执行 ----

    async def claim_task(self, project: str, task_id: str, bee: str | None = None) -> Task:
        return await self._store.claim_task(project, task_id, bee)

    async def claim_next(
        self,
        project: str,
        roles: list[str] | None = None,
        bee: str | None = None,
    ) -> Task | None:
        task = await self._store.claim_next_task(project, roles, bee)
        if task is None:
            log.info("no_task_available", project=project, roles=roles)
        return task

    async def release_task(self, project: str, task_id: str) -> Task:
        return await self._store.release_task(project, task_id)

    async def reopen_task(self, project: str, task_id: str) -> Task:
        return await self._store.reopen_task(project, task_id)

    async def submit_task(
        self,
        project: str,
        task_id: str,
        submission: SubmissionCreate,
    ) -> Task:
        return await self._store.submit_task(project, task_id, submission)

    async def fail_task(
        self,
        project: str,
        task_id: str,
        error: str,
        details: str | None = None,
    ) -> Task:
        return await self._store.fail_task(project, task_id, error, details)

    async def block_task(self, project: str, task_id: str, reason: str) -> Task:
        return await self._store.block_task(project, task_id, reason)

    # ---- 评审 ----

    async def approve_task(self, project: str, task_id: str) -> Task:
        """批准提交；配置了 GitHub 客户端时先合并 PR

        Raises:
            TaskNotFoundError: 任务不存在
            UpstreamError: PR 合并失败（任务状态不变）
        """
        task = await self.get_task(project, task_id)
        submission = await self._store.get_submission(project, task_id)
        if submission is None:
            return task

        if self._github is not None:
            await self._merge(submission)

        return await self._store.approve_task(project, task_id)

    async def _merge(self, submission: Submission) -> None:
        try:
            await self._github.merge_pull_request(submission.pr_url)
        except GitHubError as e:
            log.warning(
                "pr_merge_failed",
                task_id=submission.task_id,
                pr_url=submission.pr_url,
                error=str(e),
                recoverable=e.recoverable,
            )
            raise UpstreamError(f"PR merge failed: {e}") from e

    async def reject_task(self, project: str, task_id: str, reason: str) -> Task:
        """驳回提交；提交后尽力在 PR 上评论驳回原因"""
        submission = await self._store.get_submission(project, task_id)
        task = await self._store.reject_task(project, task_id, reason)

        if self._github is not None and submission is not None:
            try:
                await self._github.comment_on_pull_request(
                    submission.pr_url, rejection_comment(reason)
                )
            except GitHubError as e:
                log.warning(
                    "pr_comment_failed",
                    task_id=task_id,
                    pr_url=submission.pr_url,
                    error=str(e),
                )
        return task

    async def approve_merged_pull_request(self, pr_url: str) -> Task | None:
        """处理 GitHub 已合并 PR：批准匹配的 pending_review 任务

        Returns:
            被批准的任务；没有匹配任务时返回 None
        """
        task = await self._store.find_task_by_pr_url(pr_url)
        if task is None:
            log.info("webhook_no_matching_task", pr_url=pr_url)
            return None
        approved = await self._store.approve_task(task.project, task.id)
        log.info("webhook_task_approved", project=task.project, task_id=task.id, pr_url=pr_url)
        return approved
