"""Store Protocol 接口定义

定义 TaskStore 的抽象接口，使用 Python Protocol 实现结构化子类型（duck typing）。
SqliteTaskStore（乐观逐行 CAS）与 JsonFileTaskStore（悲观整库锁）
提供完全相同的外部语义，调用方不依赖具体并发策略。

所有流转操作要么完整成功并对后续读取可见，要么抛出 BeehiveError 子类且无部分写入。
"""

from collections.abc import Iterable
from typing import Protocol

from ..models import (
    ApiKey,
    KeyRole,
    Project,
    ProjectDump,
    Submission,
    SubmissionCreate,
    Task,
    TaskCreate,
    TaskState,
    TaskUpdate,
)


class TaskStore(Protocol):
    """任务存储接口"""

    # ---- 查询 ----

    async def list_tasks(
        self,
        project: str,
        state: TaskState | None = None,
        role: str | None = None,
    ) -> list[Task]:
        """查询项目任务，按创建顺序返回"""
        ...

    async def get_task(self, project: str, task_id: str) -> Task | None:
        """根据 (project, task_id) 查询任务"""
        ...

    async def get_task_states(self, task_ids: Iterable[str]) -> dict[str, TaskState]:
        """跨项目查询任务状态，不存在的 ID 不出现在结果中"""
        ...

    async def get_submission(self, project: str, task_id: str) -> Submission | None:
        """查询任务当前的提交记录"""
        ...

    async def find_task_by_pr_url(self, pr_url: str) -> Task | None:
        """查找提交 PR 引用匹配且处于 pending_review 的任务（跨项目）"""
        ...

    # ---- 状态流转 ----

    async def create_task(self, project: str, spec: TaskCreate) -> Task:
        """创建 open 任务"""
        ...

    async def claim_task(
        self,
        project: str,
        task_id: str,
        bee: str | None = None,
        *,
        require_dependencies_closed: bool = False,
    ) -> Task:
        """open -> in_progress 的原子 CAS，竞争失败抛出 ConflictError"""
        ...

    async def claim_next_task(
        self,
        project: str,
        roles: list[str] | None = None,
        bee: str | None = None,
    ) -> Task | None:
        """按优先级与依赖认领下一个任务"""
        ...

    async def submit_task(
        self,
        project: str,
        task_id: str,
        submission: SubmissionCreate,
    ) -> Task:
        """in_progress -> pending_review，存储提交并派生评审任务"""
        ...

    async def approve_task(self, project: str, task_id: str) -> Task:
        """pending_review -> closed，关闭评审任务、派生后续任务、删除提交"""
        ...

    async def reject_task(self, project: str, task_id: str, reason: str) -> Task:
        """pending_review -> open，关闭评审任务、删除提交"""
        ...

    async def fail_task(
        self,
        project: str,
        task_id: str,
        error: str,
        details: str | None = None,
    ) -> Task:
        """任意状态 -> failed"""
        ...

    async def block_task(self, project: str, task_id: str, reason: str) -> Task:
        """任意状态 -> blocked"""
        ...

    async def reopen_task(self, project: str, task_id: str) -> Task:
        """closed/failed/blocked -> open"""
        ...

    async def release_task(self, project: str, task_id: str) -> Task:
        """in_progress/pending_review -> open"""
        ...

    async def update_task(self, project: str, task_id: str, update: TaskUpdate) -> Task:
        """修改非状态字段"""
        ...

    # ---- 日志 ----

    async def append_task_log(self, project: str, task_id: str, content: str) -> int:
        """追加执行日志，返回 attempt 序号"""
        ...

    async def get_task_log(self, project: str, task_id: str) -> list[str]:
        """按 attempt 顺序返回执行日志"""
        ...

    # ---- 项目与密钥 ----

    async def create_project(
        self,
        name: str,
        repo: str = "",
        config: str = "",
    ) -> tuple[Project, str]:
        """创建项目并签发 bootstrap admin 密钥，返回 (项目, 明文密钥)"""
        ...

    async def get_project(self, name: str) -> Project | None:
        ...

    async def list_projects(self) -> list[str]:
        ...

    async def create_api_key(
        self,
        project: str,
        role: KeyRole,
        label: str | None = None,
    ) -> tuple[str, ApiKey]:
        """签发密钥，返回 (明文密钥, 记录)"""
        ...

    async def list_api_keys(self, project: str) -> list[ApiKey]:
        ...

    async def revoke_api_key(self, project: str, key_hash: str) -> bool:
        """删除密钥记录，不存在返回 False"""
        ...

    async def authenticate(self, key_hash: str) -> ApiKey | None:
        """按摘要查找密钥并刷新 last_used_at"""
        ...

    # ---- 导入导出 ----

    async def dump_project(self, project: str) -> ProjectDump:
        ...

    async def load_project(self, project: str, dump: ProjectDump, replace: bool = False) -> None:
        ...

    # ---- 生命周期 ----

    async def ping(self) -> None:
        """检查后端可用性，不可用时抛出异常"""
        ...

    async def close(self) -> None:
        ...
