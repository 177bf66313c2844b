"""TaskStore JSON 文档实现 -- 悲观整库锁

整个 hive 保存为单个 JSON 文档。每次操作：
1. 获取进程内 asyncio.Lock 与同目录 .lock 文件锁（跨进程）
2. 在工作线程中读取并解析整个文档（不阻塞事件循环）
3. 在内存中修改
4. 仅当修改完整成功时在工作线程中写临时文件并 os.replace 原子替换

修改过程中抛出的任何异常都使内存副本被丢弃，磁盘上的文档保持不变。
"""

import asyncio
import os
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

import structlog
from filelock import AsyncFileLock, Timeout
from pydantic import BaseModel, Field

from ..config import LOCK_TIMEOUT_S
from ..exceptions import (
    ConflictError,
    ProjectNotFoundError,
    TaskNotFoundError,
    ValidationError,
)
from ..ids import default_prefix, generate_id, generate_key, hash_key
from ..models import (
    ApiKey,
    KeyRole,
    Project,
    ProjectDump,
    Submission,
    SubmissionCreate,
    Task,
    TaskCreate,
    TaskOperation,
    TaskState,
    TaskUpdate,
    target_state,
)
from ..review import (
    WITHDRAWN_SUMMARIES,
    build_review_task,
    build_task,
    bump,
    rejection_summary,
)
from ..scheduler import claim_next, dependencies_satisfied

log = structlog.get_logger()


class HiveDocument(BaseModel):
    """磁盘上的完整文档；dict 插入顺序即创建顺序"""

    projects: dict[str, Project] = Field(default_factory=dict)
    tasks: dict[str, Task] = Field(default_factory=dict)
    submissions: dict[str, Submission] = Field(default_factory=dict)
    api_keys: dict[str, ApiKey] = Field(default_factory=dict)
    logs: dict[str, list[str]] = Field(default_factory=dict)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class JsonFileTaskStore:
    """TaskStore 的 JSON 文档实现"""

    def __init__(self, path: str | Path, lock_timeout: float = LOCK_TIMEOUT_S) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()
        self._file_lock = AsyncFileLock(
            str(self._path.with_name(self._path.name + ".lock")),
            timeout=lock_timeout,
        )

    @property
    def path(self) -> Path:
        return self._path

    # ---- 文档读写 ----

    def _read(self) -> HiveDocument:
        if not self._path.exists():
            return HiveDocument()
        return HiveDocument.model_validate_json(self._path.read_text(encoding="utf-8"))

    def _write(self, doc: HiveDocument) -> None:
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(doc.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp_path, self._path)

    @asynccontextmanager
    async def _session(self, write: bool = True) -> AsyncIterator[HiveDocument]:
        """持锁读取文档；write=True 且代码块正常结束时写回"""
        async with self._lock:
            try:
                await self._file_lock.acquire()
            except Timeout as exc:
                raise ConflictError(f"Timed out waiting for lock on {self._path}") from exc
            try:
                doc = await asyncio.to_thread(self._read)
                yield doc
                if write:
                    await asyncio.to_thread(self._write, doc)
            finally:
                await self._file_lock.release()

    # ---- 文档内辅助 ----

    @staticmethod
    def _require_task(doc: HiveDocument, project: str, task_id: str) -> Task:
        task = doc.tasks.get(task_id)
        if task is None or task.project != project:
            raise TaskNotFoundError(project, task_id)
        return task

    @staticmethod
    def _require_project(doc: HiveDocument, project: str) -> Project:
        existing = doc.projects.get(project)
        if existing is None:
            raise ProjectNotFoundError(project)
        return existing

    @staticmethod
    def _states(doc: HiveDocument, task_ids: Iterable[str]) -> dict[str, TaskState]:
        return {task_id: doc.tasks[task_id].state for task_id in task_ids if task_id in doc.tasks}

    @classmethod
    def _check_dependencies(
        cls,
        doc: HiveDocument,
        task_id: str | None,
        dependencies: list[str],
    ) -> None:
        if task_id is not None and task_id in dependencies:
            raise ValidationError(f"Task {task_id} cannot depend on itself")
        missing = [dep_id for dep_id in dependencies if dep_id not in doc.tasks]
        if missing:
            raise ValidationError(f"Unknown dependencies: {', '.join(missing)}")

    @staticmethod
    def _transition(task: Task, state: TaskState, now: datetime, **fields: object) -> None:
        for key, value in fields.items():
            setattr(task, key, value)
        task.state = state
        task.updated_at = bump(task.updated_at, now)

    @staticmethod
    def _close_review_tasks(
        doc: HiveDocument,
        task_id: str,
        now: datetime,
        summary: str | None = None,
    ) -> None:
        for review in doc.tasks.values():
            if review.reviews_task != task_id or review.state == TaskState.CLOSED:
                continue
            review.state = TaskState.CLOSED
            if summary is not None:
                review.summary = summary
            review.updated_at = bump(review.updated_at, now)

    @classmethod
    def _withdraw_submission(
        cls,
        doc: HiveDocument,
        task_id: str,
        now: datetime,
        summary: str,
    ) -> None:
        doc.submissions.pop(task_id, None)
        cls._close_review_tasks(doc, task_id, now, summary)

    @staticmethod
    def _append_log(doc: HiveDocument, task_id: str, content: str) -> int:
        entries = doc.logs.setdefault(task_id, [])
        entries.append(content)
        return len(entries)

    # ---- 查询 ----

    async def list_tasks(
        self,
        project: str,
        state: TaskState | None = None,
        role: str | None = None,
    ) -> list[Task]:
        """查询项目任务，按创建顺序返回"""
        async with self._session(write=False) as doc:
            return [
                task
                for task in doc.tasks.values()
                if task.project == project
                and (state is None or task.state == state)
                and (role is None or task.role == role)
            ]

    async def get_task(self, project: str, task_id: str) -> Task | None:
        async with self._session(write=False) as doc:
            task = doc.tasks.get(task_id)
            return task if task is not None and task.project == project else None

    async def get_task_states(self, task_ids: Iterable[str]) -> dict[str, TaskState]:
        async with self._session(write=False) as doc:
            return self._states(doc, task_ids)

    async def get_submission(self, project: str, task_id: str) -> Submission | None:
        async with self._session(write=False) as doc:
            task = doc.tasks.get(task_id)
            if task is None or task.project != project:
                return None
            return doc.submissions.get(task_id)

    async def find_task_by_pr_url(self, pr_url: str) -> Task | None:
        async with self._session(write=False) as doc:
            for submission in sorted(doc.submissions.values(), key=lambda s: s.submitted_at):
                task = doc.tasks.get(submission.task_id)
                if (
                    submission.pr_url == pr_url
                    and task is not None
                    and task.state == TaskState.PENDING_REVIEW
                ):
                    return task
            return None

    # ---- 状态流转 ----

    async def create_task(self, project: str, spec: TaskCreate) -> Task:
        now = _utcnow()
        async with self._session() as doc:
            self._require_project(doc, project)
            self._check_dependencies(doc, None, spec.dependencies)
            prefix = default_prefix(project)
            task = build_task(project, generate_id(doc.tasks, prefix), spec, now)
            doc.tasks[task.id] = task
        log.info("task_created", project=project, task_id=task.id)
        return task

    async def claim_task(
        self,
        project: str,
        task_id: str,
        bee: str | None = None,
        *,
        require_dependencies_closed: bool = False,
    ) -> Task:
        now = _utcnow()
        async with self._session() as doc:
            task = self._require_task(doc, project, task_id)
            new_state = target_state(TaskOperation.CLAIM, task.state, task_id)
            if require_dependencies_closed and not dependencies_satisfied(
                task, self._states(doc, task.dependencies)
            ):
                raise ConflictError(f"Task {task_id} has unfinished dependencies")
            self._transition(task, new_state, now, claimed_by=bee)
        log.info("task_claimed", project=project, task_id=task_id, bee=bee)
        return task

    async def claim_next_task(
        self,
        project: str,
        roles: list[str] | None = None,
        bee: str | None = None,
    ) -> Task | None:
        return await claim_next(self, project, roles, bee)

    async def submit_task(
        self,
        project: str,
        task_id: str,
        submission: SubmissionCreate,
    ) -> Task:
        now = _utcnow()
        async with self._session() as doc:
            task = self._require_task(doc, project, task_id)
            new_state = target_state(TaskOperation.SUBMIT, task.state, task_id)
            stored = Submission(task_id=task_id, submitted_at=now, **submission.model_dump())
            self._transition(task, new_state, now)
            doc.submissions[task_id] = stored
            if stored.log:
                self._append_log(doc, task_id, stored.log)

            prefix = default_prefix(project)
            review = build_review_task(task, stored, generate_id(doc.tasks, prefix), now)
            doc.tasks[review.id] = review
        log.info("task_submitted", project=project, task_id=task_id, review_task=review.id)
        return task

    async def approve_task(self, project: str, task_id: str) -> Task:
        """批准提交；没有提交时原样返回任务"""
        now = _utcnow()
        async with self._session() as doc:
            task = self._require_task(doc, project, task_id)
            submission = doc.submissions.get(task_id)
            if submission is None:
                return task
            new_state = target_state(TaskOperation.APPROVE, task.state, task_id)
            self._transition(
                task,
                new_state,
                now,
                summary=submission.summary,
                details=submission.details,
                pr_url=submission.pr_url,
            )
            self._close_review_tasks(doc, task_id, now)

            prefix = default_prefix(project)
            follow_up_ids: list[str] = []
            for spec in submission.follow_up_tasks:
                follow_up = build_task(
                    project, generate_id(doc.tasks, prefix), spec, now, parent_task=task_id
                )
                doc.tasks[follow_up.id] = follow_up
                follow_up_ids.append(follow_up.id)

            del doc.submissions[task_id]
        log.info(
            "task_approved",
            project=project,
            task_id=task_id,
            follow_up_tasks=follow_up_ids,
        )
        return task

    async def reject_task(self, project: str, task_id: str, reason: str) -> Task:
        now = _utcnow()
        async with self._session() as doc:
            task = self._require_task(doc, project, task_id)
            new_state = target_state(TaskOperation.REJECT, task.state, task_id)
            self._transition(task, new_state, now, claimed_by=None)
            self._withdraw_submission(doc, task_id, now, rejection_summary(reason))
        log.info("task_rejected", project=project, task_id=task_id)
        return task

    async def fail_task(
        self,
        project: str,
        task_id: str,
        error: str,
        details: str | None = None,
    ) -> Task:
        now = _utcnow()
        async with self._session() as doc:
            task = self._require_task(doc, project, task_id)
            new_state = target_state(TaskOperation.FAIL, task.state, task_id)
            if task.state == TaskState.PENDING_REVIEW:
                self._withdraw_submission(
                    doc, task_id, now, WITHDRAWN_SUMMARIES[TaskOperation.FAIL]
                )
            self._transition(task, new_state, now, summary=error, details=details)
        log.info("task_failed", project=project, task_id=task_id)
        return task

    async def block_task(self, project: str, task_id: str, reason: str) -> Task:
        now = _utcnow()
        async with self._session() as doc:
            task = self._require_task(doc, project, task_id)
            new_state = target_state(TaskOperation.BLOCK, task.state, task_id)
            if task.state == TaskState.PENDING_REVIEW:
                self._withdraw_submission(
                    doc, task_id, now, WITHDRAWN_SUMMARIES[TaskOperation.BLOCK]
                )
            self._transition(task, new_state, now, status=reason)
        log.info("task_blocked", project=project, task_id=task_id)
        return task

    async def reopen_task(self, project: str, task_id: str) -> Task:
        now = _utcnow()
        async with self._session() as doc:
            task = self._require_task(doc, project, task_id)
            new_state = target_state(TaskOperation.REOPEN, task.state, task_id)
            self._transition(task, new_state, now, claimed_by=None)
        log.info("task_reopened", project=project, task_id=task_id)
        return task

    async def release_task(self, project: str, task_id: str) -> Task:
        now = _utcnow()
        async with self._session() as doc:
            task = self._require_task(doc, project, task_id)
            new_state = target_state(TaskOperation.RELEASE, task.state, task_id)
            if task.state == TaskState.PENDING_REVIEW:
                self._withdraw_submission(
                    doc, task_id, now, WITHDRAWN_SUMMARIES[TaskOperation.RELEASE]
                )
            self._transition(task, new_state, now, claimed_by=None)
        log.info("task_released", project=project, task_id=task_id)
        return task

    async def update_task(self, project: str, task_id: str, update: TaskUpdate) -> Task:
        changes = update.changes()
        if not changes:
            raise ValidationError("No fields to update")
        now = _utcnow()
        async with self._session() as doc:
            task = self._require_task(doc, project, task_id)
            if "dependencies" in changes:
                self._check_dependencies(doc, task_id, changes["dependencies"])
            for key, value in changes.items():
                setattr(task, key, value)
            task.updated_at = bump(task.updated_at, now)
        log.info("task_updated", project=project, task_id=task_id)
        return task

    # ---- 日志 ----

    async def append_task_log(self, project: str, task_id: str, content: str) -> int:
        async with self._session() as doc:
            self._require_task(doc, project, task_id)
            return self._append_log(doc, task_id, content)

    async def get_task_log(self, project: str, task_id: str) -> list[str]:
        async with self._session(write=False) as doc:
            self._require_task(doc, project, task_id)
            return list(doc.logs.get(task_id, []))

    # ---- 项目与密钥 ----

    async def create_project(
        self,
        name: str,
        repo: str = "",
        config: str = "",
    ) -> tuple[Project, str]:
        if not name.strip():
            raise ValidationError("Project name is required")
        now = _utcnow()
        key = generate_key(KeyRole.ADMIN)
        async with self._session() as doc:
            if name in doc.projects:
                raise ConflictError(f"Project {name} already exists")
            project = Project(name=name, repo=repo, config=config, created_at=now, updated_at=now)
            doc.projects[name] = project
            api_key = ApiKey(
                key_hash=hash_key(key),
                project=name,
                role=KeyRole.ADMIN,
                label="bootstrap",
                created_at=now,
            )
            doc.api_keys[api_key.key_hash] = api_key
        log.info("project_created", project=name)
        return project, key

    async def get_project(self, name: str) -> Project | None:
        async with self._session(write=False) as doc:
            return doc.projects.get(name)

    async def list_projects(self) -> list[str]:
        async with self._session(write=False) as doc:
            return sorted(doc.projects)

    async def create_api_key(
        self,
        project: str,
        role: KeyRole,
        label: str | None = None,
    ) -> tuple[str, ApiKey]:
        key = generate_key(KeyRole(role))
        api_key = ApiKey(
            key_hash=hash_key(key),
            project=project,
            role=KeyRole(role),
            label=label,
            created_at=_utcnow(),
        )
        async with self._session() as doc:
            self._require_project(doc, project)
            doc.api_keys[api_key.key_hash] = api_key
        log.info("api_key_created", project=project, role=api_key.role.value)
        return key, api_key

    async def list_api_keys(self, project: str) -> list[ApiKey]:
        async with self._session(write=False) as doc:
            return [key for key in doc.api_keys.values() if key.project == project]

    async def revoke_api_key(self, project: str, key_hash: str) -> bool:
        async with self._session() as doc:
            existing = doc.api_keys.get(key_hash)
            if existing is None or existing.project != project:
                return False
            del doc.api_keys[key_hash]
        log.info("api_key_revoked", project=project)
        return True

    async def authenticate(self, key_hash: str) -> ApiKey | None:
        async with self._session() as doc:
            api_key = doc.api_keys.get(key_hash)
            if api_key is not None:
                api_key.last_used_at = _utcnow()
            return api_key

    # ---- 导入导出 ----

    async def dump_project(self, project: str) -> ProjectDump:
        async with self._session(write=False) as doc:
            self._require_project(doc, project)
            tasks = [task for task in doc.tasks.values() if task.project == project]
            task_ids = {task.id for task in tasks}
            return ProjectDump(
                project=project,
                tasks=tasks,
                submissions=[s for s in doc.submissions.values() if s.task_id in task_ids],
                logs={
                    task_id: list(entries)
                    for task_id, entries in doc.logs.items()
                    if task_id in task_ids
                },
            )

    async def load_project(self, project: str, dump: ProjectDump, replace: bool = False) -> None:
        """导入任务、提交与日志；replace 时先清空项目现有任务"""
        async with self._session() as doc:
            self._require_project(doc, project)
            if replace:
                removed = [tid for tid, task in doc.tasks.items() if task.project == project]
                for task_id in removed:
                    del doc.tasks[task_id]
                    doc.submissions.pop(task_id, None)
                    doc.logs.pop(task_id, None)
            for task in dump.tasks:
                if task.id in doc.tasks:
                    raise ConflictError(f"Task {task.id} already exists")
                doc.tasks[task.id] = task.model_copy(update={"project": project})
            for submission in dump.submissions:
                if submission.task_id not in doc.tasks or submission.task_id in doc.submissions:
                    raise ConflictError(f"Cannot load submission for task {submission.task_id}")
                doc.submissions[submission.task_id] = submission
            for task_id, entries in dump.logs.items():
                if task_id not in doc.tasks:
                    raise ConflictError(f"Cannot load log for unknown task {task_id}")
                doc.logs.setdefault(task_id, []).extend(entries)
        log.info("project_loaded", project=project, tasks=len(dump.tasks), replace=replace)

    # ---- 生命周期 ----

    async def ping(self) -> None:
        async with self._session(write=False):
            pass

    async def close(self) -> None:
        return None
