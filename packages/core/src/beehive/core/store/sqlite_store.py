"""TaskStore SQLite 实现 -- 乐观逐行 CAS

每个 Store 实例持有一个 aiosqlite 连接：
- 进程内用 asyncio.Lock 串行化对共享连接的使用，协程之间不会看到彼此未提交的语句
- 跨进程依赖 WAL + busy_timeout，多语句操作在 BEGIN IMMEDIATE 事务内完成
- 认领是带条件的 UPDATE ... WHERE state = 'open' RETURNING，零行即竞争失败
"""

import asyncio
import json
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

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
    rejection_summary,
)
from ..scheduler import claim_next
from .sqlite_init import init_db
from .transaction import immediate_transaction

log = structlog.get_logger()

_TASK_COLUMNS = (
    "id",
    "project",
    "description",
    "state",
    "role",
    "priority",
    "claimed_by",
    "parent_task",
    "reviews_task",
    "summary",
    "details",
    "status",
    "pr_url",
    "test_command",
    "session_id",
    "created_at",
    "updated_at",
)

# SQLite 单条语句变量上限的保守取值
_IN_CHUNK = 500

# 认领时要求所有依赖存在且 closed
_DEPENDENCIES_CLOSED_GUARD = """
    AND NOT EXISTS (
        SELECT 1 FROM task_dependencies d
        LEFT JOIN tasks dt ON dt.id = d.depends_on
        WHERE d.task_id = tasks.id
          AND (dt.state IS NULL OR dt.state != 'closed')
    )
"""


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _ts(value: datetime) -> str:
    """固定微秒精度，保证字符串比较与时间先后一致"""
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return _ts(value)
    return value


def _chunks(items: list[str]) -> Iterable[list[str]]:
    for start in range(0, len(items), _IN_CHUNK):
        yield items[start : start + _IN_CHUNK]


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn
        self._lock = asyncio.Lock()

    @classmethod
    async def open(cls, db_path: str | Path) -> "SqliteTaskStore":
        """打开（必要时创建）数据库文件并初始化表结构"""
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(db_path)
        conn.row_factory = aiosqlite.Row
        await init_db(conn)
        return cls(conn)

    @property
    def conn(self) -> aiosqlite.Connection:
        return self._conn

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[aiosqlite.Connection]:
        async with self._lock:
            try:
                async with immediate_transaction(self._conn) as conn:
                    yield conn
            except aiosqlite.IntegrityError as exc:
                raise ConflictError(f"Integrity violation: {exc}") from exc

    # ---- 行映射 ----

    async def _fetch_all(self, sql: str, params: Iterable[Any] = ()) -> list[aiosqlite.Row]:
        async with self._conn.execute(sql, tuple(params)) as cursor:
            return list(await cursor.fetchall())

    async def _fetch_one(self, sql: str, params: Iterable[Any] = ()) -> aiosqlite.Row | None:
        async with self._conn.execute(sql, tuple(params)) as cursor:
            return await cursor.fetchone()

    async def _load_dependencies(self, task_ids: list[str]) -> dict[str, list[str]]:
        deps: dict[str, list[str]] = {task_id: [] for task_id in task_ids}
        for chunk in _chunks(task_ids):
            placeholders = ", ".join("?" * len(chunk))
            rows = await self._fetch_all(
                f"SELECT task_id, depends_on FROM task_dependencies "
                f"WHERE task_id IN ({placeholders}) ORDER BY rowid",
                chunk,
            )
            for row in rows:
                deps[row["task_id"]].append(row["depends_on"])
        return deps

    async def _rows_to_tasks(self, rows: list[aiosqlite.Row]) -> list[Task]:
        deps = await self._load_dependencies([row["id"] for row in rows])
        return [self._row_to_task(row, deps[row["id"]]) for row in rows]

    @staticmethod
    def _row_to_task(row: aiosqlite.Row, dependencies: list[str]) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task.model_validate({**dict(row), "dependencies": dependencies})

    @staticmethod
    def _row_to_submission(row: aiosqlite.Row) -> Submission:
        data = dict(row)
        data["follow_up_tasks"] = json.loads(data["follow_up_tasks"])
        return Submission.model_validate(data)

    @staticmethod
    def _row_to_project(row: aiosqlite.Row) -> Project:
        return Project.model_validate(dict(row))

    @staticmethod
    def _row_to_api_key(row: aiosqlite.Row) -> ApiKey:
        return ApiKey.model_validate(dict(row))

    # ---- 内部读写（调用方持有锁） ----

    async def _fetch_task(self, project: str, task_id: str) -> Task | None:
        row = await self._fetch_one(
            "SELECT * FROM tasks WHERE id = ? AND project = ?",
            (task_id, project),
        )
        if row is None:
            return None
        deps = await self._load_dependencies([task_id])
        return self._row_to_task(row, deps[task_id])

    async def _require_task(self, project: str, task_id: str) -> Task:
        task = await self._fetch_task(project, task_id)
        if task is None:
            raise TaskNotFoundError(project, task_id)
        return task

    async def _require_project(self, project: str) -> None:
        row = await self._fetch_one("SELECT 1 FROM projects WHERE name = ?", (project,))
        if row is None:
            raise ProjectNotFoundError(project)

    async def _fetch_states(self, task_ids: Iterable[str]) -> dict[str, TaskState]:
        ids = list(dict.fromkeys(task_ids))
        states: dict[str, TaskState] = {}
        for chunk in _chunks(ids):
            placeholders = ", ".join("?" * len(chunk))
            rows = await self._fetch_all(
                f"SELECT id, state FROM tasks WHERE id IN ({placeholders})",
                chunk,
            )
            states.update({row["id"]: TaskState(row["state"]) for row in rows})
        return states

    async def _check_dependencies(self, task_id: str | None, dependencies: list[str]) -> None:
        if task_id is not None and task_id in dependencies:
            raise ValidationError(f"Task {task_id} cannot depend on itself")
        known = await self._fetch_states(dependencies)
        missing = [dep_id for dep_id in dependencies if dep_id not in known]
        if missing:
            raise ValidationError(f"Unknown dependencies: {', '.join(missing)}")

    async def _existing_ids(self, prefix: str) -> set[str]:
        rows = await self._fetch_all("SELECT id FROM tasks WHERE id LIKE ?", (f"{prefix}-%",))
        return {row["id"] for row in rows}

    async def _insert_task(self, task: Task) -> None:
        data = task.model_dump()
        placeholders = ", ".join("?" * len(_TASK_COLUMNS))
        await self._conn.execute(
            f"INSERT INTO tasks ({', '.join(_TASK_COLUMNS)}) VALUES ({placeholders})",
            tuple(_to_db(data[column]) for column in _TASK_COLUMNS),
        )
        await self._replace_dependencies(task.id, task.dependencies)

    async def _replace_dependencies(self, task_id: str, dependencies: list[str]) -> None:
        await self._conn.execute("DELETE FROM task_dependencies WHERE task_id = ?", (task_id,))
        if dependencies:
            await self._conn.executemany(
                "INSERT INTO task_dependencies (task_id, depends_on) VALUES (?, ?)",
                [(task_id, dep_id) for dep_id in dependencies],
            )

    async def _update_fields(self, task_id: str, now: datetime, **fields: Any) -> None:
        """更新任务字段并推进 updated_at（不回退）"""
        assignments = "".join(f"{column} = ?, " for column in fields)
        await self._conn.execute(
            f"UPDATE tasks SET {assignments}updated_at = MAX(updated_at, ?) WHERE id = ?",
            (*(_to_db(value) for value in fields.values()), _ts(now), task_id),
        )

    async def _close_review_tasks(
        self,
        task_id: str,
        now: datetime,
        summary: str | None = None,
    ) -> None:
        await self._conn.execute(
            """
            UPDATE tasks
            SET state = ?, summary = COALESCE(?, summary),
                updated_at = MAX(updated_at, ?)
            WHERE reviews_task = ? AND state != ?
            """,
            (TaskState.CLOSED.value, summary, _ts(now), task_id, TaskState.CLOSED.value),
        )

    async def _withdraw_submission(self, task_id: str, now: datetime, summary: str) -> None:
        """删除提交并关闭评审任务"""
        await self._conn.execute("DELETE FROM submissions WHERE task_id = ?", (task_id,))
        await self._close_review_tasks(task_id, now, summary)

    async def _fetch_submission(self, task_id: str) -> Submission | None:
        row = await self._fetch_one("SELECT * FROM submissions WHERE task_id = ?", (task_id,))
        return None if row is None else self._row_to_submission(row)

    async def _insert_submission(self, submission: Submission) -> None:
        await self._conn.execute(
            """
            INSERT INTO submissions (task_id, pr_url, summary, details,
                                     follow_up_tasks, log, submitted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                submission.task_id,
                submission.pr_url,
                submission.summary,
                submission.details,
                json.dumps([spec.model_dump() for spec in submission.follow_up_tasks]),
                submission.log,
                _ts(submission.submitted_at),
            ),
        )

    async def _append_log(self, task_id: str, content: str, now: datetime) -> int:
        row = await self._fetch_one(
            "SELECT COALESCE(MAX(attempt), 0) AS last FROM task_logs WHERE task_id = ?",
            (task_id,),
        )
        attempt = (row["last"] if row is not None else 0) + 1
        await self._conn.execute(
            "INSERT INTO task_logs (task_id, attempt, content, created_at) VALUES (?, ?, ?, ?)",
            (task_id, attempt, content, _ts(now)),
        )
        return attempt

    # ---- 查询 ----

    async def list_tasks(
        self,
        project: str,
        state: TaskState | None = None,
        role: str | None = None,
    ) -> list[Task]:
        """查询项目任务，按创建顺序返回"""
        sql = "SELECT * FROM tasks WHERE project = ?"
        params: list[Any] = [project]
        if state is not None:
            sql += " AND state = ?"
            params.append(TaskState(state).value)
        if role is not None:
            sql += " AND role = ?"
            params.append(role)
        sql += " ORDER BY created_at, rowid"
        async with self._lock:
            rows = await self._fetch_all(sql, params)
            return await self._rows_to_tasks(rows)

    async def get_task(self, project: str, task_id: str) -> Task | None:
        async with self._lock:
            return await self._fetch_task(project, task_id)

    async def get_task_states(self, task_ids: Iterable[str]) -> dict[str, TaskState]:
        async with self._lock:
            return await self._fetch_states(task_ids)

    async def get_submission(self, project: str, task_id: str) -> Submission | None:
        async with self._lock:
            row = await self._fetch_one(
                """
                SELECT s.* FROM submissions s
                JOIN tasks t ON t.id = s.task_id
                WHERE s.task_id = ? AND t.project = ?
                """,
                (task_id, project),
            )
            return None if row is None else self._row_to_submission(row)

    async def find_task_by_pr_url(self, pr_url: str) -> Task | None:
        async with self._lock:
            row = await self._fetch_one(
                """
                SELECT t.* FROM tasks t
                JOIN submissions s ON s.task_id = t.id
                WHERE s.pr_url = ? AND t.state = ?
                ORDER BY s.submitted_at
                LIMIT 1
                """,
                (pr_url, TaskState.PENDING_REVIEW.value),
            )
            if row is None:
                return None
            deps = await self._load_dependencies([row["id"]])
            return self._row_to_task(row, deps[row["id"]])

    # ---- 状态流转 ----

    async def create_task(self, project: str, spec: TaskCreate) -> Task:
        now = _utcnow()
        async with self._write():
            await self._require_project(project)
            await self._check_dependencies(None, spec.dependencies)
            prefix = default_prefix(project)
            task_id = generate_id(await self._existing_ids(prefix), prefix)
            task = build_task(project, task_id, spec, now)
            await self._insert_task(task)
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
        """open -> in_progress 的条件更新，零行命中即 ConflictError"""
        now = _utcnow()
        guard = _DEPENDENCIES_CLOSED_GUARD if require_dependencies_closed else ""
        async with self._write():
            rows = await self._fetch_all(
                f"""
                UPDATE tasks
                SET state = ?, claimed_by = ?, updated_at = MAX(updated_at, ?)
                WHERE id = ? AND project = ? AND state = ?{guard}
                RETURNING id
                """,
                (
                    TaskState.IN_PROGRESS.value,
                    bee,
                    _ts(now),
                    task_id,
                    project,
                    TaskState.OPEN.value,
                ),
            )
            if not rows:
                current = await self._require_task(project, task_id)
                if current.state != TaskState.OPEN:
                    target_state(TaskOperation.CLAIM, current.state, task_id)
                raise ConflictError(f"Task {task_id} has unfinished dependencies")
            task = await self._require_task(project, task_id)
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
        async with self._write():
            task = await self._require_task(project, task_id)
            new_state = target_state(TaskOperation.SUBMIT, task.state, task_id)
            stored = Submission(task_id=task_id, submitted_at=now, **submission.model_dump())
            await self._update_fields(task_id, now, state=new_state)
            await self._insert_submission(stored)
            if stored.log:
                await self._append_log(task_id, stored.log, now)

            prefix = default_prefix(project)
            review_id = generate_id(await self._existing_ids(prefix), prefix)
            await self._insert_task(build_review_task(task, stored, review_id, now))
            updated = await self._require_task(project, task_id)
        log.info("task_submitted", project=project, task_id=task_id, review_task=review_id)
        return updated

    async def approve_task(self, project: str, task_id: str) -> Task:
        """批准提交；没有提交时原样返回任务"""
        now = _utcnow()
        async with self._write():
            task = await self._require_task(project, task_id)
            submission = await self._fetch_submission(task_id)
            if submission is None:
                return task
            new_state = target_state(TaskOperation.APPROVE, task.state, task_id)
            await self._update_fields(
                task_id,
                now,
                state=new_state,
                summary=submission.summary,
                details=submission.details,
                pr_url=submission.pr_url,
            )
            await self._close_review_tasks(task_id, now)

            prefix = default_prefix(project)
            existing = await self._existing_ids(prefix)
            follow_up_ids: list[str] = []
            for spec in submission.follow_up_tasks:
                follow_up_id = generate_id(existing, prefix)
                existing.add(follow_up_id)
                await self._insert_task(
                    build_task(project, follow_up_id, spec, now, parent_task=task_id)
                )
                follow_up_ids.append(follow_up_id)

            await self._conn.execute("DELETE FROM submissions WHERE task_id = ?", (task_id,))
            updated = await self._require_task(project, task_id)
        log.info(
            "task_approved",
            project=project,
            task_id=task_id,
            follow_up_tasks=follow_up_ids,
        )
        return updated

    async def reject_task(self, project: str, task_id: str, reason: str) -> Task:
        now = _utcnow()
        async with self._write():
            task = await self._require_task(project, task_id)
            new_state = target_state(TaskOperation.REJECT, task.state, task_id)
            await self._update_fields(task_id, now, state=new_state, claimed_by=None)
            await self._withdraw_submission(task_id, now, rejection_summary(reason))
            updated = await self._require_task(project, task_id)
        log.info("task_rejected", project=project, task_id=task_id)
        return updated

    async def fail_task(
        self,
        project: str,
        task_id: str,
        error: str,
        details: str | None = None,
    ) -> Task:
        now = _utcnow()
        async with self._write():
            task = await self._require_task(project, task_id)
            new_state = target_state(TaskOperation.FAIL, task.state, task_id)
            if task.state == TaskState.PENDING_REVIEW:
                await self._withdraw_submission(
                    task_id, now, WITHDRAWN_SUMMARIES[TaskOperation.FAIL]
                )
            await self._update_fields(
                task_id, now, state=new_state, summary=error, details=details
            )
            updated = await self._require_task(project, task_id)
        log.info("task_failed", project=project, task_id=task_id)
        return updated

    async def block_task(self, project: str, task_id: str, reason: str) -> Task:
        now = _utcnow()
        async with self._write():
            task = await self._require_task(project, task_id)
            new_state = target_state(TaskOperation.BLOCK, task.state, task_id)
            if task.state == TaskState.PENDING_REVIEW:
                await self._withdraw_submission(
                    task_id, now, WITHDRAWN_SUMMARIES[TaskOperation.BLOCK]
                )
            await self._update_fields(task_id, now, state=new_state, status=reason)
            updated = await self._require_task(project, task_id)
        log.info("task_blocked", project=project, task_id=task_id)
        return updated

    async def reopen_task(self, project: str, task_id: str) -> Task:
        now = _utcnow()
        async with self._write():
            task = await self._require_task(project, task_id)
            new_state = target_state(TaskOperation.REOPEN, task.state, task_id)
            await self._update_fields(task_id, now, state=new_state, claimed_by=None)
            updated = await self._require_task(project, task_id)
        log.info("task_reopened", project=project, task_id=task_id)
        return updated

    async def release_task(self, project: str, task_id: str) -> Task:
        now = _utcnow()
        async with self._write():
            task = await self._require_task(project, task_id)
            new_state = target_state(TaskOperation.RELEASE, task.state, task_id)
            if task.state == TaskState.PENDING_REVIEW:
                await self._withdraw_submission(
                    task_id, now, WITHDRAWN_SUMMARIES[TaskOperation.RELEASE]
                )
            await self._update_fields(task_id, now, state=new_state, claimed_by=None)
            updated = await self._require_task(project, task_id)
        log.info("task_released", project=project, task_id=task_id)
        return updated

    async def update_task(self, project: str, task_id: str, update: TaskUpdate) -> Task:
        changes = update.changes()
        if not changes:
            raise ValidationError("No fields to update")
        dependencies = changes.pop("dependencies", None)
        now = _utcnow()
        async with self._write():
            await self._require_task(project, task_id)
            if dependencies is not None:
                await self._check_dependencies(task_id, dependencies)
                await self._replace_dependencies(task_id, dependencies)
            await self._update_fields(task_id, now, **changes)
            updated = await self._require_task(project, task_id)
        log.info("task_updated", project=project, task_id=task_id)
        return updated

    # ---- 日志 ----

    async def append_task_log(self, project: str, task_id: str, content: str) -> int:
        async with self._write():
            await self._require_task(project, task_id)
            return await self._append_log(task_id, content, _utcnow())

    async def get_task_log(self, project: str, task_id: str) -> list[str]:
        async with self._lock:
            await self._require_task(project, task_id)
            rows = await self._fetch_all(
                "SELECT content FROM task_logs WHERE task_id = ? ORDER BY attempt",
                (task_id,),
            )
            return [row["content"] for row in rows]

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
        project = Project(name=name, repo=repo, config=config, created_at=now, updated_at=now)
        key = generate_key(KeyRole.ADMIN)
        async with self._write():
            row = await self._fetch_one("SELECT 1 FROM projects WHERE name = ?", (name,))
            if row is not None:
                raise ConflictError(f"Project {name} already exists")
            await self._conn.execute(
                "INSERT INTO projects (name, repo, config, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (name, repo, config, _ts(now), _ts(now)),
            )
            await self._insert_api_key(
                ApiKey(
                    key_hash=hash_key(key),
                    project=name,
                    role=KeyRole.ADMIN,
                    label="bootstrap",
                    created_at=now,
                )
            )
        log.info("project_created", project=name)
        return project, key

    async def _insert_api_key(self, api_key: ApiKey) -> None:
        await self._conn.execute(
            "INSERT INTO api_keys (key_hash, project, role, label, created_at, last_used_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                api_key.key_hash,
                api_key.project,
                api_key.role.value,
                api_key.label,
                _ts(api_key.created_at),
                None,
            ),
        )

    async def get_project(self, name: str) -> Project | None:
        async with self._lock:
            row = await self._fetch_one("SELECT * FROM projects WHERE name = ?", (name,))
            return None if row is None else self._row_to_project(row)

    async def list_projects(self) -> list[str]:
        async with self._lock:
            rows = await self._fetch_all("SELECT name FROM projects ORDER BY name")
            return [row["name"] for row in rows]

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
        async with self._write():
            await self._require_project(project)
            await self._insert_api_key(api_key)
        log.info("api_key_created", project=project, role=api_key.role.value)
        return key, api_key

    async def list_api_keys(self, project: str) -> list[ApiKey]:
        async with self._lock:
            rows = await self._fetch_all(
                "SELECT * FROM api_keys WHERE project = ? ORDER BY created_at, rowid",
                (project,),
            )
            return [self._row_to_api_key(row) for row in rows]

    async def revoke_api_key(self, project: str, key_hash: str) -> bool:
        async with self._write():
            cursor = await self._conn.execute(
                "DELETE FROM api_keys WHERE key_hash = ? AND project = ?",
                (key_hash, project),
            )
            revoked = cursor.rowcount > 0
        if revoked:
            log.info("api_key_revoked", project=project)
        return revoked

    async def authenticate(self, key_hash: str) -> ApiKey | None:
        async with self._write():
            rows = await self._fetch_all(
                "UPDATE api_keys SET last_used_at = ? WHERE key_hash = ? RETURNING *",
                (_ts(_utcnow()), key_hash),
            )
        return self._row_to_api_key(rows[0]) if rows else None

    # ---- 导入导出 ----

    async def dump_project(self, project: str) -> ProjectDump:
        async with self._lock:
            await self._require_project(project)
            rows = await self._fetch_all(
                "SELECT * FROM tasks WHERE project = ? ORDER BY created_at, rowid",
                (project,),
            )
            tasks = await self._rows_to_tasks(rows)
            submission_rows = await self._fetch_all(
                """
                SELECT s.* FROM submissions s
                JOIN tasks t ON t.id = s.task_id
                WHERE t.project = ?
                ORDER BY s.submitted_at
                """,
                (project,),
            )
            log_rows = await self._fetch_all(
                """
                SELECT l.task_id, l.content FROM task_logs l
                JOIN tasks t ON t.id = l.task_id
                WHERE t.project = ?
                ORDER BY l.task_id, l.attempt
                """,
                (project,),
            )
        logs: dict[str, list[str]] = {}
        for row in log_rows:
            logs.setdefault(row["task_id"], []).append(row["content"])
        return ProjectDump(
            project=project,
            tasks=tasks,
            submissions=[self._row_to_submission(row) for row in submission_rows],
            logs=logs,
        )

    async def load_project(self, project: str, dump: ProjectDump, replace: bool = False) -> None:
        """导入任务、提交与日志；replace 时先清空项目现有任务"""
        async with self._write():
            await self._require_project(project)
            if replace:
                await self._conn.execute("DELETE FROM tasks WHERE project = ?", (project,))
            for task in dump.tasks:
                await self._insert_task(task.model_copy(update={"project": project}))
            for submission in dump.submissions:
                await self._insert_submission(submission)
            now = _utcnow()
            for task_id, entries in dump.logs.items():
                for content in entries:
                    await self._append_log(task_id, content, now)
        log.info("project_loaded", project=project, tasks=len(dump.tasks), replace=replace)

    # ---- 生命周期 ----

    async def ping(self) -> None:
        async with self._lock:
            await self._fetch_one("SELECT 1")

    async def close(self) -> None:
        await self._conn.close()
