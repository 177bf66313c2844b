"""SQLite 数据库初始化

PRAGMA 配置 + 六张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

from ..config import SQLITE_BUSY_TIMEOUT_MS

# projects 表 DDL
_PROJECTS_DDL = """
CREATE TABLE IF NOT EXISTS projects (
    name        TEXT PRIMARY KEY,
    repo        TEXT NOT NULL DEFAULT '',
    config      TEXT NOT NULL DEFAULT '',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    id            TEXT PRIMARY KEY,
    project       TEXT NOT NULL,
    description   TEXT NOT NULL,
    state         TEXT NOT NULL DEFAULT 'open',
    role          TEXT,
    priority      INTEGER NOT NULL DEFAULT 2,
    claimed_by    TEXT,
    parent_task   TEXT,
    reviews_task  TEXT,
    summary       TEXT,
    details       TEXT,
    status        TEXT,
    pr_url        TEXT,
    test_command  TEXT,
    session_id    TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,

    FOREIGN KEY (project) REFERENCES projects(name)
);
"""

_TASKS_INDEXES = [
    # claim-next 候选扫描
    "CREATE INDEX IF NOT EXISTS idx_tasks_project_state "
    "ON tasks(project, state, priority, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_reviews_task ON tasks(reviews_task);",
]

# task_dependencies 表 DDL（depends_on 不加外键：允许悬空依赖）
_DEPENDENCIES_DDL = """
CREATE TABLE IF NOT EXISTS task_dependencies (
    task_id     TEXT NOT NULL,
    depends_on  TEXT NOT NULL,

    PRIMARY KEY (task_id, depends_on),
    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
);
"""

_DEPENDENCIES_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_task_dependencies_depends_on ON task_dependencies(depends_on);",
]

# submissions 表 DDL
_SUBMISSIONS_DDL = """
CREATE TABLE IF NOT EXISTS submissions (
    task_id          TEXT PRIMARY KEY,
    pr_url           TEXT NOT NULL,
    summary          TEXT NOT NULL,
    details          TEXT,
    follow_up_tasks  TEXT NOT NULL DEFAULT '[]',
    log              TEXT,
    submitted_at     TEXT NOT NULL,

    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
);
"""

_SUBMISSIONS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_submissions_pr_url ON submissions(pr_url);",
]

# api_keys 表 DDL
_API_KEYS_DDL = """
CREATE TABLE IF NOT EXISTS api_keys (
    key_hash      TEXT PRIMARY KEY,
    project       TEXT NOT NULL,
    role          TEXT NOT NULL,
    label         TEXT,
    created_at    TEXT NOT NULL,
    last_used_at  TEXT,

    FOREIGN KEY (project) REFERENCES projects(name)
);
"""

_API_KEYS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_api_keys_project ON api_keys(project);",
]

# task_logs 表 DDL
_TASK_LOGS_DDL = """
CREATE TABLE IF NOT EXISTS task_logs (
    task_id     TEXT NOT NULL,
    attempt     INTEGER NOT NULL,
    content     TEXT NOT NULL,
    created_at  TEXT NOT NULL,

    PRIMARY KEY (task_id, attempt),
    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
);
"""


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute(f"PRAGMA busy_timeout = {int(SQLITE_BUSY_TIMEOUT_MS)};")

    # 创建表
    for ddl in (
        _PROJECTS_DDL,
        _TASKS_DDL,
        _DEPENDENCIES_DDL,
        _SUBMISSIONS_DDL,
        _API_KEYS_DDL,
        _TASK_LOGS_DDL,
    ):
        await conn.execute(ddl)

    # 创建索引
    for idx_sql in (
        _TASKS_INDEXES + _DEPENDENCIES_INDEXES + _SUBMISSIONS_INDEXES + _API_KEYS_INDEXES
    ):
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
