"""配置常量模块 -- 可通过环境变量覆盖

包含存储后端选择、数据库/JSON 文件路径、锁超时等可配置常量。
"""

import os
from pathlib import Path

# 支持的存储后端
STORE_BACKENDS: tuple[str, ...] = ("sqlite", "json")


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("BEEHIVE_DATA_DIR", "data"))


def get_store_backend() -> str:
    """获取存储后端名称（sqlite / json）"""
    backend = os.environ.get("BEEHIVE_STORE_BACKEND", "sqlite").lower()
    if backend not in STORE_BACKENDS:
        raise ValueError(
            f"Unsupported BEEHIVE_STORE_BACKEND: {backend!r} "
            f"(expected one of {', '.join(STORE_BACKENDS)})"
        )
    return backend


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "BEEHIVE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "beehive.db"),
    )


def get_hive_path() -> str:
    """获取 JSON 文档存储路径"""
    return os.environ.get(
        "BEEHIVE_HIVE_PATH",
        str(_get_base_dir() / "hive.json"),
    )


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


# JSON 文档文件锁等待上限（秒），超时视为锁竞争失败
LOCK_TIMEOUT_S: int = _int_env("BEEHIVE_LOCK_TIMEOUT_S", 10)

# SQLite busy_timeout（毫秒），跨进程写锁等待上限
SQLITE_BUSY_TIMEOUT_MS: int = _int_env("BEEHIVE_SQLITE_BUSY_TIMEOUT_MS", 5000)

# 任务默认优先级（0 最紧急，4 最低）
DEFAULT_PRIORITY: int = 2
MIN_PRIORITY: int = 0
MAX_PRIORITY: int = 4

# 自动生成的评审任务角色
REVIEW_ROLE: str = "pr_review"

# 任务 ID 后缀长度与最大重试次数
ID_SUFFIX_LENGTH: int = 4
ID_MAX_ATTEMPTS: int = 1000
