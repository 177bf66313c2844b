"""标识符生成 -- 任务 ID 与 API 密钥

任务 ID 格式为 ``<prefix>-<suffix>``，后缀由小写字母和数字组成。
生成时对照已占用 ID 集合重试，超过上限抛出 GenerationExhaustedError，
不依赖计数器或协调服务。
"""

import hashlib
import re
import secrets
from collections.abc import Container

from .config import ID_MAX_ATTEMPTS, ID_SUFFIX_LENGTH
from .exceptions import GenerationExhaustedError

ID_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
FALLBACK_PREFIX = "bh"
PREFIX_MAX_LENGTH = 10

_NON_ALNUM = re.compile(r"[^a-z0-9]")

# 密钥前缀按角色区分，便于人工识别泄露的密钥类型
_KEY_PREFIXES = {
    "admin": "bh_ak_",
    "bee": "bh_bk_",
}


def default_prefix(name: str) -> str:
    """将项目名规整为 ID 前缀：小写、仅保留字母数字、最长 10 位"""
    sanitized = _NON_ALNUM.sub("", name.lower())[:PREFIX_MAX_LENGTH]
    return sanitized or FALLBACK_PREFIX


def generate_id(
    existing_ids: Container[str],
    prefix: str | None = None,
    *,
    suffix_length: int = ID_SUFFIX_LENGTH,
    max_attempts: int = ID_MAX_ATTEMPTS,
) -> str:
    """生成不与 existing_ids 冲突的 ID

    Args:
        existing_ids: 已占用的 ID 集合
        prefix: ID 前缀，缺省为 "bh"
        suffix_length: 随机后缀长度
        max_attempts: 最大尝试次数

    Returns:
        新 ID

    Raises:
        GenerationExhaustedError: 尝试次数耗尽
    """
    id_prefix = prefix or FALLBACK_PREFIX
    for _ in range(max_attempts):
        suffix = "".join(secrets.choice(ID_ALPHABET) for _ in range(suffix_length))
        candidate = f"{id_prefix}-{suffix}"
        if candidate not in existing_ids:
            return candidate
    raise GenerationExhaustedError(id_prefix, max_attempts)


def generate_key(role: str) -> str:
    """生成明文 API 密钥（仅在创建时返回一次）"""
    try:
        key_prefix = _KEY_PREFIXES[role]
    except KeyError:
        raise ValueError(f"Unknown key role: {role}") from None
    return f"{key_prefix}{secrets.token_hex(24)}"


def hash_key(key: str) -> str:
    """计算密钥的 sha256 摘要，存储层只保存摘要"""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()
