"""GitHub webhook 签名校验与事件解析

签名头格式为 ``X-Hub-Signature-256: sha256=<hex>``，
对原始请求体按共享密钥计算 HMAC-SHA256，常量时间比较。
"""

import hashlib
import hmac
from typing import Any

SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"
_SIGNATURE_PREFIX = "sha256="


def compute_signature(payload: bytes, secret: str) -> str:
    """计算 sha256=<hex> 形式的签名"""
    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return f"{_SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """校验 webhook 签名；密钥或签名缺失一律视为无效"""
    if not secret or not signature or not signature.startswith(_SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(compute_signature(payload, secret), signature)


def merged_pull_request_url(event: str | None, payload: dict[str, Any]) -> str | None:
    """从 pull_request closed 事件中取出已合并 PR 的 html_url

    非 PR 合并事件返回 None。事件头缺失时仅依据 payload 判断。
    """
    if event not in (None, "pull_request"):
        return None
    if payload.get("action") != "closed":
        return None
    pull_request = payload.get("pull_request")
    if not isinstance(pull_request, dict) or pull_request.get("merged") is not True:
        return None
    html_url = pull_request.get("html_url")
    return html_url if isinstance(html_url, str) and html_url else None
