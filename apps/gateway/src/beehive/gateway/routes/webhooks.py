"""GitHub webhook 路由

唯一未认证但经签名校验的状态机入口：
签名基于原始请求体计算，先校验签名再解析 JSON。
"""

import json

import structlog
from beehive.core.exceptions import UnauthorizedError, ValidationError
from beehive.github import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    GitHubConfig,
    merged_pull_request_url,
    verify_signature,
)
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from ..deps import get_github_config, get_task_service
from ..services.task_service import TaskService

log = structlog.get_logger()

router = APIRouter()


class WebhookResponse(BaseModel):
    message: str
    task_id: str | None = None


@router.post(
    "/webhooks/github",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
)
async def github_webhook(
    request: Request,
    config: GitHubConfig = Depends(get_github_config),
    service: TaskService = Depends(get_task_service),
):
    """处理 pull_request closed + merged 事件，批准对应的待评审任务"""
    payload = await request.body()
    secret = config.webhook_secret.get_secret_value()
    if not verify_signature(payload, request.headers.get(SIGNATURE_HEADER), secret):
        log.warning("webhook_signature_invalid", secret_configured=bool(secret))
        raise UnauthorizedError("Invalid signature")

    try:
        event = json.loads(payload)
    except ValueError as e:
        raise ValidationError("Webhook payload is not valid JSON") from e
    if not isinstance(event, dict):
        raise ValidationError("Webhook payload must be a JSON object")

    pr_url = merged_pull_request_url(request.headers.get(EVENT_HEADER), event)
    if pr_url is None:
        return WebhookResponse(message="Event processed")

    task = await service.approve_merged_pull_request(pr_url)
    if task is None:
        return WebhookResponse(message="Event processed")
    return WebhookResponse(message="Submission executed", task_id=task.id)
