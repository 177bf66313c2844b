"""TraceMiddleware -- 任务级日志上下文

从 /tasks/{task_id}/... 路径中提取 task_id 绑定到 structlog contextvars，
同一任务的所有请求日志可按 task_id 聚合。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# /tasks/ 之后不是任务 ID 的固定段
_RESERVED_SEGMENTS = frozenset({"next"})


def task_id_from_path(path: str) -> str | None:
    """提取 /tasks/{task_id} 中的 task_id，其余路径返回 None"""
    parts = [part for part in path.split("/") if part]
    if len(parts) >= 2 and parts[0] == "tasks" and parts[1] not in _RESERVED_SEGMENTS:
        return parts[1]
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件 -- 为任务操作绑定 task_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        task_id = task_id_from_path(request.url.path)
        if task_id:
            structlog.contextvars.bind_contextvars(task_id=task_id)

        return await call_next(request)
