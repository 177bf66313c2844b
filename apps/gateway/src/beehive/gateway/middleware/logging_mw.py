"""LoggingMiddleware -- 请求级日志

沿用调用方传入的 X-Request-ID（bee 可借此把自身日志与网关日志关联），
缺失时生成 ULID。request_id 绑定到 structlog contextvars 并写回响应头。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"

# 调用方传入的 request_id 长度上限，超出则重新生成
_MAX_REQUEST_ID_LENGTH = 128


def resolve_request_id(inbound: str | None) -> str:
    """沿用合法的入站 request_id，否则生成新的 ULID"""
    if inbound and len(inbound) <= _MAX_REQUEST_ID_LENGTH and inbound.isprintable():
        return inbound
    return str(ULID())


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        start = time.monotonic()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        log = structlog.get_logger()
        await log.ainfo("request_started")

        try:
            response = await call_next(request)
        except Exception:
            await log.aexception(
                "request_crashed",
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            raise

        duration_ms = int((time.monotonic() - start) * 1000)
        if response.status_code >= 500:
            await log.awarning(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )
        else:
            await log.ainfo(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
