"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，探测存储后端与 GitHub 配置。
"""

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证存储后端可用

    检查项：
    1. store: 后端连通性（SQLite 查询 / JSON 文档加锁读取）
    2. github: 是否配置了访问令牌（仅报告，不影响就绪）
    """
    checks: dict[str, str] = {}
    all_ok = True

    try:
        await request.app.state.store.ping()
        checks["store"] = "ok"
    except Exception as e:
        log.warning("readiness_store_failed", error=str(e))
        checks["store"] = f"error: {e}"
        all_ok = False

    github_client = getattr(request.app.state, "github_client", None)
    checks["github"] = "configured" if github_client is not None else "disabled"

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
