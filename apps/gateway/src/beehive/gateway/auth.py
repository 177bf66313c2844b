"""访问控制依赖 -- 在应用级别对每个请求检查一次

按匹配到的路由模板查 beehive.core.access 规则表：
公开路由直接放行；其余路由要求 bearer 密钥，
bee 密钥还要求请求的 project（JSON body 优先，其次 query）与密钥绑定项目一致。
"""

from beehive.core.access import check_access, extract_bearer, is_public
from beehive.core.exceptions import ForbiddenError, UnauthorizedError
from beehive.core.ids import hash_key
from beehive.core.models import ApiKey
from beehive.core.store import TaskStore
from fastapi import Depends, Request

from .deps import get_store


def route_template(request: Request) -> str:
    """当前请求匹配到的路由模板（如 /tasks/{task_id}/claim）"""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


async def _body_project(request: Request) -> str | None:
    if not await request.body():
        return None
    try:
        payload = await request.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("project"), str):
        return payload["project"]
    return None


async def request_project(request: Request) -> str | None:
    """读取请求作用的 project：JSON body 优先，其次 query

    写操作的路由从 body 读取 project，因此以 body 为准；
    body 与 query 同时携带且不一致时直接拒绝。

    Raises:
        ForbiddenError: body 与 query 中的 project 不一致
    """
    query_project = request.query_params.get("project")
    body_project = await _body_project(request)
    if body_project is not None and query_project and body_project != query_project:
        raise ForbiddenError("Forbidden: Project mismatch")
    return body_project or query_project


async def require_access(
    request: Request,
    store: TaskStore = Depends(get_store),
) -> ApiKey | None:
    """校验凭证与路由权限，通过后将密钥记录挂到 request.state.api_key

    Raises:
        UnauthorizedError: 缺少或无效的 bearer 密钥
        ForbiddenError: 角色不允许访问该路由或项目不匹配
    """
    template = route_template(request)
    if is_public(request.method, template):
        request.state.api_key = None
        return None

    token = extract_bearer(request.headers.get("Authorization"))
    api_key = await store.authenticate(hash_key(token))
    if api_key is None:
        raise UnauthorizedError()
    check_access(api_key, request.method, template, await request_project(request))
    request.state.api_key = api_key
    return api_key
