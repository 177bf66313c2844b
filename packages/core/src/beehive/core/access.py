"""访问控制规则表

以声明式的 (method, route 模板) 表描述各角色可访问的路由，
在请求分发时只检查一次：
- 公开路由无需凭证
- admin 密钥可访问所有路由，不受项目限制
- bee 密钥只能访问 BEE_ROUTES 中的路由，且请求中的 project 必须等于密钥绑定项目
"""

from dataclasses import dataclass

from .exceptions import ForbiddenError, UnauthorizedError
from .models import ApiKey, KeyRole


@dataclass(frozen=True)
class RouteRule:
    """单条路由规则，route 为路由模板（如 /tasks/{task_id}/claim）"""

    method: str
    route: str


PUBLIC_ROUTES: frozenset[RouteRule] = frozenset(
    {
        RouteRule("POST", "/projects"),
        RouteRule("POST", "/webhooks/github"),
        RouteRule("GET", "/health"),
        RouteRule("GET", "/ready"),
    }
)

BEE_ROUTES: frozenset[RouteRule] = frozenset(
    {
        RouteRule("GET", "/tasks"),
        RouteRule("GET", "/tasks/{task_id}"),
        RouteRule("POST", "/tasks/next"),
        RouteRule("POST", "/tasks/{task_id}/claim"),
        RouteRule("POST", "/tasks/{task_id}/submit"),
        RouteRule("POST", "/tasks/{task_id}/fail"),
        RouteRule("POST", "/tasks/{task_id}/block"),
        RouteRule("GET", "/tasks/{task_id}/log"),
        RouteRule("PATCH", "/tasks/{task_id}"),
        RouteRule("PATCH", "/tasks/{task_id}/status"),
    }
)

BEARER_PREFIX = "Bearer "


def is_public(method: str, route: str) -> bool:
    return RouteRule(method.upper(), route) in PUBLIC_ROUTES


def extract_bearer(authorization: str | None) -> str:
    """从 Authorization 头提取 bearer 凭证

    Raises:
        UnauthorizedError: 头缺失或格式不符
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise UnauthorizedError()
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise UnauthorizedError()
    return token


def check_access(
    api_key: ApiKey | None,
    method: str,
    route: str,
    project: str | None,
) -> None:
    """校验密钥是否可以访问指定路由

    Args:
        api_key: 已通过摘要查到的密钥记录，None 表示凭证无效
        method: HTTP 方法
        route: 匹配到的路由模板
        project: 请求 query 或 body 中携带的 project，缺失视为不匹配

    Raises:
        UnauthorizedError: 凭证无效
        ForbiddenError: 角色不允许访问该路由，或项目作用域不匹配
    """
    if api_key is None:
        raise UnauthorizedError()

    if api_key.role == KeyRole.ADMIN:
        return

    if RouteRule(method.upper(), route) not in BEE_ROUTES:
        raise ForbiddenError()

    if project != api_key.project:
        raise ForbiddenError("Forbidden: Project mismatch")
