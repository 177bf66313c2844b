"""Beehive Core 异常体系

每个异常携带机器可读的 code 与 retryable 标记，
调用方据此区分“可安全重试”、“请求有误”和“目标不存在”三类失败。
"""


class BeehiveError(Exception):
    """Core 包基础异常"""

    code: str = "BEEHIVE_ERROR"

    def __init__(self, message: str, retryable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            retryable: 原样重试是否安全
        """
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class NotFoundError(BeehiveError):
    """项目、任务或密钥不存在"""

    code = "NOT_FOUND"

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


class TaskNotFoundError(NotFoundError):
    """(project, task_id) 组合不存在"""

    code = "TASK_NOT_FOUND"

    def __init__(self, project: str, task_id: str) -> None:
        super().__init__(f"Task {task_id} does not exist in project {project}")
        self.project = project
        self.task_id = task_id


class ProjectNotFoundError(NotFoundError):
    """项目不存在"""

    code = "PROJECT_NOT_FOUND"

    def __init__(self, project: str) -> None:
        super().__init__(f"Project {project} does not exist")
        self.project = project


class ConflictError(BeehiveError):
    """状态冲突：认领竞争失败或当前状态不允许该操作

    重新读取任务后重试是安全的。
    """

    code = "CONFLICT"

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)


class ValidationError(BeehiveError):
    """请求缺少必填字段或字段取值非法"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


class UnauthorizedError(BeehiveError):
    """凭证缺失或无效"""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, retryable=False)


class ForbiddenError(BeehiveError):
    """角色或项目作用域不允许该操作"""

    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message, retryable=False)


class GenerationExhaustedError(BeehiveError):
    """在重试上限内未能生成唯一 ID

    仅使当前操作失败，不影响进程。
    """

    code = "ID_GENERATION_EXHAUSTED"

    def __init__(self, prefix: str, attempts: int) -> None:
        super().__init__(
            f"Failed to generate unique ID with prefix {prefix!r} "
            f"after {attempts} attempts",
            retryable=True,
        )
        self.prefix = prefix
        self.attempts = attempts


class UpstreamError(BeehiveError):
    """外部系统（如 PR 合并）失败，状态机未推进"""

    code = "UPSTREAM_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)
