"""Beehive Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    OPERATION_RULES,
    VALID_TRANSITIONS,
    KeyRole,
    TaskOperation,
    TaskState,
    allowed_sources,
    target_state,
    validate_transition,
)
from .project import ApiKey, Project, ProjectDump
from .submission import Submission, SubmissionCreate
from .task import Task, TaskCreate, TaskUpdate

__all__ = [
    # 枚举
    "TaskState",
    "TaskOperation",
    "KeyRole",
    # 状态机
    "OPERATION_RULES",
    "VALID_TRANSITIONS",
    "validate_transition",
    "allowed_sources",
    "target_state",
    # Task
    "Task",
    "TaskCreate",
    "TaskUpdate",
    # Submission
    "Submission",
    "SubmissionCreate",
    # Project / ApiKey
    "Project",
    "ApiKey",
    "ProjectDump",
]
