"""Task Domain Model

任务是调度和认领的基本单元。id / project 创建后不可变，
状态只能经由存储层的状态流转操作修改。
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from ..config import DEFAULT_PRIORITY, MAX_PRIORITY, MIN_PRIORITY
from .enums import TaskState


def _dedupe(ids: list[str]) -> list[str]:
    """去重并保持原始顺序"""
    return list(dict.fromkeys(ids))


class Task(BaseModel):
    """Task 数据模型"""

    id: str = Field(description="全局唯一标识，<prefix>-<suffix>")
    project: str = Field(description="所属项目")
    description: str = Field(description="任务描述，首行作为标题展示")
    state: TaskState = Field(default=TaskState.OPEN, description="当前状态")
    role: str | None = Field(default=None, description="能力标签，用于调度筛选")
    priority: int = Field(
        default=DEFAULT_PRIORITY,
        ge=MIN_PRIORITY,
        le=MAX_PRIORITY,
        description="优先级，0 最紧急",
    )
    dependencies: list[str] = Field(
        default_factory=list,
        description="前置任务 ID，全部 closed 后才可认领",
    )
    claimed_by: str | None = Field(default=None, description="当前持有者")
    parent_task: str | None = Field(default=None, description="派生此任务的父任务")
    reviews_task: str | None = Field(default=None, description="被评审的任务（仅评审任务）")
    summary: str | None = None
    details: str | None = None
    status: str | None = None
    pr_url: str | None = None
    test_command: str | None = None
    session_id: str | None = None
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    @field_validator("dependencies")
    @classmethod
    def _unique_dependencies(cls, value: list[str]) -> list[str]:
        return _dedupe(value)


class TaskCreate(BaseModel):
    """创建任务的输入，也用作提交中的后续任务规格"""

    description: str = Field(min_length=1, description="任务描述")
    role: str | None = None
    priority: int = Field(default=DEFAULT_PRIORITY, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    dependencies: list[str] = Field(default_factory=list)
    parent_task: str | None = None
    test_command: str | None = None

    @field_validator("dependencies")
    @classmethod
    def _unique_dependencies(cls, value: list[str]) -> list[str]:
        return _dedupe(value)


class TaskUpdate(BaseModel):
    """可修改字段；未设置的字段保持不变

    状态不在此列，状态只能通过流转操作修改。
    """

    description: str | None = Field(default=None, min_length=1)
    role: str | None = None
    priority: int | None = Field(default=None, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    status: str | None = None
    test_command: str | None = None
    session_id: str | None = None
    pr_url: str | None = None
    dependencies: list[str] | None = None

    @field_validator("dependencies")
    @classmethod
    def _unique_dependencies(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else _dedupe(value)

    def changes(self) -> dict:
        """返回显式设置过的字段

        description / priority / dependencies 不可置空，显式传入 null 视为未设置。
        """
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key not in _NON_NULLABLE
        }


_NON_NULLABLE = frozenset({"description", "priority", "dependencies"})
