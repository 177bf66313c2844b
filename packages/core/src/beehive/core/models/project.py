"""Project / ApiKey Domain Model

项目在引导时创建并同时签发首个 admin 密钥；
密钥只保存摘要，明文仅在创建时返回一次。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import KeyRole
from .submission import Submission
from .task import Task


class Project(BaseModel):
    """项目（命名空间）"""

    name: str = Field(description="项目名，全局唯一")
    repo: str = Field(default="", description="源码仓库引用")
    config: str = Field(default="", description="不透明配置")
    created_at: datetime
    updated_at: datetime


class ApiKey(BaseModel):
    """API 密钥记录"""

    key_hash: str = Field(description="密钥 sha256 摘要")
    project: str = Field(description="绑定项目")
    role: KeyRole = Field(description="角色")
    label: str | None = Field(default=None, description="备注")
    created_at: datetime
    last_used_at: datetime | None = None


class ProjectDump(BaseModel):
    """项目导出/导入格式"""

    project: str
    tasks: list[Task] = Field(default_factory=list)
    submissions: list[Submission] = Field(default_factory=list)
    logs: dict[str, list[str]] = Field(default_factory=dict)
