"""Submission Domain Model

提交记录在任务处于 pending_review 期间与任务一一对应，
任务离开 pending_review（批准/驳回/释放）时删除。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .task import TaskCreate


class SubmissionCreate(BaseModel):
    """提交输入"""

    pr_url: str = Field(min_length=1, description="Pull Request 引用")
    summary: str = Field(min_length=1, description="结果摘要")
    details: str | None = Field(default=None, description="详细说明")
    follow_up_tasks: list[TaskCreate] = Field(
        default_factory=list,
        description="批准后派生的后续任务规格",
    )
    log: str | None = Field(default=None, description="执行日志")


class Submission(SubmissionCreate):
    """已存储的提交记录"""

    task_id: str = Field(description="被提交的任务 ID")
    submitted_at: datetime = Field(description="提交时间")
