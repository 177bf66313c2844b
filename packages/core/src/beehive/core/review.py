"""提交/评审流程的共享构造函数

两种存储后端在各自的原子边界内调用这些函数构造评审任务与后续任务，
保证 submit / approve / reject 在不同后端下产生完全相同的数据。
"""

from datetime import datetime

from .config import REVIEW_ROLE
from .models import Submission, Task, TaskCreate, TaskOperation, TaskState

# 任务在 pending_review 期间离开该状态（非批准/驳回）时，评审任务的关闭摘要
WITHDRAWN_SUMMARIES: dict[TaskOperation, str] = {
    TaskOperation.RELEASE: "Released: submission withdrawn",
    TaskOperation.FAIL: "Withdrawn: task failed",
    TaskOperation.BLOCK: "Withdrawn: task blocked",
}


def task_title(description: str) -> str:
    """描述首行"""
    stripped = description.strip()
    return stripped.splitlines()[0] if stripped else ""


def build_review_task(
    task: Task,
    submission: Submission,
    review_id: str,
    now: datetime,
) -> Task:
    """为提交构造评审任务：继承优先级，指回被评审任务"""
    return Task(
        id=review_id,
        project=task.project,
        description=f"Review: {task_title(task.description)} ({task.id})",
        state=TaskState.OPEN,
        role=REVIEW_ROLE,
        priority=task.priority,
        pr_url=submission.pr_url,
        reviews_task=task.id,
        created_at=now,
        updated_at=now,
    )


def build_task(
    project: str,
    task_id: str,
    spec: TaskCreate,
    now: datetime,
    parent_task: str | None = None,
) -> Task:
    """按规格构造新的 open 任务；parent_task 覆盖规格中的父任务"""
    return Task(
        id=task_id,
        project=project,
        description=spec.description,
        state=TaskState.OPEN,
        role=spec.role,
        priority=spec.priority,
        dependencies=list(spec.dependencies),
        parent_task=parent_task if parent_task is not None else spec.parent_task,
        test_command=spec.test_command,
        created_at=now,
        updated_at=now,
    )


def rejection_summary(reason: str) -> str:
    """驳回时写入评审任务的摘要"""
    return f"Rejected: {reason or 'No reason provided'}"


def bump(previous: datetime, now: datetime) -> datetime:
    """updated_at 单调不减"""
    return now if now >= previous else previous
