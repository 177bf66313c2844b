"""调度器 -- claim-next

在 TaskStore 的原子原语之上选择下一个可认领任务：
1. 筛选项目内 open 任务（可选角色过滤）
2. 按 priority 升序、created_at 升序稳定排序
3. 逐个检查依赖是否全部 closed
4. 通过存储层 CAS 认领；竞争失败则尝试下一个候选
5. 无可用任务返回 None

依赖检查是扁平的前置条件扫描，不做图遍历；
调用方制造的循环依赖只会让相关任务永远不可认领。
"""

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

import structlog

from .exceptions import ConflictError, NotFoundError
from .models import Task, TaskState

if TYPE_CHECKING:
    from .store.protocols import TaskStore

log = structlog.get_logger()


def order_candidates(
    tasks: Iterable[Task],
    roles: Iterable[str] | None = None,
) -> list[Task]:
    """筛选 open 任务并按 (priority, created_at) 稳定排序

    tasks 需按创建顺序给出，created_at 相同的任务保持该顺序。
    """
    role_filter = set(roles) if roles else None
    candidates = [
        task
        for task in tasks
        if task.state == TaskState.OPEN
        and (role_filter is None or (task.role is not None and task.role in role_filter))
    ]
    return sorted(candidates, key=lambda t: (t.priority, t.created_at))


def dependencies_satisfied(task: Task, states: Mapping[str, TaskState]) -> bool:
    """所有依赖均存在且为 closed"""
    return all(states.get(dep_id) == TaskState.CLOSED for dep_id in task.dependencies)


async def claim_next(
    store: "TaskStore",
    project: str,
    roles: list[str] | None = None,
    bee: str | None = None,
) -> Task | None:
    """认领下一个可执行任务

    Args:
        store: 任务存储
        project: 项目名
        roles: 角色过滤集合，None 或空表示不过滤
        bee: 认领者标识

    Returns:
        已认领的任务；没有可用任务（或全部被并发认领）时返回 None
    """
    open_tasks = await store.list_tasks(project, state=TaskState.OPEN)
    candidates = order_candidates(open_tasks, roles)
    if not candidates:
        return None

    dep_ids = {dep_id for task in candidates for dep_id in task.dependencies}
    states = await store.get_task_states(dep_ids) if dep_ids else {}

    for task in candidates:
        if not dependencies_satisfied(task, states):
            continue
        try:
            claimed = await store.claim_task(
                project,
                task.id,
                bee,
                require_dependencies_closed=True,
            )
        except (ConflictError, NotFoundError):
            log.info("claim_next_race_lost", project=project, task_id=task.id)
            continue
        log.info("task_claimed_next", project=project, task_id=claimed.id, bee=bee)
        return claimed

    return None
