"""枚举定义 -- 任务状态机、操作与密钥角色

包含 TaskState 状态机、TaskOperation、KeyRole 枚举，
以及 OPERATION_RULES 操作规则表、VALID_TRANSITIONS 合法流转映射。
"""

from enum import StrEnum

from ..exceptions import ConflictError


class TaskState(StrEnum):
    """Task 状态机"""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING_REVIEW = "pending_review"
    CLOSED = "closed"
    FAILED = "failed"
    BLOCKED = "blocked"


class TaskOperation(StrEnum):
    """驱动状态流转的操作"""

    CLAIM = "claim"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    FAIL = "fail"
    BLOCK = "block"
    REOPEN = "reopen"
    RELEASE = "release"


class KeyRole(StrEnum):
    """API 密钥角色"""

    ADMIN = "admin"
    BEE = "bee"


_ANY_STATE: frozenset[TaskState] = frozenset(TaskState)

# 操作 -> (允许的源状态, 目标状态)
OPERATION_RULES: dict[TaskOperation, tuple[frozenset[TaskState], TaskState]] = {
    TaskOperation.CLAIM: (frozenset({TaskState.OPEN}), TaskState.IN_PROGRESS),
    TaskOperation.SUBMIT: (
        frozenset({TaskState.IN_PROGRESS}),
        TaskState.PENDING_REVIEW,
    ),
    TaskOperation.APPROVE: (
        frozenset({TaskState.PENDING_REVIEW}),
        TaskState.CLOSED,
    ),
    TaskOperation.REJECT: (frozenset({TaskState.PENDING_REVIEW}), TaskState.OPEN),
    TaskOperation.FAIL: (_ANY_STATE, TaskState.FAILED),
    TaskOperation.BLOCK: (_ANY_STATE, TaskState.BLOCKED),
    TaskOperation.REOPEN: (
        frozenset({TaskState.CLOSED, TaskState.FAILED, TaskState.BLOCKED}),
        TaskState.OPEN,
    ),
    TaskOperation.RELEASE: (
        frozenset({TaskState.IN_PROGRESS, TaskState.PENDING_REVIEW}),
        TaskState.OPEN,
    ),
}


def _build_transitions() -> dict[TaskState, set[TaskState]]:
    transitions: dict[TaskState, set[TaskState]] = {state: set() for state in TaskState}
    for sources, target in OPERATION_RULES.values():
        for source in sources:
            transitions[source].add(target)
    return transitions


# 合法状态流转（由操作规则表推导）
VALID_TRANSITIONS: dict[TaskState, set[TaskState]] = _build_transitions()


def validate_transition(from_state: TaskState, to_state: TaskState) -> bool:
    """验证状态流转是否合法

    Args:
        from_state: 当前状态
        to_state: 目标状态

    Returns:
        True 如果存在某个操作实现该流转，否则 False
    """
    return to_state in VALID_TRANSITIONS.get(from_state, set())


def allowed_sources(operation: TaskOperation) -> frozenset[TaskState]:
    """返回操作允许的源状态集合"""
    return OPERATION_RULES[operation][0]


def target_state(operation: TaskOperation, current: TaskState, task_id: str) -> TaskState:
    """校验操作在当前状态下是否允许，返回目标状态

    Raises:
        ConflictError: 当前状态不允许该操作
    """
    sources, target = OPERATION_RULES[operation]
    if current not in sources:
        raise ConflictError(
            f"Cannot {operation.value} task {task_id} in state {current.value}"
        )
    return target
