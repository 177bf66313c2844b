"""任务路由

查询、创建、修改、认领、提交、评审与日志接口。
所有任务接口都要求 project（GET 走 query，其余走 JSON body），
bee 密钥的项目作用域检查依赖此约定。
"""

from beehive.core.models import (
    SubmissionCreate,
    Task,
    TaskCreate,
    TaskState,
    TaskUpdate,
)
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from starlette.responses import Response

from ..deps import get_task_service
from ..services.task_service import TaskService

router = APIRouter()


class ProjectScoped(BaseModel):
    """带 project 的请求体基类"""

    project: str = Field(min_length=1, description="项目名")


class CreateTaskRequest(TaskCreate):
    project: str = Field(min_length=1)


class UpdateTaskRequest(TaskUpdate):
    project: str = Field(min_length=1)

    def to_update(self) -> TaskUpdate:
        """去掉 project，保留“是否显式设置”的信息"""
        return TaskUpdate.model_validate(
            self.model_dump(exclude_unset=True, exclude={"project"})
        )


class StatusRequest(ProjectScoped):
    status: str


class ClaimRequest(ProjectScoped):
    bee: str | None = Field(default=None, description="认领者标识")


class NextTaskRequest(ProjectScoped):
    roles: list[str] | None = Field(default=None, description="角色过滤")
    bee: str | None = None


class NextTaskResponse(BaseModel):
    task: Task


class SubmitRequest(SubmissionCreate):
    project: str = Field(min_length=1)

    def to_submission(self) -> SubmissionCreate:
        return SubmissionCreate.model_validate(self.model_dump(exclude={"project"}))


class RejectRequest(ProjectScoped):
    reason: str = Field(min_length=1)


class FailRequest(ProjectScoped):
    error: str = Field(min_length=1)
    details: str | None = None


class BlockRequest(ProjectScoped):
    reason: str = Field(min_length=1)


class LogRequest(ProjectScoped):
    content: str = Field(min_length=1)


class LogAppendResponse(BaseModel):
    attempt: int


# ---- 查询 ----


@router.get("/tasks", response_model=list[Task])
async def list_tasks(
    project: str = Query(min_length=1, description="项目名"),
    state: TaskState | None = Query(default=None, description="按状态筛选"),
    role: str | None = Query(default=None, description="按角色筛选"),
    service: TaskService = Depends(get_task_service),
):
    """查询项目任务，按创建顺序返回"""
    return await service.list_tasks(project, state=state, role=role)


@router.get("/tasks/{task_id}", response_model=Task)
async def get_task(
    task_id: str,
    project: str = Query(min_length=1),
    service: TaskService = Depends(get_task_service),
):
    return await service.get_task(project, task_id)


@router.get("/tasks/{task_id}/log", response_model=list[str])
async def get_task_log(
    task_id: str,
    project: str = Query(min_length=1),
    service: TaskService = Depends(get_task_service),
):
    return await service.get_log(project, task_id)


# ---- 创建与修改 ----


@router.post("/tasks", response_model=Task, status_code=201)
async def create_task(
    body: CreateTaskRequest,
    service: TaskService = Depends(get_task_service),
):
    spec = TaskCreate.model_validate(body.model_dump(exclude={"project"}))
    return await service.create_task(body.project, spec)


@router.patch("/tasks/{task_id}", response_model=Task)
async def update_task(
    task_id: str,
    body: UpdateTaskRequest,
    service: TaskService = Depends(get_task_service),
):
    """修改非状态字段，未出现在请求体中的字段保持不变"""
    return await service.update_task(body.project, task_id, body.to_update())


@router.patch("/tasks/{task_id}/status", response_model=Task)
async def update_task_status(
    task_id: str,
    body: StatusRequest,
    service: TaskService = Depends(get_task_service),
):
    """只修改自由文本 status 字段"""
    return await service.update_task(body.project, task_id, TaskUpdate(status=body.status))


@router.post("/tasks/{task_id}/log", response_model=LogAppendResponse, status_code=201)
async def append_task_log(
    task_id: str,
    body: LogRequest,
    service: TaskService = Depends(get_task_service),
):
    attempt = await service.append_log(body.project, task_id, body.content)
    return LogAppendResponse(attempt=attempt)


# ---- 认领与执行 ----


@router.post("/tasks/next", response_model=NextTaskResponse)
async def claim_next_task(
    body: NextTaskRequest,
    service: TaskService = Depends(get_task_service),
):
    """认领下一个可执行任务；没有可用任务时返回 204"""
    task = await service.claim_next(body.project, body.roles, body.bee)
    if task is None:
        return Response(status_code=204)
    return NextTaskResponse(task=task)


@router.post("/tasks/{task_id}/claim", response_model=Task)
async def claim_task(
    task_id: str,
    body: ClaimRequest,
    service: TaskService = Depends(get_task_service),
):
    return await service.claim_task(body.project, task_id, body.bee)


@router.post("/tasks/{task_id}/release", response_model=Task)
async def release_task(
    task_id: str,
    body: ProjectScoped,
    service: TaskService = Depends(get_task_service),
):
    return await service.release_task(body.project, task_id)


@router.post("/tasks/{task_id}/reopen", response_model=Task)
async def reopen_task(
    task_id: str,
    body: ProjectScoped,
    service: TaskService = Depends(get_task_service),
):
    return await service.reopen_task(body.project, task_id)


@router.post("/tasks/{task_id}/submit", response_model=Task)
async def submit_task(
    task_id: str,
    body: SubmitRequest,
    service: TaskService = Depends(get_task_service),
):
    return await service.submit_task(body.project, task_id, body.to_submission())


@router.post("/tasks/{task_id}/fail", response_model=Task)
async def fail_task(
    task_id: str,
    body: FailRequest,
    service: TaskService = Depends(get_task_service),
):
    return await service.fail_task(body.project, task_id, body.error, body.details)


@router.post("/tasks/{task_id}/block", response_model=Task)
async def block_task(
    task_id: str,
    body: BlockRequest,
    service: TaskService = Depends(get_task_service),
):
    return await service.block_task(body.project, task_id, body.reason)


# ---- 评审 ----


@router.post("/tasks/{task_id}/approve", response_model=Task)
async def approve_task(
    task_id: str,
    body: ProjectScoped,
    service: TaskService = Depends(get_task_service),
):
    """批准提交；PR 合并失败返回 502 且任务状态不变"""
    return await service.approve_task(body.project, task_id)


@router.post("/tasks/{task_id}/reject", response_model=Task)
async def reject_task(
    task_id: str,
    body: RejectRequest,
    service: TaskService = Depends(get_task_service),
):
    return await service.reject_task(body.project, task_id, body.reason)
