"""项目路由

POST /projects 是公开的引导接口：创建项目并返回一次性 admin 密钥。
其余接口仅 admin 可用。
"""

from beehive.core.exceptions import ProjectNotFoundError
from beehive.core.models import Project, ProjectDump
from beehive.core.store import TaskStore
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..deps import get_store

router = APIRouter()


class CreateProjectRequest(BaseModel):
    name: str = Field(min_length=1, description="项目名")
    repo: str = Field(default="", description="源码仓库引用")
    config: str = Field(default="", description="不透明配置")


class CreateProjectResponse(BaseModel):
    project: Project
    admin_key: str = Field(description="bootstrap admin 密钥明文，仅返回一次")


class SuccessResponse(BaseModel):
    success: bool = True


@router.post("/projects", response_model=CreateProjectResponse, status_code=201)
async def create_project(
    body: CreateProjectRequest,
    store: TaskStore = Depends(get_store),
):
    project, admin_key = await store.create_project(body.name, body.repo, body.config)
    return CreateProjectResponse(project=project, admin_key=admin_key)


@router.get("/projects", response_model=list[str])
async def list_projects(store: TaskStore = Depends(get_store)):
    return await store.list_projects()


@router.get("/projects/{name}", response_model=Project)
async def get_project(name: str, store: TaskStore = Depends(get_store)):
    project = await store.get_project(name)
    if project is None:
        raise ProjectNotFoundError(name)
    return project


@router.get("/projects/{name}/dump", response_model=ProjectDump)
async def dump_project(name: str, store: TaskStore = Depends(get_store)):
    """导出项目的任务、提交与日志"""
    return await store.dump_project(name)


@router.post("/projects/{name}/load", response_model=SuccessResponse)
async def load_project(
    name: str,
    body: ProjectDump,
    replace: bool = Query(default=False, description="先清空项目现有任务"),
    store: TaskStore = Depends(get_store),
):
    """导入项目导出；任务 ID 冲突时整体失败（409）"""
    await store.load_project(name, body, replace=replace)
    return SuccessResponse()
