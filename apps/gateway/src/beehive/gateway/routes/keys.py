"""API 密钥路由（仅 admin）"""

from beehive.core.exceptions import NotFoundError
from beehive.core.models import ApiKey, KeyRole
from beehive.core.store import TaskStore
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..deps import get_store
from .projects import SuccessResponse

router = APIRouter()


class CreateKeyRequest(BaseModel):
    project: str = Field(min_length=1)
    role: KeyRole
    label: str | None = None


class CreateKeyResponse(BaseModel):
    key: str = Field(description="密钥明文，仅返回一次")
    api_key: ApiKey


@router.post("/keys", response_model=CreateKeyResponse, status_code=201)
async def create_key(body: CreateKeyRequest, store: TaskStore = Depends(get_store)):
    key, api_key = await store.create_api_key(body.project, body.role, body.label)
    return CreateKeyResponse(key=key, api_key=api_key)


@router.get("/keys", response_model=list[ApiKey])
async def list_keys(
    project: str = Query(min_length=1),
    store: TaskStore = Depends(get_store),
):
    return await store.list_api_keys(project)


@router.delete("/keys/{key_hash}", response_model=SuccessResponse)
async def revoke_key(
    key_hash: str,
    project: str = Query(min_length=1),
    store: TaskStore = Depends(get_store),
):
    if not await store.revoke_api_key(project, key_hash):
        raise NotFoundError(f"API key {key_hash} does not exist in project {project}")
    return SuccessResponse()
