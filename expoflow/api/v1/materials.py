import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.api.deps import get_current_user, get_db, get_task_directory
from expoflow.common.pagination import PaginationParams
from expoflow.core.materials.schemas import (
    ApprovalRequest,
    ApprovalStatus,
    MaterialsDocumentResponse,
    MaterialsSaveRequest,
    MaterialsSaveResponse,
)
from expoflow.core.materials.service import MaterialsService
from expoflow.core.task_directory import TaskDirectory
from expoflow.core.versions.schemas import VersionCreateRequest, VersionListResponse, VersionResponse
from expoflow.db.models.user import User

router = APIRouter(prefix="/tasks/{task_id}/materials", tags=["Materials"])


@router.get("", response_model=MaterialsDocumentResponse)
async def get_materials(
    task_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await MaterialsService(directory).get(task_id, db)


@router.post("", response_model=MaterialsSaveResponse)
async def save_materials(
    task_id: uuid.UUID,
    body: MaterialsSaveRequest,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await MaterialsService(directory).save(task_id, body, current_user, db)


@router.post("/approve/{department}", response_model=ApprovalStatus)
async def approve_materials(
    task_id: uuid.UUID,
    department: str,
    body: ApprovalRequest | None = None,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    comments = body.comments if body else None
    return await MaterialsService(directory).approve(task_id, department, comments, current_user, db)


# ---------- Versions ----------


@router.get("/versions", response_model=VersionListResponse)
async def list_materials_versions(
    task_id: uuid.UUID,
    params: PaginationParams = Depends(),
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await MaterialsService(directory).list_versions(task_id, params, db)


@router.post("/versions", response_model=VersionResponse, status_code=201)
async def create_materials_version(
    task_id: uuid.UUID,
    body: VersionCreateRequest | None = None,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    label = body.label if body else None
    return await MaterialsService(directory).create_version(task_id, label, current_user, db)


@router.get("/versions/{version_number}", response_model=VersionResponse)
async def get_materials_version(
    task_id: uuid.UUID,
    version_number: int,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await MaterialsService(directory).get_version(task_id, version_number, db)


@router.post("/versions/{version_number}/restore", response_model=MaterialsSaveResponse)
async def restore_materials_version(
    task_id: uuid.UUID,
    version_number: int,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await MaterialsService(directory).restore_version(task_id, version_number, current_user, db)
