import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.api.deps import get_current_user, get_db, get_task_directory
from expoflow.common.pagination import PaginationParams
from expoflow.core.budget.schemas import BudgetDocumentResponse, BudgetSaveRequest, MaterialsUpdateCheck
from expoflow.core.budget.service import BudgetService
from expoflow.core.task_directory import TaskDirectory
from expoflow.core.versions.schemas import VersionCreateRequest, VersionListResponse, VersionResponse
from expoflow.db.models.user import User

router = APIRouter(prefix="/tasks/{task_id}/budget", tags=["Budget"])


@router.get("", response_model=BudgetDocumentResponse)
async def get_budget(
    task_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await BudgetService(directory).get(task_id, db)


@router.post("", response_model=BudgetDocumentResponse)
async def save_budget(
    task_id: uuid.UUID,
    body: BudgetSaveRequest,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await BudgetService(directory).save(task_id, body, current_user, db)


@router.post("/import-materials", response_model=BudgetDocumentResponse)
async def import_materials(
    task_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await BudgetService(directory).import_materials(task_id, current_user, db)


@router.get("/check-materials-update", response_model=MaterialsUpdateCheck)
async def check_materials_update(
    task_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await BudgetService(directory).check_materials_update(task_id, db)


@router.post("/submit", response_model=BudgetDocumentResponse)
async def submit_budget(
    task_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await BudgetService(directory).submit(task_id, current_user, db)


# ---------- Versions ----------


@router.get("/versions", response_model=VersionListResponse)
async def list_budget_versions(
    task_id: uuid.UUID,
    params: PaginationParams = Depends(),
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await BudgetService(directory).list_versions(task_id, params, db)


@router.post("/versions", response_model=VersionResponse, status_code=201)
async def create_budget_version(
    task_id: uuid.UUID,
    body: VersionCreateRequest | None = None,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    label = body.label if body else None
    return await BudgetService(directory).create_version(task_id, label, current_user, db)


@router.get("/versions/{version_number}", response_model=VersionResponse)
async def get_budget_version(
    task_id: uuid.UUID,
    version_number: int,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await BudgetService(directory).get_version(task_id, version_number, db)


@router.post("/versions/{version_number}/restore", response_model=BudgetDocumentResponse)
async def restore_budget_version(
    task_id: uuid.UUID,
    version_number: int,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await BudgetService(directory).restore_version(task_id, version_number, current_user, db)
