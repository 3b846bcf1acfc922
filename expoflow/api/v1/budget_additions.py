import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.api.deps import get_current_user, get_db, get_task_directory
from expoflow.core.additions.schemas import (
    AdditionCreateRequest,
    AdditionDecisionRequest,
    AdditionFromMaterialRequest,
    AdditionListResponse,
    AdditionResponse,
    AdditionUpdateRequest,
)
from expoflow.core.additions.service import AdditionService
from expoflow.core.task_directory import TaskDirectory
from expoflow.db.models.user import User

router = APIRouter(prefix="/tasks/{task_id}/budget-additions", tags=["Budget Additions"])


@router.get("", response_model=AdditionListResponse)
async def list_budget_additions(
    task_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await AdditionService(directory).list_for_task(task_id, db)


@router.post("", response_model=AdditionResponse, status_code=201)
async def create_budget_addition(
    task_id: uuid.UUID,
    body: AdditionCreateRequest,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await AdditionService(directory).create(task_id, body, current_user, db)


@router.post("/from-material", response_model=AdditionResponse, status_code=201)
async def create_budget_addition_from_material(
    task_id: uuid.UUID,
    body: AdditionFromMaterialRequest,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await AdditionService(directory).create_from_material(task_id, body, current_user, db)


@router.get("/{addition_id}", response_model=AdditionResponse)
async def get_budget_addition(
    task_id: uuid.UUID,
    addition_id: str,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await AdditionService(directory).get(task_id, addition_id, db)


@router.patch("/{addition_id}", response_model=AdditionResponse)
async def update_budget_addition(
    task_id: uuid.UUID,
    addition_id: str,
    body: AdditionUpdateRequest,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await AdditionService(directory).update(task_id, addition_id, body, current_user, db)


@router.post("/{addition_id}/approve", response_model=AdditionResponse)
async def decide_budget_addition(
    task_id: uuid.UUID,
    addition_id: str,
    body: AdditionDecisionRequest,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    return await AdditionService(directory).decide(task_id, addition_id, body, current_user, db)


@router.delete("/{addition_id}", status_code=204)
async def delete_budget_addition(
    task_id: uuid.UUID,
    addition_id: str,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    db: AsyncSession = Depends(get_db),
):
    await AdditionService(directory).delete(task_id, addition_id, current_user, db)
    return Response(status_code=204)
