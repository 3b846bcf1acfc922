import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.api.deps import get_current_user, get_db, get_pricing_config, get_task_directory
from expoflow.core.quote.schemas import (
    BudgetChangePreview,
    BudgetStatusResponse,
    PricingConfig,
    QuoteDocumentResponse,
    QuoteImportRequest,
    QuoteSaveRequest,
)
from expoflow.core.quote.service import QuoteService
from expoflow.core.task_directory import TaskDirectory
from expoflow.db.models.user import User

router = APIRouter(prefix="/tasks/{task_id}/quote", tags=["Quote"])


@router.get("", response_model=QuoteDocumentResponse)
async def get_quote(
    task_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    pricing: PricingConfig = Depends(get_pricing_config),
    db: AsyncSession = Depends(get_db),
):
    return await QuoteService(directory, pricing).get(task_id, db)


@router.post("", response_model=QuoteDocumentResponse)
async def save_quote(
    task_id: uuid.UUID,
    body: QuoteSaveRequest,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    pricing: PricingConfig = Depends(get_pricing_config),
    db: AsyncSession = Depends(get_db),
):
    return await QuoteService(directory, pricing).save(task_id, body, db)


@router.post("/import-budget", response_model=QuoteDocumentResponse)
async def import_budget(
    task_id: uuid.UUID,
    body: QuoteImportRequest | None = None,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    pricing: PricingConfig = Depends(get_pricing_config),
    db: AsyncSession = Depends(get_db),
):
    return await QuoteService(directory, pricing).import_budget(task_id, body or QuoteImportRequest(), db)


@router.get("/budget-status", response_model=BudgetStatusResponse)
async def get_budget_status(
    task_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    pricing: PricingConfig = Depends(get_pricing_config),
    db: AsyncSession = Depends(get_db),
):
    return await QuoteService(directory, pricing).budget_status(task_id, db)


@router.post("/merge-budget", response_model=QuoteDocumentResponse)
async def merge_budget(
    task_id: uuid.UUID,
    body: QuoteImportRequest | None = None,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    pricing: PricingConfig = Depends(get_pricing_config),
    db: AsyncSession = Depends(get_db),
):
    return await QuoteService(directory, pricing).merge_budget(task_id, body or QuoteImportRequest(), db)


@router.get("/preview-budget-changes", response_model=BudgetChangePreview)
async def preview_budget_changes(
    task_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    directory: TaskDirectory = Depends(get_task_directory),
    pricing: PricingConfig = Depends(get_pricing_config),
    db: AsyncSession = Depends(get_db),
):
    return await QuoteService(directory, pricing).preview_budget_changes(task_id, db)
