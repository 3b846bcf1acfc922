"""Loading and serializing budget documents."""

from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.common.enums import AdditionStatus, BudgetStatus
from expoflow.core.budget.schemas import (
    BUDGET_SCHEMA_VERSION,
    BudgetDocumentResponse,
    BudgetSections,
    BudgetSummary,
)
from expoflow.core.materials.documents import default_project_info
from expoflow.db.models.budget import BudgetDocument
from expoflow.db.models.budget_addition import BudgetAddition
from expoflow.db.models.enquiry import EnquiryTask


async def get_budget_document(task_id: uuid.UUID, db: AsyncSession) -> BudgetDocument | None:
    result = await db.execute(
        select(BudgetDocument).where(
            BudgetDocument.task_id == task_id,
            BudgetDocument.is_deleted.is_(False),
        )
    )
    return result.scalar_one_or_none()


async def get_or_create_budget_document(task: EnquiryTask, db: AsyncSession) -> BudgetDocument:
    budget = await get_budget_document(task.id, db)
    if budget is None:
        budget = BudgetDocument(
            task_id=task.id,
            schema_version=BUDGET_SCHEMA_VERSION,
            project_info=default_project_info(task),
            materials=[],
            labour=[],
            expenses=[],
            logistics=[],
            budget_summary=BudgetSummary().model_dump(by_alias=True),
            status=BudgetStatus.DRAFT.value,
            materials_manually_modified=False,
        )
        db.add(budget)
        await db.flush()
    return budget


def load_sections(budget: BudgetDocument) -> BudgetSections:
    return BudgetSections(
        materials=budget.materials or [],
        labour=budget.labour or [],
        expenses=budget.expenses or [],
        logistics=budget.logistics or [],
    )


def store_sections(budget: BudgetDocument, sections: BudgetSections) -> None:
    dumped = sections.model_dump(mode="json", by_alias=True)
    budget.materials = dumped["materials"]
    budget.labour = dumped["labour"]
    budget.expenses = dumped["expenses"]
    budget.logistics = dumped["logistics"]
    budget.schema_version = BUDGET_SCHEMA_VERSION


async def approved_additions_total(budget_id: uuid.UUID, db: AsyncSession) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(BudgetAddition.total_amount), 0)).where(
            BudgetAddition.budget_id == budget_id,
            BudgetAddition.status == AdditionStatus.APPROVED.value,
            BudgetAddition.is_deleted.is_(False),
        )
    )
    return Decimal(str(result.scalar() or 0))


def snapshot_payload(budget: BudgetDocument) -> dict:
    return {
        "schemaVersion": budget.schema_version,
        "projectInfo": dict(budget.project_info or {}),
        **load_sections(budget).model_dump(mode="json", by_alias=True),
        "budgetSummary": dict(budget.budget_summary or {}),
        "status": budget.status,
    }


def to_response(task: EnquiryTask, budget: BudgetDocument | None) -> BudgetDocumentResponse:
    if budget is None:
        return BudgetDocumentResponse(task_id=str(task.id), project_info=default_project_info(task))
    sections = load_sections(budget)
    return BudgetDocumentResponse(
        id=str(budget.id),
        task_id=str(task.id),
        schema_version=budget.schema_version,
        project_info=dict(budget.project_info or {}),
        materials=sections.materials,
        labour=sections.labour,
        expenses=sections.expenses,
        logistics=sections.logistics,
        budget_summary=BudgetSummary.model_validate(budget.budget_summary or {}),
        status=budget.status,
        materials_imported_at=budget.materials_imported_at,
        materials_imported_from_task=(
            str(budget.materials_imported_from_task) if budget.materials_imported_from_task else None
        ),
        materials_manually_modified=budget.materials_manually_modified,
        materials_import_metadata=budget.materials_import_metadata,
        last_saved_at=budget.last_saved_at,
    )
