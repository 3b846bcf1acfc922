import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.common.clock import as_utc, utcnow
from expoflow.common.enums import AdditionStatus, BudgetSyncStatus, QuoteStatus, TaskType
from expoflow.common.exceptions import NotFoundError
from expoflow.common.logging import get_logger
from expoflow.core.budget.documents import get_budget_document, load_sections
from expoflow.core.materials.documents import default_project_info
from expoflow.core.quote.schemas import (
    ApprovedAddition,
    BudgetChangePreview,
    BudgetStatusResponse,
    PricingConfig,
    QuoteDocumentResponse,
    QuoteImportRequest,
    QuoteMargins,
    QuotePayload,
    QuoteSaveRequest,
    QuoteSections,
    QuoteTotals,
)
from expoflow.core.quote.transformer import base_sections, budget_changes, carry_overrides, price_sections, reprice
from expoflow.core.task_directory import TaskDirectory
from expoflow.db.models.budget import BudgetDocument
from expoflow.db.models.budget_addition import BudgetAddition
from expoflow.db.models.enquiry import EnquiryTask
from expoflow.db.models.quote import QuoteDocument

logger = get_logger("quote.service")


async def get_quote_document(task_id: uuid.UUID, db: AsyncSession) -> QuoteDocument | None:
    result = await db.execute(
        select(QuoteDocument).where(QuoteDocument.task_id == task_id, QuoteDocument.is_deleted.is_(False))
    )
    return result.scalar_one_or_none()


async def approved_additions(budget: BudgetDocument, db: AsyncSession) -> list[ApprovedAddition]:
    result = await db.execute(
        select(BudgetAddition)
        .where(
            BudgetAddition.budget_id == budget.id,
            BudgetAddition.status == AdditionStatus.APPROVED.value,
            BudgetAddition.is_deleted.is_(False),
        )
        .order_by(BudgetAddition.approved_at.asc())
    )
    return [
        ApprovedAddition(
            id=str(row.id),
            title=row.title,
            materials=row.materials or [],
            labour=row.labour or [],
            expenses=row.expenses or [],
            logistics=row.logistics or [],
        )
        for row in result.scalars().all()
    ]


def pricing_for(quote: QuoteDocument | None, defaults: PricingConfig) -> PricingConfig:
    if quote is None or not quote.margins:
        return defaults
    return PricingConfig(
        margins=QuoteMargins.model_validate(quote.margins),
        vat_enabled=quote.vat_enabled,
        vat_percentage=float(quote.vat_percentage),
        discount_amount=float(quote.discount_amount or 0),
    )


def _apply_overrides(pricing: PricingConfig, body: QuoteImportRequest | QuoteSaveRequest) -> PricingConfig:
    updates = {}
    if body.margins is not None:
        updates["margins"] = body.margins
    if body.vat_enabled is not None:
        updates["vat_enabled"] = body.vat_enabled
    if body.vat_percentage is not None:
        updates["vat_percentage"] = body.vat_percentage
    if body.discount_amount is not None:
        updates["discount_amount"] = body.discount_amount
    return pricing.model_copy(update=updates)


def _store(quote: QuoteDocument, payload: QuotePayload, pricing: PricingConfig) -> None:
    dumped = payload.model_dump(mode="json", by_alias=True)
    quote.materials = dumped["materials"]
    quote.labour = dumped["labour"]
    quote.expenses = dumped["expenses"]
    quote.logistics = dumped["logistics"]
    quote.totals = dumped["totals"]
    quote.margins = pricing.margins.model_dump()
    quote.vat_enabled = pricing.vat_enabled
    quote.vat_percentage = Decimal(str(pricing.vat_percentage))
    quote.discount_amount = Decimal(str(pricing.discount_amount))


def _sections(quote: QuoteDocument) -> QuoteSections:
    return QuoteSections.model_validate(
        {
            "materials": quote.materials or [],
            "labour": quote.labour or [],
            "expenses": quote.expenses or [],
            "logistics": quote.logistics or [],
        }
    )


def to_response(task: EnquiryTask, quote: QuoteDocument | None, defaults: PricingConfig) -> QuoteDocumentResponse:
    if quote is None:
        return QuoteDocumentResponse(
            task_id=str(task.id),
            project_info=default_project_info(task),
            margins=defaults.margins,
            vat_enabled=defaults.vat_enabled,
            vat_percentage=defaults.vat_percentage,
            discount_amount=defaults.discount_amount,
        )
    pricing = pricing_for(quote, defaults)
    sections = _sections(quote)
    return QuoteDocumentResponse(
        id=str(quote.id),
        task_id=str(task.id),
        project_info=dict(quote.project_info or {}),
        status=quote.status,
        margins=pricing.margins,
        vat_enabled=pricing.vat_enabled,
        vat_percentage=pricing.vat_percentage,
        discount_amount=pricing.discount_amount,
        materials=sections.materials,
        labour=sections.labour,
        expenses=sections.expenses,
        logistics=sections.logistics,
        totals=QuoteTotals.model_validate(quote.totals or {}),
        budget_imported=quote.budget_imported,
        budget_imported_at=quote.budget_imported_at,
        budget_updated_at=quote.budget_updated_at,
        budget_version=quote.budget_version,
    )


class QuoteService:
    def __init__(self, directory: TaskDirectory, defaults: PricingConfig):
        self.directory = directory
        self.defaults = defaults

    async def _budget_for(self, task: EnquiryTask, db: AsyncSession) -> BudgetDocument | None:
        budget_task = await self.directory.find_sibling(task, TaskType.BUDGET)
        if not budget_task:
            return None
        return await get_budget_document(budget_task.id, db)

    async def _get_or_create(self, task: EnquiryTask, db: AsyncSession) -> QuoteDocument:
        quote = await get_quote_document(task.id, db)
        if quote is None:
            quote = QuoteDocument(
                task_id=task.id,
                project_info=default_project_info(task),
                status=QuoteStatus.DRAFT.value,
                budget_imported=False,
            )
            db.add(quote)
        return quote

    async def get(self, task_id: uuid.UUID, db: AsyncSession) -> QuoteDocumentResponse:
        task = await self.directory.require_task(task_id, TaskType.QUOTE)
        return to_response(task, await get_quote_document(task.id, db), self.defaults)

    async def _require_budget(self, task: EnquiryTask, db: AsyncSession) -> BudgetDocument:
        budget = await self._budget_for(task, db)
        if budget is None:
            raise NotFoundError("Budget data for enquiry", str(task.enquiry_id))
        return budget

    async def _require_quote(self, task: EnquiryTask, db: AsyncSession) -> QuoteDocument:
        quote = await get_quote_document(task.id, db)
        if quote is None:
            raise NotFoundError("Quote data for task", str(task.id))
        return quote

    async def _fresh_sections(
        self, budget: BudgetDocument, db: AsyncSession, previous: QuoteSections | None = None
    ) -> tuple[QuoteSections, int]:
        additions = await approved_additions(budget, db)
        sections = base_sections(load_sections(budget), additions)
        if previous is not None:
            sections = carry_overrides(sections, previous)
        return sections, len(additions)

    async def import_budget(
        self, task_id: uuid.UUID, body: QuoteImportRequest, db: AsyncSession
    ) -> QuoteDocumentResponse:
        """Rebuild the quote from the budget; line margin overrides are dropped."""
        task = await self.directory.require_task(task_id, TaskType.QUOTE)
        budget = await self._require_budget(task, db)
        quote = await self._get_or_create(task, db)
        sections, addition_count = await self._fresh_sections(budget, db)
        return await self._apply_import(task, quote, budget, sections, addition_count, body, db)

    async def merge_budget(
        self, task_id: uuid.UUID, body: QuoteImportRequest, db: AsyncSession
    ) -> QuoteDocumentResponse:
        """Re-import the budget, keeping line margin overrides of lines that survive."""
        task = await self.directory.require_task(task_id, TaskType.QUOTE)
        quote = await self._require_quote(task, db)
        budget = await self._require_budget(task, db)
        sections, addition_count = await self._fresh_sections(budget, db, previous=_sections(quote))
        return await self._apply_import(task, quote, budget, sections, addition_count, body, db)

    async def _apply_import(
        self,
        task: EnquiryTask,
        quote: QuoteDocument,
        budget: BudgetDocument,
        sections: QuoteSections,
        addition_count: int,
        body: QuoteImportRequest,
        db: AsyncSession,
    ) -> QuoteDocumentResponse:
        pricing = _apply_overrides(pricing_for(quote, self.defaults), body)
        payload = price_sections(sections, pricing)

        now = utcnow()
        _store(quote, payload, pricing)
        quote.budget_imported = True
        quote.budget_imported_at = now
        quote.budget_updated_at = budget.last_saved_at
        quote.budget_version = f"v_{budget.id}_{int(now.timestamp())}"
        await db.flush()

        logger.info(
            "Imported budget %s into quote for task %s (%d approved additions, grand total %.2f)",
            budget.id,
            task.id,
            addition_count,
            payload.totals.grand_total,
        )
        return to_response(task, quote, self.defaults)

    async def preview_budget_changes(self, task_id: uuid.UUID, db: AsyncSession) -> BudgetChangePreview:
        """What a merge import would change, priced with the quote's current margins."""
        task = await self.directory.require_task(task_id, TaskType.QUOTE)
        quote = await self._require_quote(task, db)
        budget = await self._require_budget(task, db)

        current = _sections(quote)
        sections, _ = await self._fresh_sections(budget, db, previous=current)
        proposed = price_sections(sections, pricing_for(quote, self.defaults))
        stored = QuotePayload(
            materials=current.materials,
            labour=current.labour,
            expenses=current.expenses,
            logistics=current.logistics,
            totals=QuoteTotals.model_validate(quote.totals or {}),
        )
        return budget_changes(stored, proposed)

    async def save(self, task_id: uuid.UUID, body: QuoteSaveRequest, db: AsyncSession) -> QuoteDocumentResponse:
        task = await self.directory.require_task(task_id, TaskType.QUOTE)
        quote = await self._get_or_create(task, db)
        pricing = _apply_overrides(pricing_for(quote, self.defaults), body)

        sections = _sections(quote)
        updates = {
            category: getattr(body, category)
            for category in ("materials", "labour", "expenses", "logistics")
            if getattr(body, category) is not None
        }
        if updates:
            sections = sections.model_copy(update=updates)

        _store(quote, reprice(sections, pricing), pricing)
        if body.project_info is not None:
            quote.project_info = dict(body.project_info)
        if body.status is not None:
            quote.status = body.status.value
        await db.flush()
        logger.info("Saved quote for task %s", task.id)
        return to_response(task, quote, self.defaults)

    async def budget_status(self, task_id: uuid.UUID, db: AsyncSession) -> BudgetStatusResponse:
        task = await self.directory.require_task(task_id, TaskType.QUOTE)
        budget = await self._budget_for(task, db)
        if budget is None:
            return BudgetStatusResponse(status=BudgetSyncStatus.NO_BUDGET, message="No budget data found")

        quote = await get_quote_document(task.id, db)
        budget_updated = as_utc(budget.last_saved_at)
        if quote is None or not quote.budget_imported:
            return BudgetStatusResponse(
                status=BudgetSyncStatus.OUTDATED,
                message="Budget has not been imported yet",
                budget_updated_at=budget_updated,
            )

        imported_from = as_utc(quote.budget_updated_at)
        outdated = budget_updated is not None and (imported_from is None or budget_updated > imported_from)
        return BudgetStatusResponse(
            status=BudgetSyncStatus.OUTDATED if outdated else BudgetSyncStatus.UP_TO_DATE,
            message="Budget has changed since the last import" if outdated else "Quote is up to date with the budget",
            budget_updated_at=budget_updated,
            budget_imported_at=as_utc(quote.budget_imported_at),
            budget_version=quote.budget_version,
        )
