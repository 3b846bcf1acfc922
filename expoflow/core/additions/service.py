import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.common.clock import utcnow
from expoflow.common.enums import (
    AdditionSourceType,
    AdditionStatus,
    BudgetType,
    TaskType,
)
from expoflow.common.exceptions import ConflictError, NotFoundError
from expoflow.common.logging import get_logger
from expoflow.common.money import line_total, quantize, to_decimal
from expoflow.core.additions.reconciler import (
    AdditionCandidate,
    find_candidates,
    is_backed,
    virtual_addition,
)
from expoflow.core.additions.schemas import (
    AdditionCreateRequest,
    AdditionDecisionRequest,
    AdditionFromMaterialRequest,
    AdditionLine,
    AdditionListResponse,
    AdditionResponse,
    AdditionUpdateRequest,
    PersistedRef,
    VirtualRef,
    parse_addition_ref,
)
from expoflow.core.budget.documents import get_budget_document, get_or_create_budget_document
from expoflow.core.budget.service import BudgetService
from expoflow.core.materials.documents import dump_elements, find_material, get_materials_document
from expoflow.core.task_directory import TaskDirectory
from expoflow.db.models.budget import BudgetDocument
from expoflow.db.models.budget_addition import BudgetAddition
from expoflow.db.models.enquiry import EnquiryTask
from expoflow.db.models.user import User

logger = get_logger("additions.service")

CATEGORIES = ("materials", "labour", "expenses", "logistics")
PROCESSED_STATUSES = {AdditionStatus.APPROVED.value, AdditionStatus.REJECTED.value}
OPEN_STATUSES = (AdditionStatus.DRAFT.value, AdditionStatus.PENDING_APPROVAL.value)


def _priced_lines(lines: list[AdditionLine]) -> list[dict]:
    return [
        line.model_copy(update={"total_price": line_total(line.quantity, line.unit_price)}).model_dump(
            mode="json", by_alias=True
        )
        for line in lines
    ]


def calculate_total(addition: BudgetAddition) -> Decimal:
    total = Decimal("0")
    for category in CATEGORIES:
        for line in getattr(addition, category) or []:
            total += to_decimal(line.get("totalPrice", line.get("total_price", 0)))
    return quantize(total)


def _str(value) -> str | None:
    return str(value) if value is not None else None


def addition_to_response(addition: BudgetAddition) -> AdditionResponse:
    return AdditionResponse(
        id=str(addition.id),
        budget_id=str(addition.budget_id),
        title=addition.title,
        description=addition.description,
        materials=list(addition.materials or []),
        labour=list(addition.labour or []),
        expenses=list(addition.expenses or []),
        logistics=list(addition.logistics or []),
        total_amount=float(addition.total_amount or 0),
        status=addition.status,
        budget_type=addition.budget_type,
        source_type=addition.source_type,
        source_material_id=_str(addition.source_material_id),
        source_element_id=_str(addition.source_element_id),
        created_by=_str(addition.created_by),
        approved_by=_str(addition.approved_by),
        approved_at=addition.approved_at,
        approval_notes=addition.approval_notes,
        rejected_by=_str(addition.rejected_by),
        rejected_at=addition.rejected_at,
        rejection_reason=addition.rejection_reason,
        created_at=addition.created_at,
    )


class AdditionService:
    def __init__(self, directory: TaskDirectory):
        self.directory = directory
        self.budgets = BudgetService(directory)

    # ---------- Lookups ----------

    async def _persisted(self, budget: BudgetDocument | None, db: AsyncSession) -> list[BudgetAddition]:
        if budget is None:
            return []
        result = await db.execute(
            select(BudgetAddition)
            .where(BudgetAddition.budget_id == budget.id, BudgetAddition.is_deleted.is_(False))
            .order_by(BudgetAddition.created_at.desc())
        )
        return list(result.scalars().all())

    async def _get_persisted(self, budget: BudgetDocument | None, addition_id: uuid.UUID, db: AsyncSession) -> BudgetAddition:
        addition = None
        if budget is not None:
            result = await db.execute(
                select(BudgetAddition).where(
                    BudgetAddition.id == addition_id,
                    BudgetAddition.budget_id == budget.id,
                    BudgetAddition.is_deleted.is_(False),
                )
            )
            addition = result.scalar_one_or_none()
        if not addition:
            raise NotFoundError("Budget addition", str(addition_id))
        return addition

    async def _candidates(self, task: EnquiryTask, db: AsyncSession) -> list[AdditionCandidate]:
        materials_task = await self.directory.find_sibling(task, TaskType.MATERIALS)
        if not materials_task:
            return []
        document = await get_materials_document(materials_task.id, db)
        if not document:
            return []
        return find_candidates(dump_elements(document))

    async def _get_candidate(self, task: EnquiryTask, ref: VirtualRef, db: AsyncSession) -> AdditionCandidate:
        for candidate in await self._candidates(task, db):
            if candidate.material_id == ref.material_id:
                return candidate
        raise NotFoundError("Budget addition", ref.wire_id)

    async def _open_for(self, budget: BudgetDocument, candidate: AdditionCandidate, db: AsyncSession) -> BudgetAddition | None:
        """Draft or pending row for ``candidate``, by source material first, then by title and description."""
        base = select(BudgetAddition).where(
            BudgetAddition.budget_id == budget.id,
            BudgetAddition.status.in_(OPEN_STATUSES),
            BudgetAddition.is_deleted.is_(False),
        )
        result = await db.execute(base.where(BudgetAddition.source_material_id == candidate.material_id))
        addition = result.scalars().first()
        if addition is not None:
            return addition
        result = await db.execute(
            base.where(
                BudgetAddition.source_material_id.is_(None),
                BudgetAddition.title == candidate.title,
                BudgetAddition.description == candidate.description,
            )
        )
        return result.scalars().first()

    def _materialize(self, budget: BudgetDocument, candidate: AdditionCandidate, actor: User, status: AdditionStatus) -> BudgetAddition:
        return BudgetAddition(
            budget_id=budget.id,
            title=candidate.title,
            description=candidate.description,
            materials=[candidate.material_line()],
            labour=[],
            expenses=[],
            logistics=[],
            total_amount=Decimal("0.00"),
            status=status.value,
            budget_type=BudgetType.SUPPLEMENTARY.value,
            source_type=AdditionSourceType.MATERIALS_ADDITIONAL.value,
            source_material_id=candidate.material_id,
            source_element_id=candidate.element_id,
            created_by=actor.id,
        )

    async def _respond(self, addition: BudgetAddition, db: AsyncSession) -> AdditionResponse:
        await db.flush()
        await db.refresh(addition)
        return addition_to_response(addition)

    # ---------- Operations ----------

    async def list_for_task(self, task_id: uuid.UUID, db: AsyncSession) -> AdditionListResponse:
        task = await self.directory.require_task(task_id, TaskType.BUDGET)
        budget = await get_budget_document(task.id, db)
        rows = await self._persisted(budget, db)

        additions = [addition_to_response(row) for row in rows]
        additions.extend(
            virtual_addition(candidate)
            for candidate in await self._candidates(task, db)
            if not is_backed(candidate, rows)
        )
        return AdditionListResponse(additions=additions, total=len(additions))

    async def get(self, task_id: uuid.UUID, raw_id: str, db: AsyncSession) -> AdditionResponse:
        ref = parse_addition_ref(raw_id)
        task = await self.directory.require_task(task_id, TaskType.BUDGET)
        if isinstance(ref, VirtualRef):
            return virtual_addition(await self._get_candidate(task, ref, db))
        budget = await get_budget_document(task.id, db)
        return addition_to_response(await self._get_persisted(budget, ref.addition_id, db))

    async def create(
        self, task_id: uuid.UUID, body: AdditionCreateRequest, actor: User, db: AsyncSession
    ) -> AdditionResponse:
        task = await self.directory.require_task(task_id, TaskType.BUDGET)
        budget = await get_or_create_budget_document(task, db)

        status = AdditionStatus.APPROVED if body.budget_type == BudgetType.MAIN else AdditionStatus.DRAFT
        addition = BudgetAddition(
            budget_id=budget.id,
            title=body.title,
            description=body.description,
            materials=_priced_lines(body.materials),
            labour=_priced_lines(body.labour),
            expenses=_priced_lines(body.expenses),
            logistics=_priced_lines(body.logistics),
            status=status.value,
            budget_type=body.budget_type.value,
            source_type=AdditionSourceType.MANUAL.value,
            created_by=actor.id,
        )
        addition.total_amount = calculate_total(addition)
        if status == AdditionStatus.APPROVED:
            addition.approved_by = actor.id
            addition.approved_at = utcnow()
        db.add(addition)

        response = await self._respond(addition, db)
        if status == AdditionStatus.APPROVED:
            await self.budgets.refresh_summary(budget, db)
        logger.info("Created %s budget addition %s for task %s", status.value, addition.id, task.id)
        return response

    async def create_from_material(
        self, task_id: uuid.UUID, body: AdditionFromMaterialRequest, actor: User, db: AsyncSession
    ) -> AdditionResponse:
        task = await self.directory.require_task(task_id, TaskType.BUDGET)
        materials_task = await self.directory.find_sibling(task, TaskType.MATERIALS)
        document = await get_materials_document(materials_task.id, db) if materials_task else None
        found = find_material(document, body.material_id) if document else None
        if not found:
            raise NotFoundError("Material", str(body.material_id))
        element, material = found

        budget = await get_or_create_budget_document(task, db)
        status = AdditionStatus.APPROVED if body.budget_type == BudgetType.MAIN else AdditionStatus.DRAFT
        candidate = AdditionCandidate(element, material)
        addition = BudgetAddition(
            budget_id=budget.id,
            title=f"Material: {material['description']}",
            description=f"Created from Materials Task - Element: {element['name']}",
            materials=[candidate.material_line()],
            labour=[],
            expenses=[],
            logistics=[],
            total_amount=Decimal("0.00"),
            status=status.value,
            budget_type=body.budget_type.value,
            source_type=AdditionSourceType.MATERIALS_ADDITIONAL.value,
            source_material_id=candidate.material_id,
            source_element_id=candidate.element_id,
            created_by=actor.id,
        )
        if status == AdditionStatus.APPROVED:
            addition.approved_by = actor.id
            addition.approved_at = utcnow()
        db.add(addition)
        return await self._respond(addition, db)

    async def update(
        self, task_id: uuid.UUID, raw_id: str, body: AdditionUpdateRequest, actor: User, db: AsyncSession
    ) -> AdditionResponse:
        ref = parse_addition_ref(raw_id)
        task = await self.directory.require_task(task_id, TaskType.BUDGET)

        if isinstance(ref, VirtualRef):
            candidate = await self._get_candidate(task, ref, db)
            budget = await get_or_create_budget_document(task, db)
            addition = await self._open_for(budget, candidate, db)
            if addition is None:
                addition = self._materialize(budget, candidate, actor, AdditionStatus.DRAFT)
                db.add(addition)
                logger.info("Virtual addition %s materialized as draft", ref.wire_id)
        else:
            budget = await get_budget_document(task.id, db)
            addition = await self._get_persisted(budget, ref.addition_id, db)
            if addition.status in PROCESSED_STATUSES:
                raise ConflictError(f"Cannot modify a budget addition that is {addition.status}")

        if body.title is not None:
            addition.title = body.title
        if body.description is not None:
            addition.description = body.description
        if body.status is not None:
            addition.status = body.status
        for category in CATEGORIES:
            lines = getattr(body, category)
            if lines is not None:
                setattr(addition, category, _priced_lines(lines))
        addition.total_amount = calculate_total(addition)

        return await self._respond(addition, db)

    async def decide(
        self, task_id: uuid.UUID, raw_id: str, body: AdditionDecisionRequest, actor: User, db: AsyncSession
    ) -> AdditionResponse:
        ref = parse_addition_ref(raw_id)
        task = await self.directory.require_task(task_id, TaskType.BUDGET)
        now = utcnow()

        if isinstance(ref, VirtualRef):
            candidate = await self._get_candidate(task, ref, db)
            budget = await get_or_create_budget_document(task, db)
            processed = [row for row in await self._persisted(budget, db) if row.status in PROCESSED_STATUSES]
            if is_backed(candidate, processed):
                raise ConflictError("Budget addition has already been processed")
            addition = await self._open_for(budget, candidate, db)
            if addition is None:
                # Rejections are stored too, so the processed row hides the virtual entry.
                addition = self._materialize(budget, candidate, actor, AdditionStatus.PENDING_APPROVAL)
                db.add(addition)
                logger.info("Virtual addition %s materialized for %s", ref.wire_id, body.action)
        else:
            budget = await get_budget_document(task.id, db)
            addition = await self._get_persisted(budget, ref.addition_id, db)
            if addition.status in PROCESSED_STATUSES:
                raise ConflictError(f"Budget addition has already been {addition.status}")

        if body.action == "approve":
            addition.status = AdditionStatus.APPROVED.value
            addition.approved_by = actor.id
            addition.approved_at = now
            addition.approval_notes = body.notes
        else:
            addition.status = AdditionStatus.REJECTED.value
            addition.rejected_by = actor.id
            addition.rejected_at = now
            addition.rejection_reason = body.notes

        response = await self._respond(addition, db)
        await self.budgets.refresh_summary(budget, db)
        logger.info("Budget addition %s %s by %s", addition.id, addition.status, actor.id)
        return response

    async def delete(self, task_id: uuid.UUID, raw_id: str, actor: User, db: AsyncSession) -> None:
        ref = parse_addition_ref(raw_id)
        task = await self.directory.require_task(task_id, TaskType.BUDGET)
        if isinstance(ref, PersistedRef):
            budget = await get_budget_document(task.id, db)
            addition = await self._get_persisted(budget, ref.addition_id, db)
        else:
            raise ConflictError("Virtual budget additions cannot be deleted")

        if addition.status != AdditionStatus.DRAFT.value:
            raise ConflictError("Only draft budget additions can be deleted")

        addition.soft_delete()
        await db.flush()
        logger.info("Budget addition %s deleted by %s", addition.id, actor.id)
