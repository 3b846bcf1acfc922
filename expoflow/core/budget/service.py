import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.common.clock import as_utc, utcnow
from expoflow.common.enums import BudgetStatus, TaskStatus, TaskType
from expoflow.common.exceptions import ConflictError, NotFoundError, ValidationError
from expoflow.common.logging import get_logger
from expoflow.core.additions.reconciler import (
    AdditionReconciler,
    budget_material_keys,
    find_candidates,
)
from expoflow.core.budget.documents import (
    approved_additions_total,
    get_budget_document,
    get_or_create_budget_document,
    load_sections,
    snapshot_payload,
    store_sections,
    to_response,
)
from expoflow.core.budget.schemas import (
    BudgetDocumentResponse,
    BudgetSaveRequest,
    BudgetSections,
    ImportMetadata,
    MaterialsUpdateCheck,
    upgrade_budget_payload,
)
from expoflow.core.budget.sync import recalculate, summarize, synchronize
from expoflow.core.materials.approval import is_fully_approved, load_status
from expoflow.core.materials.documents import dump_elements, get_materials_document
from expoflow.core.task_directory import TaskDirectory
from expoflow.core.versions.schemas import VersionListResponse, VersionResponse
from expoflow.core.versions.service import VersionService
from expoflow.db.models.budget import BudgetDocument
from expoflow.db.models.enquiry import EnquiryTask
from expoflow.db.models.materials import MaterialsDocument
from expoflow.db.models.user import User

logger = get_logger("budget.service")


def _upgraded(version: VersionResponse) -> VersionResponse:
    return version.model_copy(update={"data": upgrade_budget_payload(version.data)})


# Allowed status moves on save; staying put is always allowed.
STATUS_TRANSITIONS: dict[str, set[str]] = {
    BudgetStatus.DRAFT.value: {BudgetStatus.PENDING_APPROVAL.value},
    BudgetStatus.PENDING_APPROVAL.value: {
        BudgetStatus.APPROVED.value,
        BudgetStatus.REJECTED.value,
        BudgetStatus.DRAFT.value,
    },
    BudgetStatus.APPROVED.value: set(),
    BudgetStatus.REJECTED.value: {BudgetStatus.DRAFT.value},
}


class BudgetService:
    def __init__(self, directory: TaskDirectory):
        self.directory = directory
        self.versions = VersionService()
        self.reconciler = AdditionReconciler()

    async def get(self, task_id: uuid.UUID, db: AsyncSession) -> BudgetDocumentResponse:
        task = await self.directory.require_task(task_id, TaskType.BUDGET)
        return to_response(task, await get_budget_document(task.id, db))

    async def save(
        self, task_id: uuid.UUID, body: BudgetSaveRequest, actor: User, db: AsyncSession
    ) -> BudgetDocumentResponse:
        task = await self.directory.require_task(task_id, TaskType.BUDGET)
        budget = await get_or_create_budget_document(task, db)

        if body.status is not None and body.status.value != budget.status:
            if body.status.value not in STATUS_TRANSITIONS.get(budget.status, set()):
                raise ValidationError(
                    "Invalid status transition",
                    {"status": [f"Cannot change status from {budget.status} to {body.status.value}"]},
                )

        sections = recalculate(BudgetSections(
            materials=body.materials,
            labour=body.labour,
            expenses=body.expenses,
            logistics=body.logistics,
        ))
        previous = load_sections(budget)
        if budget.materials_imported_from_task and previous.materials != sections.materials:
            budget.materials_manually_modified = True

        store_sections(budget, sections)
        if body.project_info is not None:
            budget.project_info = dict(body.project_info)
        if body.status is not None:
            budget.status = body.status.value
        budget.budget_summary = summarize(
            sections, await approved_additions_total(budget.id, db)
        ).model_dump(by_alias=True)
        budget.last_saved_at = utcnow()

        await db.flush()
        logger.info("Saved budget for task %s (status=%s)", task.id, budget.status)
        return to_response(task, budget)

    async def refresh_summary(self, budget: BudgetDocument, db: AsyncSession) -> None:
        budget.budget_summary = summarize(
            load_sections(budget), await approved_additions_total(budget.id, db)
        ).model_dump(by_alias=True)
        budget.last_saved_at = utcnow()
        await db.flush()

    # ---------- Materials import ----------

    async def _materials_source(self, budget_task: EnquiryTask, db: AsyncSession) -> tuple[EnquiryTask, MaterialsDocument]:
        materials_task = await self.directory.find_sibling(budget_task, TaskType.MATERIALS)
        if not materials_task:
            raise NotFoundError("Materials task for enquiry", str(budget_task.enquiry_id))
        document = await get_materials_document(materials_task.id, db)
        if not document:
            raise NotFoundError("Materials data for task", str(materials_task.id))
        return materials_task, document

    async def import_materials(self, task_id: uuid.UUID, actor: User, db: AsyncSession) -> BudgetDocumentResponse:
        task = await self.directory.require_task(task_id, TaskType.BUDGET)
        if task.status == TaskStatus.COMPLETED.value:
            raise ConflictError("Budget task is completed; new materials are handled as budget additions")

        materials_task, document = await self._materials_source(task, db)
        if not is_fully_approved(load_status(document.approval_status)):
            raise ConflictError(
                "Materials must be approved by design, production and finance before import"
            )

        latest = await self.versions.latest_materials_version(document.id, db)
        budget = await self.sync_materials(
            task, materials_task, document, db, materials_version=latest.version_number if latest else None
        )
        return to_response(task, budget)

    async def sync_materials(
        self,
        budget_task: EnquiryTask,
        materials_task: EnquiryTask,
        document: MaterialsDocument,
        db: AsyncSession,
        materials_version: int | None = None,
    ) -> BudgetDocument:
        budget = await get_or_create_budget_document(budget_task, db)
        sections = load_sections(budget)
        result = synchronize(sections.materials, dump_elements(document))
        sections = sections.model_copy(update={"materials": result.materials})

        now = utcnow()
        store_sections(budget, sections)
        budget.budget_summary = summarize(
            sections, await approved_additions_total(budget.id, db)
        ).model_dump(by_alias=True)
        budget.materials_imported_at = now
        budget.materials_imported_from_task = materials_task.id
        budget.materials_manually_modified = False
        budget.materials_import_metadata = ImportMetadata(
            imported_at=now,
            source_task_id=str(materials_task.id),
            source_task_title=materials_task.title,
            element_count=result.element_count,
            material_count=result.material_count,
            preserved_prices=result.preserved_prices,
            obsolete_count=result.obsolete_count,
            quantity_changes=result.quantity_changes,
            materials_version=materials_version,
        ).model_dump(mode="json", by_alias=True)
        budget.last_saved_at = now

        await db.flush()
        logger.info(
            "Synced %d elements / %d materials into budget %s (%d prices preserved, %d obsolete)",
            result.element_count,
            result.material_count,
            budget.id,
            result.preserved_prices,
            result.obsolete_count,
        )
        return budget

    async def apply_approved_materials(
        self,
        budget_task: EnquiryTask,
        materials_task: EnquiryTask,
        document: MaterialsDocument,
        actor: User,
        db: AsyncSession,
        materials_version: int | None = None,
    ) -> None:
        """Reconcile additions, then sync materials unless the budget is frozen."""
        budget = await get_or_create_budget_document(budget_task, db)
        elements = dump_elements(document)
        frozen = budget_task.status == TaskStatus.COMPLETED.value

        frozen_keys = budget_material_keys(load_sections(budget).materials) if frozen else None
        await self.reconciler.reconcile(budget, find_candidates(elements, frozen_keys), db, actor_id=actor.id)

        if frozen:
            logger.info("Budget task %s is completed; skipping materials sync", budget_task.id)
            return
        await self.sync_materials(budget_task, materials_task, document, db, materials_version=materials_version)

    async def check_materials_update(self, task_id: uuid.UUID, db: AsyncSession) -> MaterialsUpdateCheck:
        task = await self.directory.require_task(task_id, TaskType.BUDGET)
        materials_task = await self.directory.find_sibling(task, TaskType.MATERIALS)
        if not materials_task:
            return MaterialsUpdateCheck(has_update=False, message="Materials task not found")

        document = await get_materials_document(materials_task.id, db)
        if not document:
            return MaterialsUpdateCheck(has_update=False, message="No materials data found")

        approved = is_fully_approved(load_status(document.approval_status))
        budget = await get_budget_document(task.id, db)
        if not budget or not budget.materials_imported_at:
            return MaterialsUpdateCheck(
                has_update=True,
                message="Budget has not imported materials yet",
                materials_fully_approved=approved,
                materials_last_updated=document.last_saved_at,
            )

        materials_updated = as_utc(document.last_saved_at)
        imported = as_utc(budget.materials_imported_at)
        has_update = bool(materials_updated and materials_updated > imported)
        return MaterialsUpdateCheck(
            has_update=has_update,
            message="Materials have been updated since last import" if has_update else "Budget is up to date",
            materials_fully_approved=approved,
            materials_last_updated=materials_updated,
            budget_last_imported=imported,
        )

    async def submit(self, task_id: uuid.UUID, actor: User, db: AsyncSession) -> BudgetDocumentResponse:
        task = await self.directory.require_task(task_id, TaskType.BUDGET)
        budget = await get_budget_document(task.id, db)
        if not budget:
            raise NotFoundError("Budget data for task", str(task.id))
        if budget.status == BudgetStatus.APPROVED.value:
            raise ConflictError("Budget has already been approved")

        budget.status = BudgetStatus.PENDING_APPROVAL.value
        budget.submitted_at = utcnow()
        await db.flush()
        logger.info("Budget %s submitted for approval by %s", budget.id, actor.id)
        return to_response(task, budget)

    # ---------- Versions ----------

    async def _require_budget(self, task_id: uuid.UUID, db: AsyncSession) -> tuple[EnquiryTask, BudgetDocument]:
        task = await self.directory.require_task(task_id, TaskType.BUDGET)
        budget = await get_budget_document(task.id, db)
        if not budget:
            raise NotFoundError("Budget data for task", str(task.id))
        return task, budget

    async def _materials_document_id(self, task: EnquiryTask, db: AsyncSession) -> uuid.UUID | None:
        materials_task = await self.directory.find_sibling(task, TaskType.MATERIALS)
        if not materials_task:
            return None
        document = await get_materials_document(materials_task.id, db)
        return document.id if document else None

    async def create_version(self, task_id: uuid.UUID, label: str | None, actor: User, db: AsyncSession):
        task, budget = await self._require_budget(task_id, db)
        return await self.versions.snapshot_budget(
            budget,
            snapshot_payload(budget),
            db,
            actor_id=actor.id,
            label=label,
            materials_document_id=await self._materials_document_id(task, db),
        )

    async def list_versions(self, task_id: uuid.UUID, params, db: AsyncSession) -> VersionListResponse:
        _, budget = await self._require_budget(task_id, db)
        listing = await self.versions.list_budget_versions(budget, params, db)
        return listing.model_copy(update={"versions": [_upgraded(v) for v in listing.versions]})

    async def get_version(self, task_id: uuid.UUID, version_number: int, db: AsyncSession) -> VersionResponse:
        _, budget = await self._require_budget(task_id, db)
        version = await self.versions.get_budget_version(budget, version_number, db)
        return _upgraded(VersionResponse.model_validate(version))

    async def restore_version(
        self, task_id: uuid.UUID, version_number: int, actor: User, db: AsyncSession
    ) -> BudgetDocumentResponse:
        task, budget = await self._require_budget(task_id, db)
        version = await self.versions.get_budget_version(budget, version_number, db)

        data = upgrade_budget_payload(version.data or {})
        sections = recalculate(BudgetSections.model_validate(data))
        store_sections(budget, sections)
        if data.get("projectInfo") is not None:
            budget.project_info = dict(data["projectInfo"])
        budget.budget_summary = summarize(
            sections, await approved_additions_total(budget.id, db)
        ).model_dump(by_alias=True)
        if budget.materials_imported_from_task:
            budget.materials_manually_modified = True
        budget.last_saved_at = utcnow()
        await db.flush()

        await self.versions.snapshot_budget(
            budget,
            snapshot_payload(budget),
            db,
            actor_id=actor.id,
            label=f"Restored from version {version_number}",
            materials_document_id=await self._materials_document_id(task, db),
        )
        logger.info("Budget %s restored from version %d", budget.id, version_number)
        return to_response(task, budget)
