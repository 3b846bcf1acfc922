import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from expoflow.common.clock import utcnow
from expoflow.common.enums import TaskType
from expoflow.common.exceptions import ConflictError, ExpoFlowException, InternalError, NotFoundError
from expoflow.common.logging import get_logger
from expoflow.core.budget.service import BudgetService
from expoflow.core.materials.approval import (
    apply_save_policy,
    load_status,
    parse_department,
    record_approval,
)
from expoflow.core.materials.change_detector import materials_changed
from expoflow.core.materials.documents import (
    dump_elements,
    get_materials_document,
    snapshot_payload,
    to_response,
)
from expoflow.core.materials.schemas import (
    ApprovalStatus,
    MaterialsDocumentResponse,
    MaterialsSaveRequest,
    MaterialsSaveResponse,
    ProjectElementItem,
)
from expoflow.core.task_directory import TaskDirectory
from expoflow.core.versions.service import VersionService
from expoflow.db.models.enquiry import EnquiryTask
from expoflow.db.models.materials import ElementMaterial, MaterialsDocument, ProjectElement
from expoflow.db.models.user import User

logger = get_logger("materials.service")

# Approval state is owned by the approval endpoint, never by project info.
_PROTECTED_PROJECT_INFO_KEYS = {"approvalStatus", "approval_status"}

FULL_APPROVAL_LABEL = "Fully approved"


def _build_elements(items: list[ProjectElementItem]) -> list[ProjectElement]:
    elements = []
    for index, item in enumerate(items):
        elements.append(
            ProjectElement(
                template_id=item.template_id,
                element_type=item.element_type,
                name=item.name,
                category=item.category.value,
                dimensions=dict(item.dimensions),
                is_included=item.is_included,
                notes=item.notes,
                sort_order=item.sort_order if item.sort_order is not None else index,
                materials=[
                    ElementMaterial(
                        description=material.description,
                        unit_of_measurement=material.unit_of_measurement,
                        quantity=material.quantity,
                        is_included=material.is_included,
                        is_additional=material.is_additional,
                        notes=material.notes,
                        sort_order=material.sort_order if material.sort_order is not None else m_index,
                    )
                    for m_index, material in enumerate(item.materials)
                ],
            )
        )
    return elements


async def _flush_document(db: AsyncSession) -> None:
    try:
        await db.flush()
    except StaleDataError:
        raise ConflictError("Materials were modified concurrently, please reload and retry")


class MaterialsService:
    def __init__(self, directory: TaskDirectory):
        self.directory = directory
        self.versions = VersionService()
        self.budgets = BudgetService(directory)

    async def get(self, task_id: uuid.UUID, db: AsyncSession) -> MaterialsDocumentResponse:
        task = await self.directory.require_task(task_id, TaskType.MATERIALS)
        return to_response(task, await get_materials_document(task.id, db))

    async def save(
        self, task_id: uuid.UUID, body: MaterialsSaveRequest, actor: User, db: AsyncSession
    ) -> MaterialsSaveResponse:
        task = await self.directory.require_task(task_id, TaskType.MATERIALS)
        document = await get_materials_document(task.id, db)

        incoming = [item.model_dump() for item in body.project_elements]
        existing = dump_elements(document) if document else None
        changed = materials_changed(existing, incoming)
        status, reset = apply_save_policy(
            load_status(document.approval_status) if document else None, changed
        )

        project_info = {
            k: v for k, v in body.project_info.items() if k not in _PROTECTED_PROJECT_INFO_KEYS
        }
        if document is None:
            document = MaterialsDocument(task_id=task.id)
            db.add(document)

        document.project_info = project_info
        if body.available_elements is not None:
            document.available_elements = list(body.available_elements)
        document.elements = _build_elements(body.project_elements)
        document.approval_status = status.model_dump(mode="json")
        document.last_saved_at = utcnow()
        await _flush_document(db)

        if reset:
            logger.info("Materials for task %s changed; department approvals reset", task.id)
        logger.info(
            "Saved materials for task %s by %s (%d elements)", task.id, actor.id, len(body.project_elements)
        )
        return MaterialsSaveResponse(
            data=to_response(task, document),
            approvals_reset=reset,
            message="Materials data saved successfully",
        )

    async def approve(
        self,
        task_id: uuid.UUID,
        department: str,
        comments: str | None,
        actor: User,
        db: AsyncSession,
    ) -> ApprovalStatus:
        dept = parse_department(department)
        task = await self.directory.require_task(task_id, TaskType.MATERIALS)
        document = await get_materials_document(task.id, db)
        if not document:
            raise NotFoundError("Materials data for task", str(task.id))

        outcome = record_approval(
            load_status(document.approval_status), dept, str(actor.id), actor.full_name, comments
        )
        document.approval_status = outcome.status.model_dump(mode="json")
        await _flush_document(db)
        logger.info("Materials for task %s approved by %s (%s)", task.id, dept.value, actor.id)

        if outcome.fully_approved:
            try:
                await self._on_fully_approved(task, document, actor, db, outcome.became_fully_approved)
            except ExpoFlowException:
                raise
            except Exception:
                logger.exception("Downstream sync failed for materials task %s", task.id)
                raise InternalError("synchronize approved materials")

        return outcome.status

    async def _on_fully_approved(
        self,
        task: EnquiryTask,
        document: MaterialsDocument,
        actor: User,
        db: AsyncSession,
        first_time: bool,
    ) -> None:
        if first_time:
            version = await self.versions.snapshot_materials(
                document, snapshot_payload(document), db, actor_id=actor.id, label=FULL_APPROVAL_LABEL
            )
        else:
            version = await self.versions.latest_materials_version(document.id, db)

        budget_task = await self.directory.find_sibling(task, TaskType.BUDGET)
        if not budget_task:
            logger.info("No budget task for enquiry %s; skipping materials sync", task.enquiry_id)
            return

        await self.budgets.apply_approved_materials(
            budget_task,
            task,
            document,
            actor,
            db,
            materials_version=version.version_number if version else None,
        )

    # ---------- Versions ----------

    async def _require_document(self, task_id: uuid.UUID, db: AsyncSession) -> MaterialsDocument:
        task = await self.directory.require_task(task_id, TaskType.MATERIALS)
        document = await get_materials_document(task.id, db)
        if not document:
            raise NotFoundError("Materials data for task", str(task.id))
        return document

    async def create_version(self, task_id: uuid.UUID, label: str | None, actor: User, db: AsyncSession):
        document = await self._require_document(task_id, db)
        return await self.versions.snapshot_materials(
            document, snapshot_payload(document), db, actor_id=actor.id, label=label
        )

    async def list_versions(self, task_id: uuid.UUID, params, db: AsyncSession):
        document = await self._require_document(task_id, db)
        return await self.versions.list_materials_versions(document, params, db)

    async def get_version(self, task_id: uuid.UUID, version_number: int, db: AsyncSession):
        document = await self._require_document(task_id, db)
        return await self.versions.get_materials_version(document, version_number, db)

    async def restore_version(
        self, task_id: uuid.UUID, version_number: int, actor: User, db: AsyncSession
    ) -> MaterialsSaveResponse:
        """Restore through the normal save path so the approval policy applies."""
        document = await self._require_document(task_id, db)
        version = await self.versions.get_materials_version(document, version_number, db)

        body = MaterialsSaveRequest.model_validate(
            {
                "projectInfo": version.data.get("projectInfo") or {},
                "projectElements": version.data.get("projectElements") or [],
                "availableElements": version.data.get("availableElements"),
            }
        )
        response = await self.save(task_id, body, actor, db)
        await self.versions.snapshot_materials(
            document,
            snapshot_payload(document),
            db,
            actor_id=actor.id,
            label=f"Restored from version {version_number}",
        )
        logger.info("Materials for task %s restored from version %d", task_id, version_number)
        return response
