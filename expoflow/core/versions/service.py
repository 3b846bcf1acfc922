"""Append-only snapshots of materials and budget documents."""

import math
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.common.exceptions import ConflictError, NotFoundError
from expoflow.common.logging import get_logger
from expoflow.common.pagination import PaginationParams, paginate
from expoflow.core.versions.schemas import VersionListResponse, VersionResponse
from expoflow.db.models.budget import BudgetDocument
from expoflow.db.models.materials import MaterialsDocument
from expoflow.db.models.versions import BudgetVersion, MaterialsVersion

logger = get_logger("versions.service")


class VersionService:
    async def _next_number(self, column, owner_column, owner_id: uuid.UUID, db: AsyncSession) -> int:
        result = await db.execute(select(func.max(column)).where(owner_column == owner_id))
        return (result.scalar() or 0) + 1

    async def _insert(self, version, db: AsyncSession):
        db.add(version)
        try:
            await db.flush()
        except IntegrityError:
            raise ConflictError("Another version was recorded at the same time, please retry")
        await db.refresh(version)
        return version

    # ---------- Materials ----------

    async def snapshot_materials(
        self,
        document: MaterialsDocument,
        data: dict,
        db: AsyncSession,
        actor_id: uuid.UUID | None = None,
        label: str | None = None,
    ) -> MaterialsVersion:
        number = await self._next_number(
            MaterialsVersion.version_number, MaterialsVersion.materials_document_id, document.id, db
        )
        version = await self._insert(
            MaterialsVersion(
                materials_document_id=document.id,
                version_number=number,
                label=label,
                data=data,
                created_by=actor_id,
                source_updated_at=document.last_saved_at,
            ),
            db,
        )
        logger.info("Recorded materials version %d for document %s", number, document.id)
        return version

    async def latest_materials_version(self, document_id: uuid.UUID, db: AsyncSession) -> MaterialsVersion | None:
        result = await db.execute(
            select(MaterialsVersion)
            .where(MaterialsVersion.materials_document_id == document_id)
            .order_by(MaterialsVersion.version_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_materials_version(
        self, document: MaterialsDocument, version_number: int, db: AsyncSession
    ) -> MaterialsVersion:
        result = await db.execute(
            select(MaterialsVersion).where(
                MaterialsVersion.materials_document_id == document.id,
                MaterialsVersion.version_number == version_number,
            )
        )
        version = result.scalar_one_or_none()
        if not version:
            raise NotFoundError("Materials version", str(version_number))
        return version

    async def list_materials_versions(
        self, document: MaterialsDocument, params: PaginationParams, db: AsyncSession
    ) -> VersionListResponse:
        query = (
            select(MaterialsVersion)
            .where(MaterialsVersion.materials_document_id == document.id)
            .order_by(MaterialsVersion.version_number.desc())
        )
        items, total = await paginate(db, query, params)
        return _page(items, total, params)

    # ---------- Budget ----------

    async def snapshot_budget(
        self,
        budget: BudgetDocument,
        data: dict,
        db: AsyncSession,
        actor_id: uuid.UUID | None = None,
        label: str | None = None,
        materials_document_id: uuid.UUID | None = None,
    ) -> BudgetVersion:
        materials_version = None
        if materials_document_id is not None:
            materials_version = await self.latest_materials_version(materials_document_id, db)

        number = await self._next_number(BudgetVersion.version_number, BudgetVersion.budget_id, budget.id, db)
        version = await self._insert(
            BudgetVersion(
                budget_id=budget.id,
                version_number=number,
                label=label,
                data=data,
                created_by=actor_id,
                source_updated_at=budget.last_saved_at,
                materials_version_id=materials_version.id if materials_version else None,
            ),
            db,
        )
        logger.info("Recorded budget version %d for budget %s", number, budget.id)
        return version

    async def get_budget_version(self, budget: BudgetDocument, version_number: int, db: AsyncSession) -> BudgetVersion:
        result = await db.execute(
            select(BudgetVersion).where(
                BudgetVersion.budget_id == budget.id,
                BudgetVersion.version_number == version_number,
            )
        )
        version = result.scalar_one_or_none()
        if not version:
            raise NotFoundError("Budget version", str(version_number))
        return version

    async def list_budget_versions(
        self, budget: BudgetDocument, params: PaginationParams, db: AsyncSession
    ) -> VersionListResponse:
        query = (
            select(BudgetVersion)
            .where(BudgetVersion.budget_id == budget.id)
            .order_by(BudgetVersion.version_number.desc())
        )
        items, total = await paginate(db, query, params)
        return _page(items, total, params)


def _page(items: list, total: int, params: PaginationParams) -> VersionListResponse:
    return VersionListResponse(
        versions=[VersionResponse.model_validate(v) for v in items],
        total=total,
        page=params.page,
        page_size=params.page_size,
        total_pages=math.ceil(total / params.page_size) if total else 0,
    )
