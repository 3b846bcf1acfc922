"""Derives budget additions from materials flagged as additional.

Each flagged material maps to exactly one non-rejected addition per budget,
keyed by its title. Once the budget task is completed, newly introduced
materials that the budget does not already carry are routed here as well
instead of being synced into the frozen budget.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.common.enums import AdditionSourceType, AdditionStatus, BudgetType
from expoflow.common.logging import get_logger
from expoflow.core.additions.schemas import AdditionLine, AdditionResponse, VirtualRef
from expoflow.core.budget.schemas import BudgetElement
from expoflow.core.budget.sync import material_key
from expoflow.db.models.budget import BudgetDocument
from expoflow.db.models.budget_addition import BudgetAddition

logger = get_logger("additions.reconciler")

ADDITIONAL_TITLE_PREFIX = "Additional: "
POST_BUDGET_TITLE_PREFIX = "Post-Budget Addition: "


@dataclass
class AdditionCandidate:
    element: Mapping[str, Any]
    material: Mapping[str, Any]
    post_budget: bool = False

    @property
    def material_id(self) -> uuid.UUID:
        return uuid.UUID(str(self.material["id"]))

    @property
    def element_id(self) -> uuid.UUID:
        return uuid.UUID(str(self.element["id"]))

    @property
    def title(self) -> str:
        prefix = POST_BUDGET_TITLE_PREFIX if self.post_budget else ADDITIONAL_TITLE_PREFIX
        return prefix + self.material["description"]

    @property
    def description(self) -> str:
        return f"Automatically created from Materials Task - Element: {self.element['name']}"

    def material_line(self) -> dict:
        return AdditionLine(
            id=str(self.material_id),
            description=self.material["description"],
            unit_of_measurement=self.material.get("unit_of_measurement") or "Pcs",
            quantity=float(self.material.get("quantity") or 0),
            unit_price=0,
            total_price=0,
        ).model_dump(mode="json", by_alias=True)


def budget_material_keys(budget_materials: Sequence[BudgetElement]) -> set[str]:
    return {
        material_key(element.element_type, element.name, material.description)
        for element in budget_materials
        for material in element.materials
        if not material.is_obsolete
    }


def find_candidates(
    elements: Iterable[Mapping[str, Any]],
    frozen_budget_keys: set[str] | None = None,
) -> list[AdditionCandidate]:
    """Materials needing an addition.

    ``frozen_budget_keys`` is given only when the budget task is completed;
    included materials whose key is missing from it become post-budget
    additions.
    """
    candidates = []
    for element in elements:
        if not element.get("is_included", True):
            continue
        for material in element.get("materials") or []:
            if not material.get("is_included", True):
                continue
            if material.get("is_additional"):
                candidates.append(AdditionCandidate(element, material))
            elif frozen_budget_keys is not None:
                key = material_key(element["element_type"], element["name"], material["description"])
                if key not in frozen_budget_keys:
                    candidates.append(AdditionCandidate(element, material, post_budget=True))
    return candidates


def _embedded_material_ids(row: BudgetAddition) -> set[str]:
    ids = set()
    for line in row.materials or []:
        line_id = str(line.get("id") or "")
        if line_id:
            ids.add(line_id.removeprefix("mat_"))
    return ids


def is_backed(candidate: AdditionCandidate, rows: Iterable[BudgetAddition]) -> bool:
    """Whether a persisted addition already stands for ``candidate``.

    Open rows count as well as processed ones: a draft or pending row is
    already the listed entry for the material, so surfacing the virtual
    entry beside it would list the material twice.
    """
    material_id = str(candidate.material_id)
    rows = list(rows)
    for row in rows:
        if row.source_material_id is not None and str(row.source_material_id) == material_id:
            return True
        if material_id in _embedded_material_ids(row):
            return True
    return any(row.title == candidate.title and row.description == candidate.description for row in rows)


def virtual_addition(candidate: AdditionCandidate) -> AdditionResponse:
    return AdditionResponse(
        id=VirtualRef(candidate.material_id).wire_id,
        title=candidate.title,
        description=candidate.description,
        materials=[candidate.material_line()],
        labour=[],
        expenses=[],
        logistics=[],
        total_amount=0.0,
        status=AdditionStatus.PENDING_APPROVAL,
        budget_type=BudgetType.SUPPLEMENTARY,
        source_type=AdditionSourceType.MATERIALS_ADDITIONAL,
        source_material_id=str(candidate.material_id),
        source_element_id=str(candidate.element_id),
        is_virtual=True,
    )


class AdditionReconciler:
    async def reconcile(
        self,
        budget: BudgetDocument,
        candidates: Sequence[AdditionCandidate],
        db: AsyncSession,
        actor_id: uuid.UUID | None = None,
    ) -> list[BudgetAddition]:
        created = []
        for candidate in candidates:
            result = await db.execute(
                select(BudgetAddition.id).where(
                    BudgetAddition.budget_id == budget.id,
                    BudgetAddition.title == candidate.title,
                    BudgetAddition.status != AdditionStatus.REJECTED.value,
                    BudgetAddition.is_deleted.is_(False),
                )
            )
            if result.first() is not None:
                logger.debug("Addition '%s' already exists for budget %s", candidate.title, budget.id)
                continue

            addition = BudgetAddition(
                budget_id=budget.id,
                title=candidate.title,
                description=candidate.description,
                materials=[candidate.material_line()],
                labour=[],
                expenses=[],
                logistics=[],
                total_amount=0,
                status=AdditionStatus.PENDING_APPROVAL.value,
                budget_type=BudgetType.SUPPLEMENTARY.value,
                source_type=AdditionSourceType.MATERIALS_ADDITIONAL.value,
                source_material_id=candidate.material_id,
                source_element_id=candidate.element_id,
                created_by=actor_id,
            )
            db.add(addition)
            created.append(addition)

        if created:
            await db.flush()
            logger.info(
                "Created %d budget additions for budget %s from materials",
                len(created),
                budget.id,
            )
        return created
