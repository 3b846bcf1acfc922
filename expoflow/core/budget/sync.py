"""Projection of approved materials into the budget's materials section.

Only included elements contribute, and within them only included,
non-additional materials. Unit prices already entered on the budget are
carried forward when the element type, element name and material
description match; priced lines that lost their material stay on the
budget flagged obsolete and out of the totals.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from expoflow.common.money import line_total, quantize, to_decimal
from expoflow.core.budget.schemas import (
    BudgetElement,
    BudgetMaterialLine,
    BudgetSections,
    BudgetSummary,
)
from expoflow.core.materials.normalizer import suffixed


@dataclass
class SyncResult:
    materials: list[BudgetElement]
    element_count: int
    material_count: int
    preserved_prices: int
    obsolete_count: int = 0
    quantity_changes: int = 0


def element_key(element_type: str, name: str) -> str:
    return "_".join(part.strip() for part in (element_type, name)).casefold()


def material_key(element_type: str, name: str, description: str) -> str:
    return f"{element_key(element_type, name)}_{description.strip().casefold()}"


def _element_keys(elements: Sequence[BudgetElement]) -> list[str]:
    # Same-named elements are told apart by position, as the normalizer does.
    return suffixed(element_key(element.element_type, element.name) for element in elements)


def _line_key(key: str, description: str) -> str:
    return f"{key}_{description.strip().casefold()}"


def project_materials(elements: Iterable[Mapping[str, Any]]) -> list[BudgetElement]:
    """Build budget elements, with zeroed prices, from snake_case element dumps."""
    projected = []
    for element in elements:
        if not element.get("is_included", True):
            continue
        lines = [
            BudgetMaterialLine(
                id=f"mat_{material['id']}",
                description=material["description"],
                unit_of_measurement=material.get("unit_of_measurement") or "Pcs",
                quantity=float(material.get("quantity") or 0),
                unit_price=0,
                total_price=0,
            )
            for material in element.get("materials") or []
            if material.get("is_included", True) and not material.get("is_additional", False)
        ]
        if not lines:
            continue
        projected.append(
            BudgetElement(
                id=f"elem_{element['id']}",
                element_type=element["element_type"],
                name=element["name"],
                category=str(element.get("category") or "production"),
                materials=lines,
            )
        )
    return projected


def _line_index(existing: Sequence[BudgetElement]) -> dict[str, BudgetMaterialLine]:
    index = {}
    for key, element in zip(_element_keys(existing), existing):
        for line in element.materials:
            index.setdefault(_line_key(key, line.description), line)
    return index


def merge_prices(existing: Sequence[BudgetElement], projected: list[BudgetElement]) -> SyncResult:
    """Copy unit prices forward onto ``projected``.

    Matched lines whose quantity moved are flagged with the previous
    quantity. Priced lines with no match are carried forward flagged
    obsolete, inside their element when it survives and in a copy of the
    old element otherwise.
    """
    index = _line_index(existing)
    matched = set()
    preserved = quantity_changes = 0

    merged = []
    for key, element in zip(_element_keys(projected), projected):
        lines = []
        for material in element.materials:
            line_key = _line_key(key, material.description)
            previous = index.get(line_key)
            if previous is not None:
                matched.add(line_key)
                preserved += 1
                update = {
                    "unit_price": previous.unit_price,
                    "total_price": line_total(material.quantity, previous.unit_price),
                }
                if previous.quantity != material.quantity and not previous.is_obsolete:
                    quantity_changes += 1
                    update.update(quantity_changed=True, old_quantity=previous.quantity)
                elif previous.quantity_changed:
                    update.update(quantity_changed=True, old_quantity=previous.old_quantity)
                material = material.model_copy(update=update)
            lines.append(material)
        merged.append(element.model_copy(update={"materials": lines}))

    positions = {key: i for i, key in enumerate(_element_keys(projected))}
    obsolete_count = 0
    for key, element in zip(_element_keys(existing), existing):
        leftovers = [
            line.model_copy(
                update={
                    "is_obsolete": True,
                    "quantity_changed": False,
                    "old_quantity": None,
                    "total_price": line_total(line.quantity, line.unit_price),
                }
            )
            for line in element.materials
            if line.unit_price > 0 and _line_key(key, line.description) not in matched
        ]
        if not leftovers:
            continue
        obsolete_count += len(leftovers)
        if key in positions:
            target = merged[positions[key]]
            merged[positions[key]] = target.model_copy(update={"materials": [*target.materials, *leftovers]})
        else:
            merged.append(element.model_copy(update={"is_obsolete": True, "materials": leftovers}))

    return SyncResult(
        materials=merged,
        element_count=len(projected),
        material_count=sum(len(e.materials) for e in projected),
        preserved_prices=preserved,
        obsolete_count=obsolete_count,
        quantity_changes=quantity_changes,
    )


def synchronize(existing: Sequence[BudgetElement], elements: Iterable[Mapping[str, Any]]) -> SyncResult:
    return merge_prices(existing, project_materials(elements))


def recalculate(sections: BudgetSections) -> BudgetSections:
    """Recompute every derived line amount from quantity and rate."""
    materials = [
        element.model_copy(
            update={
                "materials": [
                    m.model_copy(update={"total_price": line_total(m.quantity, m.unit_price)})
                    for m in element.materials
                ]
            }
        )
        for element in sections.materials
    ]
    labour = [line.model_copy(update={"amount": line_total(line.quantity, line.unit_rate)}) for line in sections.labour]
    logistics = [
        line.model_copy(update={"amount": line_total(line.quantity, line.unit_rate)}) for line in sections.logistics
    ]
    return BudgetSections(materials=materials, labour=labour, expenses=list(sections.expenses), logistics=logistics)


def summarize(sections: BudgetSections, additions_total: Decimal | float = 0) -> BudgetSummary:
    materials_total = sum(
        (
            to_decimal(m.total_price)
            for element in sections.materials
            if element.is_included
            for m in element.materials
            if m.is_included and not m.is_obsolete
        ),
        Decimal("0"),
    )
    labour_total = sum((to_decimal(line.amount) for line in sections.labour), Decimal("0"))
    expenses_total = sum((to_decimal(line.amount) for line in sections.expenses), Decimal("0"))
    logistics_total = sum((to_decimal(line.amount) for line in sections.logistics), Decimal("0"))
    additions = to_decimal(additions_total)

    grand_total = materials_total + labour_total + expenses_total + logistics_total + additions
    return BudgetSummary(
        materials_total=float(quantize(materials_total)),
        labour_total=float(quantize(labour_total)),
        expenses_total=float(quantize(expenses_total)),
        logistics_total=float(quantize(logistics_total)),
        additions_total=float(quantize(additions)),
        grand_total=float(quantize(grand_total)),
    )
