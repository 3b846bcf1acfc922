"""Budget to quote projection.

Margins apply per line for materials, expenses and logistics, taken from
the line's ``marginOverride`` when set and from the category otherwise.
Labour lines carry no line margin; the labour margin applies once to the
labour aggregate. Line figures are left unrounded and every aggregate is
rounded half-up to two decimals.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from expoflow.common.money import quantize, to_decimal
from expoflow.core.additions.schemas import AdditionLine
from expoflow.core.budget.schemas import BudgetSections
from expoflow.core.quote.schemas import (
    ApprovedAddition,
    BudgetChangeItem,
    BudgetChangePreview,
    BudgetPriceChange,
    BudgetTotalImpact,
    PricingConfig,
    QuoteElement,
    QuoteLine,
    QuoteMaterialLine,
    QuotePayload,
    QuoteSections,
    QuoteTotals,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _rate(percentage: float) -> Decimal:
    return to_decimal(percentage) / HUNDRED


def _money(value: Decimal) -> float:
    return float(quantize(value))


# ---------------------------------------------------------------------------
# Base extraction (unpriced lines)
# ---------------------------------------------------------------------------


def _addition_line(line: AdditionLine, addition: ApprovedAddition, index: int) -> QuoteLine:
    return QuoteLine(
        id=line.id or f"addition_{addition.id}_{index}",
        description=line.description,
        category="Budget Addition",
        unit=line.unit_of_measurement,
        quantity=line.quantity,
        unit_rate=line.unit_price,
        amount=float(to_decimal(line.quantity) * to_decimal(line.unit_price)),
        is_addition=True,
    )


def base_sections(budget: BudgetSections, additions: Sequence[ApprovedAddition] = ()) -> QuoteSections:
    """Quote lines carrying only base amounts, before any margin."""
    materials = [
        QuoteElement(
            id=element.id,
            element_type=element.element_type,
            name=element.name,
            category=element.category,
            materials=[
                QuoteMaterialLine(
                    id=m.id,
                    description=m.description,
                    unit_of_measurement=m.unit_of_measurement,
                    quantity=m.quantity,
                    unit_price=m.unit_price,
                    total_price=m.total_price,
                )
                for m in element.materials
                if m.is_included and not m.is_obsolete
            ],
        )
        for element in budget.materials
        if element.is_included and not element.is_obsolete
    ]
    labour = [
        QuoteLine(
            id=line.id,
            description=line.description,
            category=line.category,
            type=line.type,
            unit=line.unit,
            quantity=line.quantity,
            unit_rate=line.unit_rate,
            amount=line.amount,
        )
        for line in budget.labour
    ]
    expenses = [
        QuoteLine(id=line.id, description=line.description, category=line.category, amount=line.amount)
        for line in budget.expenses
    ]
    logistics = [
        QuoteLine(
            id=line.id,
            description=line.description,
            category=line.category,
            unit=line.unit,
            vehicle_reg=line.vehicle_reg,
            quantity=line.quantity,
            unit_rate=line.unit_rate,
            amount=line.amount,
        )
        for line in budget.logistics
    ]

    for addition in additions:
        if addition.materials:
            materials.append(
                QuoteElement(
                    id=f"addition_{addition.id}",
                    element_type="budget_addition",
                    name=f"Budget Addition: {addition.title}",
                    category="addition",
                    is_addition=True,
                    materials=[
                        QuoteMaterialLine(
                            id=line.id or f"addition_{addition.id}_{index}",
                            description=line.description,
                            unit_of_measurement=line.unit_of_measurement or "Pcs",
                            quantity=line.quantity,
                            unit_price=line.unit_price,
                            total_price=float(to_decimal(line.quantity) * to_decimal(line.unit_price)),
                            is_addition=True,
                        )
                        for index, line in enumerate(addition.materials)
                    ],
                )
            )
        labour.extend(_addition_line(line, addition, i) for i, line in enumerate(addition.labour))
        expenses.extend(_addition_line(line, addition, i) for i, line in enumerate(addition.expenses))
        logistics.extend(_addition_line(line, addition, i) for i, line in enumerate(addition.logistics))

    return QuoteSections(materials=materials, labour=labour, expenses=expenses, logistics=logistics)


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


def _line_margin(line: QuoteLine | QuoteMaterialLine, category_margin: float) -> float:
    return line.margin_override if line.margin_override is not None else category_margin


def _price_line(line: QuoteLine, percentage: float) -> QuoteLine:
    percentage = _line_margin(line, percentage)
    base = to_decimal(line.amount)
    margin = base * _rate(percentage)
    return line.model_copy(
        update={
            "margin_percentage": percentage,
            "margin_amount": float(margin),
            "final_price": float(base + margin),
        }
    )


def _price_element(element: QuoteElement, percentage: float) -> QuoteElement:
    lines = []
    base_total = margin_total = ZERO
    for material in element.materials:
        line_margin = _line_margin(material, percentage)
        base = to_decimal(material.total_price)
        margin = base * _rate(line_margin)
        base_total += base
        margin_total += margin
        lines.append(
            material.model_copy(
                update={
                    "margin_percentage": line_margin,
                    "margin_amount": float(margin),
                    "final_price": float(base + margin),
                }
            )
        )
    return element.model_copy(
        update={
            "materials": lines,
            "base_total": float(base_total),
            "margin_amount": float(margin_total),
            "final_total": float(base_total + margin_total),
        }
    )


def price_sections(sections: QuoteSections, pricing: PricingConfig) -> QuotePayload:
    margins = pricing.margins

    materials = [_price_element(e, margins.materials) for e in sections.materials]
    labour = [
        line.model_copy(update={"margin_percentage": 0, "margin_amount": 0, "final_price": line.amount})
        for line in sections.labour
    ]
    expenses = [_price_line(line, margins.expenses) for line in sections.expenses]
    logistics = [_price_line(line, margins.logistics) for line in sections.logistics]

    materials_base = sum((to_decimal(e.base_total) for e in materials), ZERO)
    materials_margin = sum((to_decimal(e.margin_amount) for e in materials), ZERO)
    labour_base = sum((to_decimal(line.amount) for line in labour), ZERO)
    labour_margin = labour_base * _rate(margins.labour)
    expenses_base = sum((to_decimal(line.amount) for line in expenses), ZERO)
    expenses_margin = sum((to_decimal(line.margin_amount) for line in expenses), ZERO)
    logistics_base = sum((to_decimal(line.amount) for line in logistics), ZERO)
    logistics_margin = sum((to_decimal(line.margin_amount) for line in logistics), ZERO)

    materials_total = quantize(materials_base + materials_margin)
    labour_total = quantize(labour_base + labour_margin)
    expenses_total = quantize(expenses_base + expenses_margin)
    logistics_total = quantize(logistics_base + logistics_margin)

    subtotal = materials_total + labour_total + expenses_total + logistics_total
    discount = quantize(pricing.discount_amount)
    total_after_discount = subtotal - discount
    vat_amount = quantize(total_after_discount * _rate(pricing.vat_percentage)) if pricing.vat_enabled else ZERO
    grand_total = total_after_discount + vat_amount

    total_base = materials_base + labour_base + expenses_base + logistics_base
    total_margin = materials_margin + labour_margin + expenses_margin + logistics_margin
    overall_margin = total_margin / total_base * HUNDRED if total_base else ZERO

    totals = QuoteTotals(
        materials_base=_money(materials_base),
        materials_margin=_money(materials_margin),
        materials_total=float(materials_total),
        labour_base=_money(labour_base),
        labour_margin=_money(labour_margin),
        labour_total=float(labour_total),
        expenses_base=_money(expenses_base),
        expenses_margin=_money(expenses_margin),
        expenses_total=float(expenses_total),
        logistics_base=_money(logistics_base),
        logistics_margin=_money(logistics_margin),
        logistics_total=float(logistics_total),
        subtotal=float(subtotal),
        discount_amount=float(discount),
        total_after_discount=float(total_after_discount),
        vat_enabled=pricing.vat_enabled,
        vat_percentage=pricing.vat_percentage,
        vat_amount=float(vat_amount),
        grand_total=float(grand_total),
        total_margin=_money(total_margin),
        overall_margin_percentage=_money(overall_margin),
    )
    return QuotePayload(
        materials=materials,
        labour=labour,
        expenses=expenses,
        logistics=logistics,
        totals=totals,
    )


def transform(
    budget: BudgetSections,
    approved_additions: Sequence[ApprovedAddition],
    pricing: PricingConfig,
) -> QuotePayload:
    return price_sections(base_sections(budget, approved_additions), pricing)


def reprice(sections: QuoteSections, pricing: PricingConfig) -> QuotePayload:
    """Re-apply margins, discount and VAT to previously imported lines."""
    return price_sections(sections, pricing)


def carry_overrides(sections: QuoteSections, previous: QuoteSections) -> QuoteSections:
    """Copy line margin overrides from ``previous`` onto lines with the same id."""

    def overrides(lines) -> dict[str, float]:
        return {line.id: line.margin_override for line in lines if line.margin_override is not None}

    def apply(lines, kept: dict[str, float]) -> list:
        return [
            line.model_copy(update={"margin_override": kept[line.id]}) if line.id in kept else line
            for line in lines
        ]

    kept_materials = overrides(m for element in previous.materials for m in element.materials)
    return QuoteSections(
        materials=[
            element.model_copy(update={"materials": apply(element.materials, kept_materials)})
            for element in sections.materials
        ],
        labour=apply(sections.labour, overrides(previous.labour)),
        expenses=apply(sections.expenses, overrides(previous.expenses)),
        logistics=apply(sections.logistics, overrides(previous.logistics)),
    )


# ---------------------------------------------------------------------------
# Change preview
# ---------------------------------------------------------------------------


def _priced_items(payload: QuoteSections) -> dict[tuple[str, str], tuple[str, Decimal]]:
    items = {("material", e.id): (e.name, quantize(e.base_total)) for e in payload.materials}
    for kind, lines in (("labour", payload.labour), ("expense", payload.expenses), ("logistics", payload.logistics)):
        for line in lines:
            items[(kind, line.id)] = (line.description or line.type or line.id, quantize(line.amount))
    return items


def _change_percent(old: Decimal, new: Decimal) -> float:
    return _money((new - old) / old * HUNDRED) if old else 0.0


def budget_changes(current: QuotePayload, proposed: QuotePayload) -> BudgetChangePreview:
    """Items added, repriced or dropped between the stored quote and a fresh import."""
    before = _priced_items(current)
    after = _priced_items(proposed)

    current_total = quantize(current.totals.grand_total)
    new_total = quantize(proposed.totals.grand_total)
    return BudgetChangePreview(
        new_items=[
            BudgetChangeItem(type=kind, name=name, price=float(price))
            for (kind, key), (name, price) in after.items()
            if (kind, key) not in before
        ],
        price_changes=[
            BudgetPriceChange(
                type=kind,
                name=name,
                old_price=float(before[(kind, key)][1]),
                new_price=float(price),
                change_percent=_change_percent(before[(kind, key)][1], price),
            )
            for (kind, key), (name, price) in after.items()
            if (kind, key) in before and before[(kind, key)][1] != price
        ],
        removed_items=[
            BudgetChangeItem(type=kind, name=name, price=float(price))
            for (kind, key), (name, price) in before.items()
            if (kind, key) not in after
        ],
        total_impact=BudgetTotalImpact(
            current_total=float(current_total),
            new_total=float(new_total),
            difference=float(new_total - current_total),
            change_percent=_change_percent(current_total, new_total),
        ),
    )
