from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from expoflow.common.enums import BudgetSyncStatus, QuoteStatus
from expoflow.core.additions.schemas import AdditionLine

CAMEL_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


class QuoteMargins(BaseModel):
    materials: float = Field(20.0, ge=0, le=1000)
    labour: float = Field(15.0, ge=0, le=1000)
    expenses: float = Field(10.0, ge=0, le=1000)
    logistics: float = Field(15.0, ge=0, le=1000)


class PricingConfig(BaseModel):
    margins: QuoteMargins = Field(default_factory=QuoteMargins)
    vat_enabled: bool = True
    vat_percentage: float = Field(16.0, ge=0, le=100)
    discount_amount: float = Field(0.0, ge=0)

    model_config = CAMEL_CONFIG


class ApprovedAddition(BaseModel):
    id: str
    title: str
    materials: list[AdditionLine] = Field(default_factory=list)
    labour: list[AdditionLine] = Field(default_factory=list)
    expenses: list[AdditionLine] = Field(default_factory=list)
    logistics: list[AdditionLine] = Field(default_factory=list)


class QuoteMaterialLine(BaseModel):
    id: str
    description: str
    unit_of_measurement: str = "Pcs"
    quantity: float = 0
    unit_price: float = 0
    total_price: float = 0
    # Per-line margin kept across merge imports; None uses the category margin.
    margin_override: float | None = Field(None, ge=0, le=1000)
    margin_percentage: float = 0
    margin_amount: float = 0
    final_price: float = 0
    is_addition: bool = False

    model_config = CAMEL_CONFIG


class QuoteElement(BaseModel):
    id: str
    element_type: str
    name: str
    category: str = "production"
    is_addition: bool = False
    materials: list[QuoteMaterialLine] = Field(default_factory=list)
    base_total: float = 0
    margin_amount: float = 0
    final_total: float = 0

    model_config = CAMEL_CONFIG


class QuoteLine(BaseModel):
    """A labour, expense or logistics line priced from its base ``amount``."""

    id: str
    description: str | None = None
    category: str | None = None
    type: str | None = None
    unit: str | None = None
    vehicle_reg: str | None = None
    quantity: float | None = None
    unit_rate: float | None = None
    amount: float = 0
    margin_override: float | None = Field(None, ge=0, le=1000)
    margin_percentage: float = 0
    margin_amount: float = 0
    final_price: float = 0
    is_addition: bool = False

    model_config = CAMEL_CONFIG


class QuoteTotals(BaseModel):
    materials_base: float = 0
    materials_margin: float = 0
    materials_total: float = 0
    labour_base: float = 0
    labour_margin: float = 0
    labour_total: float = 0
    expenses_base: float = 0
    expenses_margin: float = 0
    expenses_total: float = 0
    logistics_base: float = 0
    logistics_margin: float = 0
    logistics_total: float = 0
    subtotal: float = 0
    discount_amount: float = 0
    total_after_discount: float = 0
    vat_enabled: bool = True
    vat_percentage: float = 0
    vat_amount: float = 0
    grand_total: float = 0
    total_margin: float = 0
    overall_margin_percentage: float = 0

    model_config = CAMEL_CONFIG


class QuoteSections(BaseModel):
    materials: list[QuoteElement] = Field(default_factory=list)
    labour: list[QuoteLine] = Field(default_factory=list)
    expenses: list[QuoteLine] = Field(default_factory=list)
    logistics: list[QuoteLine] = Field(default_factory=list)

    model_config = CAMEL_CONFIG


class QuotePayload(QuoteSections):
    totals: QuoteTotals = Field(default_factory=QuoteTotals)


class QuoteSaveRequest(BaseModel):
    project_info: dict | None = None
    margins: QuoteMargins | None = None
    vat_enabled: bool | None = None
    vat_percentage: float | None = Field(None, ge=0, le=100)
    discount_amount: float | None = Field(None, ge=0)
    status: QuoteStatus | None = None
    materials: list[QuoteElement] | None = None
    labour: list[QuoteLine] | None = None
    expenses: list[QuoteLine] | None = None
    logistics: list[QuoteLine] | None = None

    model_config = CAMEL_CONFIG


class QuoteImportRequest(BaseModel):
    margins: QuoteMargins | None = None
    vat_enabled: bool | None = None
    vat_percentage: float | None = Field(None, ge=0, le=100)
    discount_amount: float | None = Field(None, ge=0)

    model_config = CAMEL_CONFIG


class QuoteDocumentResponse(QuotePayload):
    id: str | None = None
    task_id: str
    project_info: dict = Field(default_factory=dict)
    status: QuoteStatus = QuoteStatus.DRAFT
    margins: QuoteMargins = Field(default_factory=QuoteMargins)
    vat_enabled: bool = True
    vat_percentage: float = 16.0
    discount_amount: float = 0
    budget_imported: bool = False
    budget_imported_at: datetime | None = None
    budget_updated_at: datetime | None = None
    budget_version: str | None = None


class BudgetStatusResponse(BaseModel):
    status: BudgetSyncStatus
    message: str
    budget_updated_at: datetime | None = None
    budget_imported_at: datetime | None = None
    budget_version: str | None = None

    model_config = CAMEL_CONFIG


class BudgetChangeItem(BaseModel):
    type: str
    name: str
    price: float

    model_config = CAMEL_CONFIG


class BudgetPriceChange(BaseModel):
    type: str
    name: str
    old_price: float
    new_price: float
    change_percent: float

    model_config = CAMEL_CONFIG


class BudgetTotalImpact(BaseModel):
    current_total: float
    new_total: float
    difference: float
    change_percent: float

    model_config = CAMEL_CONFIG


class BudgetChangePreview(BaseModel):
    new_items: list[BudgetChangeItem] = Field(default_factory=list)
    price_changes: list[BudgetPriceChange] = Field(default_factory=list)
    removed_items: list[BudgetChangeItem] = Field(default_factory=list)
    total_impact: BudgetTotalImpact

    model_config = CAMEL_CONFIG
