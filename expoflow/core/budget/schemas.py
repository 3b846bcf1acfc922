"""Value objects for the budget document.

Sections are stored as camelCase JSON. Version snapshots are stamped with
``schemaVersion``; snapshots written before that used the ``*_data``
column names and are brought forward by :func:`upgrade_budget_payload`.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from expoflow.common.enums import BudgetStatus

BUDGET_SCHEMA_VERSION = 2

CAMEL_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}

_LEGACY_KEYS = {
    "materials_data": "materials",
    "labour_data": "labour",
    "expenses_data": "expenses",
    "logistics_data": "logistics",
    "project_info": "projectInfo",
    "budget_summary": "budgetSummary",
}


class BudgetMaterialLine(BaseModel):
    id: str
    description: str = Field(..., min_length=1, max_length=500)
    unit_of_measurement: str = "Pcs"
    quantity: float = Field(0, ge=0)
    unit_price: float = Field(0, ge=0)
    total_price: float = 0
    is_included: bool = True
    notes: str | None = None
    # Set by materials sync: priced lines whose material was removed upstream,
    # and lines whose quantity moved since the last sync.
    is_obsolete: bool = False
    quantity_changed: bool = False
    old_quantity: float | None = None

    model_config = CAMEL_CONFIG


class BudgetElement(BaseModel):
    id: str
    element_type: str
    name: str
    category: str = "production"
    is_included: bool = True
    is_obsolete: bool = False
    materials: list[BudgetMaterialLine] = Field(default_factory=list)

    model_config = CAMEL_CONFIG


class LabourLine(BaseModel):
    id: str
    category: str = "Other"
    type: str
    description: str | None = None
    unit: str = "days"
    quantity: float = Field(0, ge=0)
    unit_rate: float = Field(0, ge=0)
    amount: float = 0

    model_config = CAMEL_CONFIG


class ExpenseLine(BaseModel):
    id: str
    description: str
    category: str = "General"
    amount: float = Field(0, ge=0)

    model_config = CAMEL_CONFIG


class LogisticsLine(BaseModel):
    id: str
    vehicle_reg: str | None = None
    description: str
    category: str = "Transport"
    unit: str | None = None
    quantity: float = Field(0, ge=0)
    unit_rate: float = Field(0, ge=0)
    amount: float = 0

    model_config = CAMEL_CONFIG


class BudgetSummary(BaseModel):
    materials_total: float = 0
    labour_total: float = 0
    expenses_total: float = 0
    logistics_total: float = 0
    additions_total: float = 0
    grand_total: float = 0

    model_config = CAMEL_CONFIG


class BudgetSections(BaseModel):
    materials: list[BudgetElement] = Field(default_factory=list)
    labour: list[LabourLine] = Field(default_factory=list)
    expenses: list[ExpenseLine] = Field(default_factory=list)
    logistics: list[LogisticsLine] = Field(default_factory=list)

    model_config = CAMEL_CONFIG


class BudgetSaveRequest(BudgetSections):
    project_info: dict | None = None
    status: BudgetStatus | None = None
    # Accepted for compatibility; the server always recomputes it.
    budget_summary: dict | None = None


class ImportMetadata(BaseModel):
    imported_at: datetime
    source_task_id: str
    source_task_title: str
    element_count: int
    material_count: int
    preserved_prices: int = 0
    obsolete_count: int = 0
    quantity_changes: int = 0
    materials_version: int | None = None

    model_config = CAMEL_CONFIG


class BudgetDocumentResponse(BudgetSections):
    id: str | None = None
    task_id: str
    schema_version: int = BUDGET_SCHEMA_VERSION
    project_info: dict = Field(default_factory=dict)
    budget_summary: BudgetSummary = Field(default_factory=BudgetSummary)
    status: BudgetStatus = BudgetStatus.DRAFT
    materials_imported_at: datetime | None = None
    materials_imported_from_task: str | None = None
    materials_manually_modified: bool = False
    materials_import_metadata: dict | None = None
    last_saved_at: datetime | None = None


class MaterialsUpdateCheck(BaseModel):
    has_update: bool
    message: str
    materials_fully_approved: bool = False
    materials_last_updated: datetime | None = None
    budget_last_imported: datetime | None = None

    model_config = CAMEL_CONFIG


def upgrade_budget_payload(raw: dict) -> dict:
    """Bring a stored budget snapshot up to the current schema.

    Snapshots written before ``schemaVersion`` was stamped carry the old
    ``*_data`` section names and snake_case document keys.
    """
    payload = dict(raw)
    if (payload.get("schemaVersion") or 1) < BUDGET_SCHEMA_VERSION:
        for legacy, current in _LEGACY_KEYS.items():
            if legacy in payload:
                value = payload.pop(legacy)
                payload.setdefault(current, value)
    payload["schemaVersion"] = BUDGET_SCHEMA_VERSION
    return payload
