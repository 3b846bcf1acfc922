from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from expoflow.common.enums import AdditionSourceType, AdditionStatus, BudgetType
from expoflow.common.exceptions import BadRequestError

VIRTUAL_ID_PREFIX = "materials_additional_"


# ---------------------------------------------------------------------------
# Addition references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VirtualRef:
    """An addition synthesized on read from a material flagged additional."""

    material_id: uuid.UUID

    @property
    def wire_id(self) -> str:
        return f"{VIRTUAL_ID_PREFIX}{self.material_id}"


@dataclass(frozen=True)
class PersistedRef:
    addition_id: uuid.UUID

    @property
    def wire_id(self) -> str:
        return str(self.addition_id)


AdditionRef = Union[VirtualRef, PersistedRef]


def parse_addition_ref(raw: str) -> AdditionRef:
    try:
        if raw.startswith(VIRTUAL_ID_PREFIX):
            return VirtualRef(uuid.UUID(raw[len(VIRTUAL_ID_PREFIX):]))
        return PersistedRef(uuid.UUID(raw))
    except ValueError:
        raise BadRequestError(f"Malformed budget addition id: {raw}")


# ---------------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------------


class AdditionLine(BaseModel):
    id: str | None = None
    description: str = Field(..., min_length=1, max_length=500)
    unit_of_measurement: str | None = None
    quantity: float = Field(0, ge=0)
    unit_price: float = Field(0, ge=0)
    total_price: float = 0
    is_addition: bool = True

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class AdditionCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    budget_type: BudgetType = BudgetType.SUPPLEMENTARY
    materials: list[AdditionLine] = Field(default_factory=list)
    labour: list[AdditionLine] = Field(default_factory=list)
    expenses: list[AdditionLine] = Field(default_factory=list)
    logistics: list[AdditionLine] = Field(default_factory=list)


class AdditionUpdateRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    status: Literal["draft", "pending_approval"] | None = None
    materials: list[AdditionLine] | None = None
    labour: list[AdditionLine] | None = None
    expenses: list[AdditionLine] | None = None
    logistics: list[AdditionLine] | None = None


class AdditionFromMaterialRequest(BaseModel):
    material_id: uuid.UUID
    budget_type: BudgetType = BudgetType.SUPPLEMENTARY


class AdditionDecisionRequest(BaseModel):
    action: Literal["approve", "reject"]
    notes: str | None = Field(None, max_length=2000)


class AdditionResponse(BaseModel):
    id: str
    budget_id: str | None = None
    title: str
    description: str | None
    materials: list[dict]
    labour: list[dict]
    expenses: list[dict]
    logistics: list[dict]
    total_amount: float
    status: AdditionStatus
    budget_type: BudgetType
    source_type: AdditionSourceType
    source_material_id: str | None = None
    source_element_id: str | None = None
    is_virtual: bool = False
    created_by: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    approval_notes: str | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime | None = None


class AdditionListResponse(BaseModel):
    additions: list[AdditionResponse]
    total: int
