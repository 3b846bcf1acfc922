"""Pydantic models for materials documents and their approval state.

Inputs accept both camelCase (client payloads) and snake_case (internal
dumps); outputs serialize as camelCase.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from expoflow.common.enums import ElementCategory

CAMEL_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


# ---------------------------------------------------------------------------
# Elements and materials
# ---------------------------------------------------------------------------


class MaterialItem(BaseModel):
    id: str | None = None
    description: str = Field(..., min_length=1, max_length=500)
    unit_of_measurement: str = Field(..., min_length=1, max_length=50)
    quantity: float = Field(..., ge=0)
    is_included: bool = True
    is_additional: bool = False
    notes: str | None = None
    sort_order: int | None = None

    model_config = CAMEL_CONFIG


class ProjectElementItem(BaseModel):
    id: str | None = None
    template_id: str | None = None
    element_type: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    category: ElementCategory
    dimensions: dict = Field(default_factory=dict)
    is_included: bool = True
    notes: str | None = None
    sort_order: int | None = None
    materials: list[MaterialItem] = Field(default_factory=list)

    model_config = CAMEL_CONFIG


class MaterialsSaveRequest(BaseModel):
    project_info: dict = Field(default_factory=dict)
    project_elements: list[ProjectElementItem]
    available_elements: list | None = None

    model_config = CAMEL_CONFIG


# ---------------------------------------------------------------------------
# Approval state
# ---------------------------------------------------------------------------


class DepartmentApproval(BaseModel):
    approved: bool = False
    approver_id: str | None = None
    approver_name: str | None = None
    approved_at: datetime | None = None
    comment: str | None = None


class ApprovalStatus(BaseModel):
    """Per-department sign-off on a materials document."""

    design: DepartmentApproval = Field(default_factory=DepartmentApproval)
    production: DepartmentApproval = Field(default_factory=DepartmentApproval)
    finance: DepartmentApproval = Field(default_factory=DepartmentApproval)
    all_approved: bool = False
    last_approval_at: datetime | None = None
    reset_at: datetime | None = None


class ApprovalRequest(BaseModel):
    comments: str | None = Field(None, max_length=2000)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class MaterialsDocumentResponse(BaseModel):
    id: str | None = None
    task_id: str
    project_info: dict
    project_elements: list[dict]
    available_elements: list = Field(default_factory=list)
    approval_status: ApprovalStatus
    approval_version: int | None = None
    last_saved_at: datetime | None = None

    model_config = CAMEL_CONFIG


class MaterialsSaveResponse(BaseModel):
    data: MaterialsDocumentResponse
    approvals_reset: bool
    message: str

    model_config = CAMEL_CONFIG
