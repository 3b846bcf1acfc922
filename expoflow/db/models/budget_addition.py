import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from expoflow.common.enums import AdditionSourceType, AdditionStatus, BudgetType
from expoflow.db.base import BaseModel


class BudgetAddition(BaseModel):
    __tablename__ = "budget_additions"

    budget_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("task_budget_data.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    materials: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    labour: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    expenses: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    logistics: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    status: Mapped[AdditionStatus] = mapped_column(
        String(20), nullable=False, default=AdditionStatus.DRAFT, index=True
    )
    budget_type: Mapped[BudgetType] = mapped_column(
        String(20), nullable=False, default=BudgetType.SUPPLEMENTARY
    )
    source_type: Mapped[AdditionSourceType] = mapped_column(
        String(30), nullable=False, default=AdditionSourceType.MANUAL
    )
    source_material_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True, index=True)
    source_element_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    # Audit
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    approved_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejected_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

