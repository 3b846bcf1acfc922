import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expoflow.common.enums import QuoteStatus
from expoflow.db.base import BaseModel


class QuoteDocument(BaseModel):
    __tablename__ = "task_quote_data"

    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("enquiry_tasks.id"), unique=True, nullable=False, index=True
    )
    project_info: Mapped[dict | None] = mapped_column(JSONB, nullable=True, default=dict)
    status: Mapped[QuoteStatus] = mapped_column(String(20), nullable=False, default=QuoteStatus.DRAFT)

    # Budget provenance
    budget_imported: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    budget_imported_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    budget_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    budget_version: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Pricing
    margins: Mapped[dict | None] = mapped_column(JSONB, nullable=True, default=dict)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    vat_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    vat_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("16.00"))

    materials: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    labour: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    expenses: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    logistics: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    totals: Mapped[dict | None] = mapped_column(JSONB, nullable=True, default=dict)

    # Relationships
    task = relationship("EnquiryTask", lazy="selectin")
