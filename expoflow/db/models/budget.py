import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expoflow.common.enums import BudgetStatus
from expoflow.db.base import BaseModel


class BudgetDocument(BaseModel):
    __tablename__ = "task_budget_data"

    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("enquiry_tasks.id"), unique=True, nullable=False, index=True
    )
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    project_info: Mapped[dict | None] = mapped_column(JSONB, nullable=True, default=dict)
    materials: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    labour: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    expenses: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    logistics: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    budget_summary: Mapped[dict | None] = mapped_column(JSONB, nullable=True, default=dict)
    status: Mapped[BudgetStatus] = mapped_column(String(20), nullable=False, default=BudgetStatus.DRAFT)

    # Import provenance
    materials_imported_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    materials_imported_from_task: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    materials_manually_modified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    materials_import_metadata: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_saved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    task = relationship("EnquiryTask", lazy="selectin")
