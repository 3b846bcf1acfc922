import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expoflow.common.enums import ElementCategory
from expoflow.db.base import BaseModel


class MaterialsDocument(BaseModel):
    __tablename__ = "task_materials_data"

    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("enquiry_tasks.id"), unique=True, nullable=False, index=True
    )
    project_info: Mapped[dict | None] = mapped_column(JSONB, nullable=True, default=dict)
    available_elements: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    approval_status: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    approval_version: Mapped[int] = mapped_column(Integer, nullable=False)
    last_saved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    elements = relationship(
        "ProjectElement",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="ProjectElement.sort_order",
        lazy="selectin",
    )
    task = relationship("EnquiryTask", lazy="selectin")

    __mapper_args__ = {"version_id_col": approval_version}


class ProjectElement(BaseModel):
    __tablename__ = "project_elements"

    materials_document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("task_materials_data.id", ondelete="CASCADE"), nullable=False, index=True
    )
    template_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    element_type: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[ElementCategory] = mapped_column(
        String(20), nullable=False, default=ElementCategory.PRODUCTION
    )
    dimensions: Mapped[dict | None] = mapped_column(JSONB, nullable=True, default=dict)
    is_included: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    document = relationship("MaterialsDocument", back_populates="elements")
    materials = relationship(
        "ElementMaterial",
        back_populates="element",
        cascade="all, delete-orphan",
        order_by="ElementMaterial.sort_order",
        lazy="selectin",
    )


class ElementMaterial(BaseModel):
    __tablename__ = "element_materials"

    project_element_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("project_elements.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    unit_of_measurement: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_included: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_additional: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    element = relationship("ProjectElement", back_populates="materials")
