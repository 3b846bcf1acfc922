import uuid

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expoflow.common.enums import TaskStatus, TaskType
from expoflow.db.base import BaseModel


class Enquiry(BaseModel):
    __tablename__ = "project_enquiries"

    enquiry_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    venue: Mapped[str | None] = mapped_column(String(500), nullable=True)
    expected_delivery_date: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    tasks = relationship("EnquiryTask", back_populates="enquiry", lazy="selectin")


class EnquiryTask(BaseModel):
    __tablename__ = "enquiry_tasks"

    enquiry_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("project_enquiries.id"), nullable=False, index=True
    )
    type: Mapped[TaskType] = mapped_column(String(30), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[TaskStatus] = mapped_column(String(20), nullable=False, default=TaskStatus.PENDING)

    # Relationships
    enquiry = relationship("Enquiry", back_populates="tasks", lazy="selectin")
