"""Initial schema - enquiries, materials, budget, additions, quotes, versions

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _uuid_pk() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True)


def upgrade() -> None:
    # Users
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(30), nullable=False, server_default="project_manager"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        *_audit_columns(),
    )

    # Enquiries and their tasks
    op.create_table(
        "project_enquiries",
        _uuid_pk(),
        sa.Column("enquiry_number", sa.String(50), unique=True, nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("client_name", sa.String(255), nullable=True),
        sa.Column("venue", sa.String(500), nullable=True),
        sa.Column("expected_delivery_date", sa.String(50), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        *_audit_columns(),
    )
    op.create_table(
        "enquiry_tasks",
        _uuid_pk(),
        sa.Column(
            "enquiry_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("project_enquiries.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("type", sa.String(30), nullable=False, index=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        *_audit_columns(),
    )

    # Materials
    op.create_table(
        "task_materials_data",
        _uuid_pk(),
        sa.Column(
            "task_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("enquiry_tasks.id"),
            unique=True,
            nullable=False,
            index=True,
        ),
        sa.Column("project_info", postgresql.JSONB, nullable=True),
        sa.Column("available_elements", postgresql.JSONB, nullable=True),
        sa.Column("approval_status", postgresql.JSONB, nullable=True),
        sa.Column("approval_version", sa.Integer, nullable=False),
        sa.Column("last_saved_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_table(
        "project_elements",
        _uuid_pk(),
        sa.Column(
            "materials_document_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("task_materials_data.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("template_id", sa.String(100), nullable=True),
        sa.Column("element_type", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(20), nullable=False, server_default="production"),
        sa.Column("dimensions", postgresql.JSONB, nullable=True),
        sa.Column("is_included", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default=sa.text("0")),
        *_audit_columns(),
    )
    op.create_table(
        "element_materials",
        _uuid_pk(),
        sa.Column(
            "project_element_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("project_elements.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("unit_of_measurement", sa.String(50), nullable=False),
        sa.Column("quantity", sa.Float, nullable=False, server_default=sa.text("0")),
        sa.Column("is_included", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("is_additional", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default=sa.text("0")),
        *_audit_columns(),
    )

    # Budget
    op.create_table(
        "task_budget_data",
        _uuid_pk(),
        sa.Column(
            "task_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("enquiry_tasks.id"),
            unique=True,
            nullable=False,
            index=True,
        ),
        sa.Column("schema_version", sa.Integer, nullable=False, server_default=sa.text("1")),
        sa.Column("project_info", postgresql.JSONB, nullable=True),
        sa.Column("materials", postgresql.JSONB, nullable=True),
        sa.Column("labour", postgresql.JSONB, nullable=True),
        sa.Column("expenses", postgresql.JSONB, nullable=True),
        sa.Column("logistics", postgresql.JSONB, nullable=True),
        sa.Column("budget_summary", postgresql.JSONB, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("materials_imported_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("materials_imported_from_task", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("materials_manually_modified", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("materials_import_metadata", postgresql.JSONB, nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_saved_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_table(
        "budget_additions",
        _uuid_pk(),
        sa.Column(
            "budget_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("task_budget_data.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("title", sa.String(500), nullable=False, index=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("materials", postgresql.JSONB, nullable=True),
        sa.Column("labour", postgresql.JSONB, nullable=True),
        sa.Column("expenses", postgresql.JSONB, nullable=True),
        sa.Column("logistics", postgresql.JSONB, nullable=True),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft", index=True),
        sa.Column("budget_type", sa.String(20), nullable=False, server_default="supplementary"),
        sa.Column("source_type", sa.String(30), nullable=False, server_default="manual"),
        sa.Column("source_material_id", postgresql.UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("source_element_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_notes", sa.Text, nullable=True),
        sa.Column("rejected_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        *_audit_columns(),
    )

    # Quote
    op.create_table(
        "task_quote_data",
        _uuid_pk(),
        sa.Column(
            "task_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("enquiry_tasks.id"),
            unique=True,
            nullable=False,
            index=True,
        ),
        sa.Column("project_info", postgresql.JSONB, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("budget_imported", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("budget_imported_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("budget_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("budget_version", sa.String(100), nullable=True),
        sa.Column("margins", postgresql.JSONB, nullable=True),
        sa.Column("discount_amount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("vat_enabled", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("vat_percentage", sa.Numeric(5, 2), nullable=False, server_default=sa.text("16")),
        sa.Column("materials", postgresql.JSONB, nullable=True),
        sa.Column("labour", postgresql.JSONB, nullable=True),
        sa.Column("expenses", postgresql.JSONB, nullable=True),
        sa.Column("logistics", postgresql.JSONB, nullable=True),
        sa.Column("totals", postgresql.JSONB, nullable=True),
        *_audit_columns(),
    )

    # Version history
    op.create_table(
        "materials_versions",
        _uuid_pk(),
        sa.Column(
            "materials_document_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("task_materials_data.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("label", sa.String(255), nullable=True),
        sa.Column("data", postgresql.JSONB, nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("source_updated_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint("materials_document_id", "version_number"),
    )
    op.create_table(
        "budget_versions",
        _uuid_pk(),
        sa.Column(
            "budget_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("task_budget_data.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("label", sa.String(255), nullable=True),
        sa.Column("data", postgresql.JSONB, nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("source_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "materials_version_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("materials_versions.id"),
            nullable=True,
        ),
        *_audit_columns(),
        sa.UniqueConstraint("budget_id", "version_number"),
    )


def downgrade() -> None:
    op.drop_table("budget_versions")
    op.drop_table("materials_versions")
    op.drop_table("task_quote_data")
    op.drop_table("budget_additions")
    op.drop_table("task_budget_data")
    op.drop_table("element_materials")
    op.drop_table("project_elements")
    op.drop_table("task_materials_data")
    op.drop_table("enquiry_tasks")
    op.drop_table("project_enquiries")
    op.drop_table("users")
