"""Per-department sign-off for materials documents.

Approval only ever regresses through a content change on save; each
department is tracked independently and the aggregate is fully approved
only when design, production and finance have all signed off.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from expoflow.common.enums import Department
from expoflow.common.exceptions import ValidationError
from expoflow.core.materials.schemas import ApprovalStatus, DepartmentApproval

RESET_COMMENT = "Approval reset automatically: materials content changed"


@dataclass
class ApprovalOutcome:
    status: ApprovalStatus
    department: Department
    fully_approved: bool
    became_fully_approved: bool


def parse_department(value: str) -> Department:
    try:
        return Department(value)
    except ValueError:
        allowed = ", ".join(d.value for d in Department)
        raise ValidationError(
            "Invalid department",
            {"department": [f"Must be one of: {allowed}"]},
        )


def initial_status() -> ApprovalStatus:
    return ApprovalStatus()


def load_status(raw: dict | None) -> ApprovalStatus | None:
    if not raw:
        return None
    return ApprovalStatus.model_validate(raw)


def is_fully_approved(status: ApprovalStatus | None) -> bool:
    if status is None:
        return False
    return all(getattr(status, d.value).approved for d in Department)


def record_approval(
    status: ApprovalStatus | None,
    department: str | Department,
    approver_id: str,
    approver_name: str,
    comment: str | None = None,
    now: datetime | None = None,
) -> ApprovalOutcome:
    dept = department if isinstance(department, Department) else parse_department(department)
    now = now or datetime.now(timezone.utc)

    was_fully_approved = is_fully_approved(status)
    updated = status.model_copy(deep=True) if status else initial_status()
    setattr(
        updated,
        dept.value,
        DepartmentApproval(
            approved=True,
            approver_id=approver_id,
            approver_name=approver_name,
            approved_at=now,
            comment=comment,
        ),
    )

    updated.all_approved = is_fully_approved(updated)
    if updated.all_approved:
        updated.last_approval_at = now

    return ApprovalOutcome(
        status=updated,
        department=dept,
        fully_approved=updated.all_approved,
        became_fully_approved=updated.all_approved and not was_fully_approved,
    )


def apply_save_policy(
    existing: ApprovalStatus | None,
    content_changed: bool,
    now: datetime | None = None,
) -> tuple[ApprovalStatus, bool]:
    """Decide the approval state to persist alongside a materials save.

    Returns the status and whether a reset happened.
    """
    if existing is None:
        return initial_status(), False
    if not content_changed:
        return existing.model_copy(deep=True), False

    now = now or datetime.now(timezone.utc)
    reset = ApprovalStatus(
        **{d.value: DepartmentApproval(comment=RESET_COMMENT) for d in Department},
        all_approved=False,
        last_approval_at=existing.last_approval_at,
        reset_at=now,
    )
    return reset, True
