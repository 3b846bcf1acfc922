"""Loading and serializing materials documents."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.core.materials.approval import initial_status, load_status
from expoflow.core.materials.schemas import MaterialsDocumentResponse, ProjectElementItem
from expoflow.db.models.enquiry import EnquiryTask
from expoflow.db.models.materials import ElementMaterial, MaterialsDocument, ProjectElement


async def get_materials_document(task_id: uuid.UUID, db: AsyncSession) -> MaterialsDocument | None:
    result = await db.execute(
        select(MaterialsDocument).where(
            MaterialsDocument.task_id == task_id,
            MaterialsDocument.is_deleted.is_(False),
        )
    )
    return result.scalar_one_or_none()


def dump_material(material: ElementMaterial) -> dict:
    return {
        "id": str(material.id),
        "description": material.description,
        "unit_of_measurement": material.unit_of_measurement,
        "quantity": float(material.quantity),
        "is_included": material.is_included,
        "is_additional": material.is_additional,
        "notes": material.notes,
        "sort_order": material.sort_order,
    }


def dump_element(element: ProjectElement) -> dict:
    return {
        "id": str(element.id),
        "template_id": element.template_id,
        "element_type": element.element_type,
        "name": element.name,
        "category": element.category,
        "dimensions": element.dimensions or {},
        "is_included": element.is_included,
        "notes": element.notes,
        "sort_order": element.sort_order,
        "materials": [dump_material(m) for m in element.materials],
    }


def dump_elements(document: MaterialsDocument) -> list[dict]:
    return [dump_element(e) for e in document.elements]


def find_material(document: MaterialsDocument, material_id: uuid.UUID) -> tuple[dict, dict] | None:
    """Locate a material and its owning element by id, as snake_case dumps."""
    for element in dump_elements(document):
        for material in element["materials"]:
            if material["id"] == str(material_id):
                return element, material
    return None


def client_elements(elements: list[dict]) -> list[dict]:
    return [
        ProjectElementItem.model_validate(element).model_dump(mode="json", by_alias=True)
        for element in elements
    ]


def snapshot_payload(document: MaterialsDocument) -> dict:
    """Full camelCase payload stored in materials versions."""
    status = load_status(document.approval_status) or initial_status()
    return {
        "projectInfo": dict(document.project_info or {}),
        "projectElements": client_elements(dump_elements(document)),
        "availableElements": list(document.available_elements or []),
        "approvalStatus": status.model_dump(mode="json"),
    }


def default_project_info(task: EnquiryTask) -> dict:
    enquiry = task.enquiry
    return {
        "projectId": enquiry.enquiry_number if enquiry else f"ENQ-{task.enquiry_id}",
        "enquiryTitle": enquiry.title if enquiry else "Untitled Project",
        "clientName": (enquiry.client_name if enquiry else None) or "Unknown Client",
        "eventVenue": (enquiry.venue if enquiry else None) or "Venue TBC",
        "setupDate": (enquiry.expected_delivery_date if enquiry else None) or "Date TBC",
        "setDownDate": "TBC",
    }


def to_response(task: EnquiryTask, document: MaterialsDocument | None) -> MaterialsDocumentResponse:
    if document is None:
        return MaterialsDocumentResponse(
            task_id=str(task.id),
            project_info=default_project_info(task),
            project_elements=[],
            approval_status=initial_status(),
        )
    return MaterialsDocumentResponse(
        id=str(document.id),
        task_id=str(task.id),
        project_info=dict(document.project_info or {}),
        project_elements=client_elements(dump_elements(document)),
        available_elements=list(document.available_elements or []),
        approval_status=load_status(document.approval_status) or initial_status(),
        approval_version=document.approval_version,
        last_saved_at=document.last_saved_at,
    )
