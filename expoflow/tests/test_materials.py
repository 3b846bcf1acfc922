import uuid

import pytest
from sqlalchemy import update

from expoflow.core.materials.approval import RESET_COMMENT
from expoflow.db.models.materials import MaterialsDocument


@pytest.mark.asyncio
async def test_get_materials_before_save_returns_defaults(client, auth_headers, tasks):
    response = await client.get(f"/api/v1/tasks/{tasks['materials'].id}/materials", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["id"] is None
    assert data["projectElements"] == []
    assert data["projectInfo"]["clientName"] == "Acme Events"
    assert data["projectInfo"]["setDownDate"] == "TBC"
    assert data["approvalStatus"]["all_approved"] is False


@pytest.mark.asyncio
async def test_materials_require_materials_task(client, auth_headers, tasks):
    response = await client.get(f"/api/v1/tasks/{tasks['budget'].id}/materials", headers=auth_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_materials_require_auth(client, tasks):
    response = await client.get(
        f"/api/v1/tasks/{tasks['materials'].id}/materials",
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_save_materials(client, tasks, save_materials, element_payload, material_payload):
    data = await save_materials(
        tasks["materials"],
        [element_payload(materials=[material_payload(), material_payload("Paint", 4, "Litres")])],
        project_info={"projectId": "ENQ-1", "approvalStatus": {"all_approved": True}},
    )

    assert data["approvalsReset"] is False
    assert data["message"] == "Materials data saved successfully"
    document = data["data"]
    assert "approvalStatus" not in document["projectInfo"]
    assert document["approvalStatus"]["all_approved"] is False
    element = document["projectElements"][0]
    assert element["elementType"] == "stage"
    assert [m["description"] for m in element["materials"]] == ["Plywood", "Paint"]
    assert all(m["id"] for m in element["materials"])


@pytest.mark.asyncio
async def test_save_keeps_available_elements(client, auth_headers, tasks, element_payload):
    url = f"/api/v1/tasks/{tasks['materials'].id}/materials"
    templates = [{"id": "tpl_stage", "name": "Stage"}, {"id": "tpl_booth", "name": "Booth"}]

    response = await client.post(
        url,
        headers=auth_headers,
        json={"projectInfo": {}, "projectElements": [element_payload()], "availableElements": templates},
    )
    assert response.status_code == 200
    assert response.json()["data"]["availableElements"] == templates

    # Omitting the field leaves the stored templates alone
    response = await client.post(
        url, headers=auth_headers, json={"projectInfo": {}, "projectElements": [element_payload()]}
    )
    assert response.json()["data"]["availableElements"] == templates

    response = await client.get(url, headers=auth_headers)
    assert response.json()["availableElements"] == templates


@pytest.mark.asyncio
async def test_approve_invalid_department(client, tasks, auth_headers, save_materials, element_payload):
    await save_materials(tasks["materials"], [element_payload()])
    response = await client.post(
        f"/api/v1/tasks/{tasks['materials'].id}/materials/approve/marketing",
        headers=auth_headers,
    )
    assert response.status_code == 422
    assert response.json()["detail"]["message"] == "Invalid department"


@pytest.mark.asyncio
async def test_approve_before_save_not_found(client, tasks, auth_headers):
    response = await client.post(
        f"/api/v1/tasks/{tasks['materials'].id}/materials/approve/design",
        headers=auth_headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_single_department_approval(
    client, tasks, department_headers, designer_user, save_materials, element_payload, material_payload
):
    await save_materials(tasks["materials"], [element_payload(materials=[material_payload()])])
    response = await client.post(
        f"/api/v1/tasks/{tasks['materials'].id}/materials/approve/design",
        headers=department_headers["design"],
        json={"comments": "Looks right"},
    )
    assert response.status_code == 200
    status = response.json()
    assert status["design"]["approved"] is True
    assert status["design"]["approver_name"] == designer_user.full_name
    assert status["design"]["comment"] == "Looks right"
    assert status["production"]["approved"] is False
    assert status["all_approved"] is False


@pytest.mark.asyncio
async def test_full_approval(tasks, approve_all, save_materials, element_payload, material_payload):
    await save_materials(tasks["materials"], [element_payload(materials=[material_payload()])])
    status = await approve_all(tasks["materials"])
    assert status["all_approved"] is True
    assert status["last_approval_at"] is not None


@pytest.mark.asyncio
async def test_resave_same_content_keeps_approvals(
    tasks, approve_all, save_materials, element_payload, material_payload
):
    elements = [
        element_payload(materials=[material_payload(), material_payload("Paint", 4)]),
        element_payload("booth", "Reception", materials=[material_payload("Carpet", 20)]),
    ]
    await save_materials(tasks["materials"], elements)
    await approve_all(tasks["materials"])

    # Reordered elements and materials are not a content change
    reordered = [
        element_payload("booth", "Reception", materials=[material_payload("Carpet", 20)]),
        element_payload(materials=[material_payload("Paint", 4), material_payload()]),
    ]
    data = await save_materials(tasks["materials"], reordered, project_info={"notes": "updated"})
    assert data["approvalsReset"] is False
    assert data["data"]["approvalStatus"]["all_approved"] is True
    assert data["data"]["projectInfo"] == {"notes": "updated"}


@pytest.mark.asyncio
async def test_content_change_resets_approvals(
    tasks, approve_all, save_materials, element_payload, material_payload
):
    await save_materials(tasks["materials"], [element_payload(materials=[material_payload(quantity=10)])])
    first = await approve_all(tasks["materials"])

    data = await save_materials(tasks["materials"], [element_payload(materials=[material_payload(quantity=15)])])
    assert data["approvalsReset"] is True
    status = data["data"]["approvalStatus"]
    assert status["all_approved"] is False
    assert status["reset_at"] is not None
    assert status["last_approval_at"] == first["last_approval_at"]
    for department in ("design", "production", "finance"):
        assert status[department]["approved"] is False
        assert status[department]["comment"] == RESET_COMMENT


@pytest.mark.asyncio
async def test_added_element_resets_approvals(
    tasks, approve_all, save_materials, element_payload, material_payload
):
    await save_materials(tasks["materials"], [element_payload(materials=[material_payload()])])
    await approve_all(tasks["materials"])

    data = await save_materials(
        tasks["materials"],
        [element_payload(materials=[material_payload()]), element_payload("truss", "Lighting Rig")],
    )
    assert data["approvalsReset"] is True


@pytest.mark.asyncio
async def test_concurrent_save_conflict(
    client, db_session, auth_headers, tasks, save_materials, element_payload, material_payload
):
    data = await save_materials(tasks["materials"], [element_payload(materials=[material_payload()])])

    # Another writer bumps the document version behind this session's back
    await db_session.execute(
        update(MaterialsDocument.__table__)
        .where(MaterialsDocument.__table__.c.id == uuid.UUID(data["data"]["id"]))
        .values(approval_version=MaterialsDocument.__table__.c.approval_version + 1)
    )

    response = await client.post(
        f"/api/v1/tasks/{tasks['materials'].id}/materials",
        headers=auth_headers,
        json={"projectInfo": {}, "projectElements": [element_payload(materials=[material_payload(quantity=3)])]},
    )
    assert response.status_code == 409
