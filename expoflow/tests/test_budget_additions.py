import uuid

import pytest


def _additions_url(tasks, suffix=""):
    return f"/api/v1/tasks/{tasks['budget'].id}/budget-additions{suffix}"


@pytest.fixture
def save_additional_material(tasks, save_materials, element_payload, material_payload):
    async def _save():
        data = await save_materials(
            tasks["materials"],
            [
                element_payload(
                    materials=[material_payload(), material_payload("LED Screen", 2, isAdditional=True)]
                )
            ],
        )
        element = data["data"]["projectElements"][0]
        return next(m for m in element["materials"] if m["description"] == "LED Screen")

    return _save


@pytest.mark.asyncio
async def test_list_additions_empty(client, auth_headers, tasks):
    response = await client.get(_additions_url(tasks), headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"additions": [], "total": 0}


@pytest.mark.asyncio
async def test_additional_material_listed_as_virtual(client, auth_headers, tasks, save_additional_material):
    material = await save_additional_material()

    response = await client.get(_additions_url(tasks), headers=auth_headers)
    data = response.json()
    assert data["total"] == 1
    addition = data["additions"][0]
    assert addition["id"] == f"materials_additional_{material['id']}"
    assert addition["is_virtual"] is True
    assert addition["title"] == "Additional: LED Screen"
    assert addition["description"] == "Automatically created from Materials Task - Element: Main Stage"
    assert addition["status"] == "pending_approval"
    assert addition["source_type"] == "materials_additional"
    assert addition["materials"][0]["quantity"] == 2

    response = await client.get(_additions_url(tasks, f"/{addition['id']}"), headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["is_virtual"] is True


@pytest.mark.asyncio
async def test_approve_virtual_addition_materializes_row(client, auth_headers, tasks, save_additional_material):
    material = await save_additional_material()
    virtual_id = f"materials_additional_{material['id']}"

    response = await client.post(
        _additions_url(tasks, f"/{virtual_id}/approve"),
        headers=auth_headers,
        json={"action": "approve", "notes": "Client signed off"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["is_virtual"] is False
    assert data["status"] == "approved"
    assert data["approval_notes"] == "Client signed off"
    assert data["source_material_id"] == material["id"]
    uuid.UUID(data["id"])

    listing = (await client.get(_additions_url(tasks), headers=auth_headers)).json()
    assert listing["total"] == 1
    assert listing["additions"][0]["id"] == data["id"]


@pytest.mark.asyncio
async def test_reject_virtual_addition_stores_rejection(client, auth_headers, tasks, save_additional_material):
    material = await save_additional_material()
    virtual_id = f"materials_additional_{material['id']}"

    response = await client.post(
        _additions_url(tasks, f"/{virtual_id}/approve"),
        headers=auth_headers,
        json={"action": "reject", "notes": "Not needed"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "rejected"
    assert data["rejection_reason"] == "Not needed"
    assert data["rejected_by"] is not None
    assert data["is_virtual"] is False
    assert data["source_material_id"] == material["id"]

    listing = (await client.get(_additions_url(tasks), headers=auth_headers)).json()
    assert listing["total"] == 1
    assert listing["additions"][0]["id"] == data["id"]
    assert not any(a["is_virtual"] for a in listing["additions"])

    response = await client.post(
        _additions_url(tasks, f"/{virtual_id}/approve"), headers=auth_headers, json={"action": "approve"}
    )
    assert response.status_code == 409

    budget = (await client.get(f"/api/v1/tasks/{tasks['budget'].id}/budget", headers=auth_headers)).json()
    assert budget["budgetSummary"]["additionsTotal"] == 0


@pytest.mark.asyncio
async def test_approve_virtual_matches_its_own_material(
    client, auth_headers, tasks, save_materials, element_payload, material_payload
):
    data = await save_materials(
        tasks["materials"],
        [
            element_payload(materials=[material_payload("LED Screen", 2, isAdditional=True)]),
            element_payload(
                "booth", "Reception", materials=[material_payload("LED Screen", 1, isAdditional=True)]
            ),
        ],
    )
    first, second = (element["materials"][0]["id"] for element in data["data"]["projectElements"])

    draft = (
        await client.patch(
            _additions_url(tasks, f"/materials_additional_{first}"),
            headers=auth_headers,
            json={"materials": [{"description": "LED Screen", "quantity": 2, "unitPrice": 100}]},
        )
    ).json()
    assert draft["status"] == "draft"

    response = await client.post(
        _additions_url(tasks, f"/materials_additional_{second}/approve"),
        headers=auth_headers,
        json={"action": "approve"},
    )
    assert response.status_code == 200
    approved = response.json()
    assert approved["id"] != draft["id"]
    assert approved["source_material_id"] == second
    assert approved["description"] == "Automatically created from Materials Task - Element: Reception"

    draft = (await client.get(_additions_url(tasks, f"/{draft['id']}"), headers=auth_headers)).json()
    assert draft["status"] == "draft"


@pytest.mark.asyncio
async def test_update_virtual_addition_creates_draft(client, auth_headers, tasks, save_additional_material):
    material = await save_additional_material()
    virtual_id = f"materials_additional_{material['id']}"

    response = await client.patch(
        _additions_url(tasks, f"/{virtual_id}"),
        headers=auth_headers,
        json={"materials": [{"description": "LED Screen", "quantity": 2, "unitPrice": 1200}]},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "draft"
    assert data["is_virtual"] is False
    assert data["total_amount"] == 2400

    listing = (await client.get(_additions_url(tasks), headers=auth_headers)).json()
    assert listing["total"] == 1


@pytest.mark.asyncio
async def test_virtual_addition_cannot_be_deleted(client, auth_headers, tasks, save_additional_material):
    material = await save_additional_material()
    response = await client.delete(
        _additions_url(tasks, f"/materials_additional_{material['id']}"), headers=auth_headers
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_malformed_addition_id(client, auth_headers, tasks):
    response = await client.get(_additions_url(tasks, "/materials_additional_nope"), headers=auth_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_full_approval_reconciles_additions_once(
    client, auth_headers, department_headers, tasks, save_additional_material, approve_all
):
    await save_additional_material()
    await approve_all(tasks["materials"])

    # Approving again while fully approved reruns reconciliation
    response = await client.post(
        f"/api/v1/tasks/{tasks['materials'].id}/materials/approve/design",
        headers=department_headers["design"],
    )
    assert response.status_code == 200

    listing = (await client.get(_additions_url(tasks), headers=auth_headers)).json()
    assert listing["total"] == 1
    addition = listing["additions"][0]
    assert addition["is_virtual"] is False
    assert addition["title"] == "Additional: LED Screen"
    assert addition["status"] == "pending_approval"


@pytest.mark.asyncio
async def test_create_supplementary_addition_lifecycle(client, auth_headers, tasks):
    response = await client.post(
        _additions_url(tasks),
        headers=auth_headers,
        json={
            "title": "Extra signage",
            "materials": [{"description": "Vinyl print", "quantity": 3, "unitPrice": 150}],
            "labour": [{"description": "Installer", "quantity": 1, "unitPrice": 400}],
        },
    )
    assert response.status_code == 201
    addition = response.json()
    assert addition["status"] == "draft"
    assert addition["budget_type"] == "supplementary"
    assert addition["total_amount"] == 850

    response = await client.patch(
        _additions_url(tasks, f"/{addition['id']}"),
        headers=auth_headers,
        json={"status": "pending_approval"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "pending_approval"

    response = await client.post(
        _additions_url(tasks, f"/{addition['id']}/approve"),
        headers=auth_headers,
        json={"action": "approve"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "approved"

    budget = (await client.get(f"/api/v1/tasks/{tasks['budget'].id}/budget", headers=auth_headers)).json()
    assert budget["budgetSummary"]["additionsTotal"] == 850
    assert budget["budgetSummary"]["grandTotal"] == 850

    response = await client.post(
        _additions_url(tasks, f"/{addition['id']}/approve"),
        headers=auth_headers,
        json={"action": "reject"},
    )
    assert response.status_code == 409

    response = await client.patch(
        _additions_url(tasks, f"/{addition['id']}"), headers=auth_headers, json={"title": "Late edit"}
    )
    assert response.status_code == 409

    response = await client.delete(_additions_url(tasks, f"/{addition['id']}"), headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_main_addition_starts_approved(client, auth_headers, tasks):
    response = await client.post(
        _additions_url(tasks),
        headers=auth_headers,
        json={
            "title": "Extra lighting",
            "budget_type": "main",
            "materials": [{"description": "Spotlight", "quantity": 4, "unitPrice": 250}],
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "approved"
    assert data["approved_by"] is not None
    assert data["total_amount"] == 1000


@pytest.mark.asyncio
async def test_delete_draft_addition(client, auth_headers, tasks):
    created = (
        await client.post(_additions_url(tasks), headers=auth_headers, json={"title": "Temporary"})
    ).json()

    response = await client.delete(_additions_url(tasks, f"/{created['id']}"), headers=auth_headers)
    assert response.status_code == 204

    response = await client.get(_additions_url(tasks, f"/{created['id']}"), headers=auth_headers)
    assert response.status_code == 404
    assert (await client.get(_additions_url(tasks), headers=auth_headers)).json()["total"] == 0


@pytest.mark.asyncio
async def test_create_addition_from_material(client, auth_headers, tasks, save_additional_material):
    material = await save_additional_material()

    response = await client.post(
        _additions_url(tasks, "/from-material"),
        headers=auth_headers,
        json={"material_id": material["id"]},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Material: LED Screen"
    assert data["status"] == "draft"
    assert data["source_material_id"] == material["id"]

    response = await client.post(
        _additions_url(tasks, "/from-material"),
        headers=auth_headers,
        json={"material_id": str(uuid.uuid4())},
    )
    assert response.status_code == 404
