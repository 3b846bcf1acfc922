import pytest


def _materials_url(tasks, suffix=""):
    return f"/api/v1/tasks/{tasks['materials'].id}/materials{suffix}"


def _budget_url(tasks, suffix=""):
    return f"/api/v1/tasks/{tasks['budget'].id}/budget{suffix}"


@pytest.mark.asyncio
async def test_versions_require_saved_document(client, auth_headers, tasks):
    response = await client.get(_materials_url(tasks, "/versions"), headers=auth_headers)
    assert response.status_code == 404

    response = await client.get(_budget_url(tasks, "/versions"), headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_full_approval_records_materials_version(
    client, auth_headers, tasks, save_materials, approve_all, element_payload, material_payload
):
    await save_materials(tasks["materials"], [element_payload(materials=[material_payload()])])
    await approve_all(tasks["materials"])

    response = await client.get(_materials_url(tasks, "/versions"), headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    version = data["versions"][0]
    assert version["version_number"] == 1
    assert version["label"] == "Fully approved"
    assert version["data"]["approvalStatus"]["all_approved"] is True
    assert version["data"]["projectElements"][0]["materials"][0]["description"] == "Plywood"


@pytest.mark.asyncio
async def test_create_and_get_materials_version(
    client, auth_headers, tasks, save_materials, element_payload, material_payload
):
    await save_materials(tasks["materials"], [element_payload(materials=[material_payload()])])

    response = await client.post(
        _materials_url(tasks, "/versions"), headers=auth_headers, json={"label": "Client review"}
    )
    assert response.status_code == 201
    assert response.json()["version_number"] == 1

    response = await client.post(_materials_url(tasks, "/versions"), headers=auth_headers)
    assert response.status_code == 201
    assert response.json()["version_number"] == 2
    assert response.json()["label"] is None

    response = await client.get(_materials_url(tasks, "/versions/1"), headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["label"] == "Client review"

    response = await client.get(_materials_url(tasks, "/versions/9"), headers=auth_headers)
    assert response.status_code == 404

    listing = (
        await client.get(_materials_url(tasks, "/versions"), headers=auth_headers, params={"page_size": 1})
    ).json()
    assert listing["total"] == 2
    assert listing["total_pages"] == 2
    assert [v["version_number"] for v in listing["versions"]] == [2]


@pytest.mark.asyncio
async def test_restore_materials_version(
    client, auth_headers, tasks, save_materials, element_payload, material_payload
):
    await save_materials(tasks["materials"], [element_payload(materials=[material_payload(quantity=10)])])
    await client.post(_materials_url(tasks, "/versions"), headers=auth_headers, json={"label": "Original"})
    await save_materials(tasks["materials"], [element_payload(materials=[material_payload(quantity=99)])])

    response = await client.post(_materials_url(tasks, "/versions/1/restore"), headers=auth_headers)
    assert response.status_code == 200
    restored = response.json()["data"]
    assert restored["projectElements"][0]["materials"][0]["quantity"] == 10

    listing = (await client.get(_materials_url(tasks, "/versions"), headers=auth_headers)).json()
    assert listing["total"] == 2
    assert listing["versions"][0]["label"] == "Restored from version 1"


@pytest.mark.asyncio
async def test_budget_versions(client, auth_headers, tasks):
    first = {
        "labour": [{"id": "lab_1", "type": "Carpenter", "quantity": 2, "unitRate": 500}],
    }
    await client.post(_budget_url(tasks), headers=auth_headers, json=first)

    response = await client.post(_budget_url(tasks, "/versions"), headers=auth_headers, json={"label": "Draft 1"})
    assert response.status_code == 201
    version = response.json()
    assert version["version_number"] == 1
    assert version["data"]["labour"][0]["amount"] == 1000
    assert version["data"]["budgetSummary"]["grandTotal"] == 1000

    await client.post(
        _budget_url(tasks),
        headers=auth_headers,
        json={"labour": [{"id": "lab_1", "type": "Carpenter", "quantity": 5, "unitRate": 500}]},
    )

    response = await client.post(_budget_url(tasks, "/versions/1/restore"), headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["labour"][0]["quantity"] == 2
    assert data["budgetSummary"]["labourTotal"] == 1000

    listing = (await client.get(_budget_url(tasks, "/versions"), headers=auth_headers)).json()
    assert listing["total"] == 2
    assert listing["versions"][0]["label"] == "Restored from version 1"

    response = await client.get(_budget_url(tasks, "/versions/7"), headers=auth_headers)
    assert response.status_code == 404
