import uuid

import pytest

from expoflow.common.enums import TaskStatus


def _budget_url(tasks, suffix=""):
    return f"/api/v1/tasks/{tasks['budget'].id}/budget{suffix}"


def _set_unit_price(budget, description, unit_price):
    for element in budget["materials"]:
        for material in element["materials"]:
            if material["description"] == description:
                material["unitPrice"] = unit_price
    return budget


@pytest.mark.asyncio
async def test_get_budget_before_save(client, auth_headers, tasks):
    response = await client.get(_budget_url(tasks), headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["id"] is None
    assert data["status"] == "draft"
    assert data["budgetSummary"]["grandTotal"] == 0
    assert data["projectInfo"]["enquiryTitle"] == "Annual Trade Expo"


@pytest.mark.asyncio
async def test_save_budget_recalculates_lines(client, auth_headers, tasks):
    response = await client.post(
        _budget_url(tasks),
        headers=auth_headers,
        json={
            "materials": [
                {
                    "id": "elem_1",
                    "elementType": "stage",
                    "name": "Main Stage",
                    "materials": [
                        {"id": "mat_1", "description": "Plywood", "quantity": 10, "unitPrice": 100, "totalPrice": 1}
                    ],
                }
            ],
            "labour": [{"id": "lab_1", "type": "Carpenter", "quantity": 3, "unitRate": 1500}],
            "expenses": [{"id": "exp_1", "description": "Permits", "amount": 250.5}],
            "logistics": [{"id": "log_1", "description": "Truck", "quantity": 2, "unitRate": 800}],
            "budgetSummary": {"grandTotal": 1},
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert data["materials"][0]["materials"][0]["totalPrice"] == 1000
    assert data["labour"][0]["amount"] == 4500
    assert data["logistics"][0]["amount"] == 1600
    summary = data["budgetSummary"]
    assert summary["materialsTotal"] == 1000
    assert summary["labourTotal"] == 4500
    assert summary["expensesTotal"] == 250.5
    assert summary["logisticsTotal"] == 1600
    assert summary["grandTotal"] == 7350.5
    assert data["schemaVersion"] == 2


@pytest.mark.asyncio
async def test_save_budget_invalid_status_transition(client, auth_headers, tasks):
    response = await client.post(_budget_url(tasks), headers=auth_headers, json={"status": "approved"})
    assert response.status_code == 422
    assert response.json()["detail"]["message"] == "Invalid status transition"


@pytest.mark.asyncio
async def test_import_materials_requires_full_approval(
    client, auth_headers, tasks, save_materials, element_payload, material_payload
):
    await save_materials(tasks["materials"], [element_payload(materials=[material_payload()])])
    response = await client.post(_budget_url(tasks, "/import-materials"), headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_import_materials_without_materials_data(client, auth_headers, tasks):
    response = await client.post(_budget_url(tasks, "/import-materials"), headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_import_materials_rejected_for_completed_budget_task(
    client, db_session, auth_headers, tasks, save_materials, approve_all, element_payload, material_payload
):
    await save_materials(tasks["materials"], [element_payload(materials=[material_payload()])])
    await approve_all(tasks["materials"])
    tasks["budget"].status = TaskStatus.COMPLETED.value
    await db_session.flush()

    response = await client.post(_budget_url(tasks, "/import-materials"), headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_full_approval_syncs_budget(
    client, auth_headers, tasks, save_materials, approve_all, element_payload, material_payload
):
    await save_materials(
        tasks["materials"],
        [
            element_payload(
                materials=[
                    material_payload(),
                    material_payload("Spare Bolts", 50, isIncluded=False),
                    material_payload("LED Screen", 1, isAdditional=True),
                ]
            ),
            element_payload("booth", "Unused Booth", materials=[material_payload("Carpet")], isIncluded=False),
        ],
    )
    await approve_all(tasks["materials"])

    response = await client.get(_budget_url(tasks), headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data["materials"]) == 1
    element = data["materials"][0]
    assert element["id"].startswith("elem_")
    assert [m["description"] for m in element["materials"]] == ["Plywood"]
    assert element["materials"][0]["id"].startswith("mat_")
    assert element["materials"][0]["unitPrice"] == 0
    assert data["materialsImportedFromTask"] == str(tasks["materials"].id)
    assert data["materialsManuallyModified"] is False
    metadata = data["materialsImportMetadata"]
    assert metadata["elementCount"] == 1
    assert metadata["materialCount"] == 1
    assert metadata["materialsVersion"] == 1


@pytest.mark.asyncio
async def test_import_preserves_unit_prices(
    client, auth_headers, tasks, save_materials, approve_all, element_payload, material_payload
):
    await save_materials(
        tasks["materials"], [element_payload("signage", "Entrance", materials=[material_payload("Banner", 2)])]
    )
    await approve_all(tasks["materials"])

    budget = (await client.get(_budget_url(tasks), headers=auth_headers)).json()
    saved = await client.post(_budget_url(tasks), headers=auth_headers, json=_set_unit_price(budget, "Banner", 500))
    assert saved.status_code == 200
    assert saved.json()["materials"][0]["materials"][0]["totalPrice"] == 1000
    assert saved.json()["materialsManuallyModified"] is True

    await save_materials(
        tasks["materials"], [element_payload("signage", "Entrance", materials=[material_payload("Banner", 5)])]
    )
    await approve_all(tasks["materials"])

    response = await client.post(_budget_url(tasks, "/import-materials"), headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    line = data["materials"][0]["materials"][0]
    assert line["quantity"] == 5
    assert line["unitPrice"] == 500
    assert line["totalPrice"] == 2500
    assert line["quantityChanged"] is True
    assert line["oldQuantity"] == 2
    assert data["budgetSummary"]["materialsTotal"] == 2500
    assert data["materialsImportMetadata"]["preservedPrices"] == 1
    assert data["materialsManuallyModified"] is False


@pytest.mark.asyncio
async def test_check_materials_update(
    client, auth_headers, tasks, save_materials, approve_all, element_payload, material_payload
):
    url = _budget_url(tasks, "/check-materials-update")

    response = await client.get(url, headers=auth_headers)
    assert response.json()["hasUpdate"] is False
    assert response.json()["message"] == "No materials data found"

    await save_materials(tasks["materials"], [element_payload(materials=[material_payload()])])
    response = await client.get(url, headers=auth_headers)
    assert response.json()["hasUpdate"] is True
    assert response.json()["materialsFullyApproved"] is False

    await approve_all(tasks["materials"])
    response = await client.get(url, headers=auth_headers)
    assert response.json()["hasUpdate"] is False
    assert response.json()["materialsFullyApproved"] is True

    await save_materials(tasks["materials"], [element_payload(materials=[material_payload(quantity=12)])])
    response = await client.get(url, headers=auth_headers)
    assert response.json()["hasUpdate"] is True


@pytest.mark.asyncio
async def test_submit_budget(client, auth_headers, tasks):
    response = await client.post(_budget_url(tasks, "/submit"), headers=auth_headers)
    assert response.status_code == 404

    await client.post(_budget_url(tasks), headers=auth_headers, json={})
    response = await client.post(_budget_url(tasks, "/submit"), headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "pending_approval"

    response = await client.post(_budget_url(tasks), headers=auth_headers, json={"status": "approved"})
    assert response.status_code == 200
    assert response.json()["status"] == "approved"

    response = await client.post(_budget_url(tasks, "/submit"), headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_completed_budget_routes_new_materials_to_additions(
    client, db_session, auth_headers, tasks, save_materials, approve_all, element_payload, material_payload
):
    await save_materials(tasks["materials"], [element_payload(materials=[material_payload()])])
    await approve_all(tasks["materials"])
    tasks["budget"].status = TaskStatus.COMPLETED.value
    await db_session.flush()

    await save_materials(
        tasks["materials"],
        [element_payload(materials=[material_payload(), material_payload("Carpet", 20)])],
    )
    await approve_all(tasks["materials"])

    budget = (await client.get(_budget_url(tasks), headers=auth_headers)).json()
    assert [m["description"] for m in budget["materials"][0]["materials"]] == ["Plywood"]

    additions = (
        await client.get(f"/api/v1/tasks/{tasks['budget'].id}/budget-additions", headers=auth_headers)
    ).json()
    assert additions["total"] == 1
    addition = additions["additions"][0]
    assert addition["title"] == "Post-Budget Addition: Carpet"
    assert addition["status"] == "pending_approval"
    assert addition["is_virtual"] is False


@pytest.mark.asyncio
async def test_removed_material_keeps_priced_line_as_obsolete(
    client, auth_headers, tasks, save_materials, approve_all, element_payload, material_payload
):
    await save_materials(
        tasks["materials"],
        [element_payload(materials=[material_payload("Plywood", 10), material_payload("Paint", 3)])],
    )
    await approve_all(tasks["materials"])

    budget = (await client.get(_budget_url(tasks), headers=auth_headers)).json()
    _set_unit_price(budget, "Plywood", 100)
    _set_unit_price(budget, "Paint", 100)
    saved = (await client.post(_budget_url(tasks), headers=auth_headers, json=budget)).json()
    assert saved["budgetSummary"]["materialsTotal"] == 1300

    await save_materials(tasks["materials"], [element_payload(materials=[material_payload("Plywood", 10)])])
    await approve_all(tasks["materials"])

    data = (await client.get(_budget_url(tasks), headers=auth_headers)).json()
    lines = {m["description"]: m for m in data["materials"][0]["materials"]}
    assert lines["Plywood"]["isObsolete"] is False
    assert lines["Paint"]["isObsolete"] is True
    assert lines["Paint"]["unitPrice"] == 100
    assert data["budgetSummary"]["materialsTotal"] == 1000
    assert data["materialsImportMetadata"]["obsoleteCount"] == 1

    quote = (
        await client.post(f"/api/v1/tasks/{tasks['quote'].id}/quote/import-budget", headers=auth_headers)
    ).json()
    assert [m["description"] for m in quote["materials"][0]["materials"]] == ["Plywood"]
    assert quote["totals"]["materialsBase"] == 1000


@pytest.mark.asyncio
async def test_repeated_import_is_idempotent(
    client, auth_headers, tasks, save_materials, approve_all, element_payload, material_payload
):
    await save_materials(
        tasks["materials"],
        [
            element_payload(materials=[material_payload("Plywood", 10)]),
            element_payload(materials=[material_payload("Plywood", 4)]),
        ],
    )
    await approve_all(tasks["materials"])
    budget = (await client.get(_budget_url(tasks), headers=auth_headers)).json()
    budget["materials"][0]["materials"][0]["unitPrice"] = 100
    budget["materials"][1]["materials"][0]["unitPrice"] = 250
    await client.post(_budget_url(tasks), headers=auth_headers, json=budget)

    first = (await client.post(_budget_url(tasks, "/import-materials"), headers=auth_headers)).json()
    second = (await client.post(_budget_url(tasks, "/import-materials"), headers=auth_headers)).json()

    assert second["materials"] == first["materials"]
    assert second["budgetSummary"] == first["budgetSummary"]
    assert [e["materials"][0]["totalPrice"] for e in second["materials"]] == [1000, 1000]


@pytest.mark.asyncio
async def test_restore_legacy_budget_snapshot(client, db_session, auth_headers, tasks):
    from expoflow.db.models.versions import BudgetVersion

    budget = (await client.post(_budget_url(tasks), headers=auth_headers, json={})).json()
    db_session.add(
        BudgetVersion(
            budget_id=uuid.UUID(budget["id"]),
            version_number=1,
            label="Imported from the old system",
            data={
                "project_info": {"enquiryTitle": "Legacy Expo"},
                "labour_data": [{"id": "lab_1", "type": "Rigger", "quantity": 2, "unitRate": 300}],
                "expenses_data": [{"id": "exp_1", "description": "Permits", "amount": 150}],
            },
        )
    )
    await db_session.flush()

    version = (await client.get(_budget_url(tasks, "/versions/1"), headers=auth_headers)).json()
    assert version["data"]["schemaVersion"] == 2
    assert version["data"]["labour"][0]["type"] == "Rigger"
    assert "labour_data" not in version["data"]

    response = await client.post(_budget_url(tasks, "/versions/1/restore"), headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["projectInfo"]["enquiryTitle"] == "Legacy Expo"
    assert data["labour"][0]["amount"] == 600
    assert data["budgetSummary"]["grandTotal"] == 750
