import pytest


@pytest.fixture
async def fee_structure(client, world, headers):
    admin = headers(world.admin_a)
    year = await client.post(
        "/api/v1/academic-calendar/years",
        json={"name": "2024/2025", "start_date": "2024-09-01", "end_date": "2025-07-31", "is_current": True},
        headers=admin
    )
    assert year.status_code == 201

    response = await client.post(
        "/api/v1/fees/structures",
        json={
            "name": "Tuition 2024/2025",
            "academic_year_id": year.json()["academic_year"]["id"],
            "fee_type": "TUITION",
            "due_date": "2024-10-01",
            "items": [
                {"name": "Tuition", "amount": 1200, "frequency": "TERMLY"},
                {"name": "Library", "amount": 150.5, "is_mandatory": False, "frequency": "YEARLY"},
            ],
        },
        headers=admin
    )
    assert response.status_code == 201
    return response.json()


async def test_structure_amount_is_sum_of_items(fee_structure):
    assert fee_structure["fee_structure"]["amount"] == 1350.5
    assert [item["name"] for item in fee_structure["items"]] == ["Tuition", "Library"]


async def test_item_changes_recompute_structure_amount(client, world, headers, fee_structure):
    admin = headers(world.admin_a)
    structure_id = fee_structure["fee_structure"]["id"]
    library_id = fee_structure["items"][1]["id"]

    added = await client.post(
        f"/api/v1/fees/structures/{structure_id}/items", json={"name": "Sports", "amount": 100}, headers=admin
    )
    assert added.status_code == 201

    await client.patch(f"/api/v1/fees/items/{library_id}", json={"amount": 50}, headers=admin)
    after_update = await client.get(f"/api/v1/fees/structures/{structure_id}", headers=admin)
    assert after_update.json()["fee_structure"]["amount"] == 1350.0

    deleted = await client.delete(f"/api/v1/fees/items/{library_id}", headers=admin)
    assert deleted.status_code == 200
    assert deleted.json()["fee_structure"]["amount"] == 1300.0


async def test_parent_breakdown_applies_overrides(client, world, headers, fee_structure):
    admin = headers(world.admin_a)
    tuition_id, library_id = (item["id"] for item in fee_structure["items"])

    discounted = await client.put(
        f"/api/v1/fees/items/{tuition_id}/students/{world.student_a1.id}/override",
        json={"override_amount": 900, "reason": "Sibling discount"},
        headers=admin
    )
    assert discounted.status_code == 200
    exempt = await client.put(
        f"/api/v1/fees/items/{library_id}/students/{world.student_a1.id}/override",
        json={"is_exempt": True, "reason": "Scholarship"},
        headers=admin
    )
    assert exempt.json()["override"]["override_amount"] is None

    response = await client.get(f"/api/v1/fees/students/{world.student_a1.id}/breakdown", headers=headers(world.parent_a))

    assert response.status_code == 200
    body = response.json()
    items = body["fee_structures"][0]["items"]
    assert [(item["base_amount"], item["final_amount"]) for item in items] == [(1200.0, 900.0), (150.5, 0.0)]
    assert items[0]["override_reason"] == "Sibling discount"
    assert items[1]["is_exempt"] is True
    assert body["grand_total"] == 900.0


async def test_breakdown_without_overrides_uses_base_amounts(client, world, headers, fee_structure):
    response = await client.get(f"/api/v1/fees/students/{world.student_a2.id}/breakdown", headers=headers(world.admin_a))

    assert response.json()["fee_structures"][0]["total_amount"] == 1350.5
    assert all(item["has_override"] is False for item in response.json()["fee_structures"][0]["items"])


async def test_parent_cannot_read_other_students_breakdown(client, world, headers, fee_structure):
    response = await client.get(f"/api/v1/fees/students/{world.student_a2.id}/breakdown", headers=headers(world.parent_a))

    assert response.status_code == 404


async def test_breakdown_requires_current_academic_year(client, world, headers):
    response = await client.get(f"/api/v1/fees/students/{world.student_a1.id}/breakdown", headers=headers(world.admin_a))

    assert response.status_code == 404
    assert response.json()["message"] == "No current academic year found"


async def test_override_needs_amount_unless_exempt(client, world, headers, fee_structure):
    item_id = fee_structure["items"][0]["id"]

    response = await client.put(
        f"/api/v1/fees/items/{item_id}/students/{world.student_a1.id}/override",
        json={"reason": "Nothing given"},
        headers=headers(world.admin_a)
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


async def test_override_for_foreign_student_is_not_found(client, world, headers, fee_structure):
    item_id = fee_structure["items"][0]["id"]

    response = await client.put(
        f"/api/v1/fees/items/{item_id}/students/{world.student_b1.id}/override",
        json={"is_exempt": True},
        headers=headers(world.admin_a)
    )

    assert response.status_code == 404


async def test_other_school_cannot_touch_structure(client, world, headers, fee_structure):
    structure_id = fee_structure["fee_structure"]["id"]
    admin_b = headers(world.admin_b)

    assert (await client.get(f"/api/v1/fees/structures/{structure_id}", headers=admin_b)).status_code == 404
    item_id = fee_structure["items"][0]["id"]
    assert (await client.delete(f"/api/v1/fees/items/{item_id}", headers=admin_b)).status_code == 404


async def test_list_filters_by_fee_type(client, world, headers, fee_structure):
    admin = headers(world.admin_a)

    tuition = await client.get("/api/v1/fees/structures", params={"fee_type": "TUITION"}, headers=admin)
    transport = await client.get("/api/v1/fees/structures", params={"fee_type": "TRANSPORT"}, headers=admin)

    assert tuition.json()["pagination"]["total"] == 1
    assert transport.json()["fee_structures"] == []


async def test_teachers_cannot_manage_fees(client, world, headers, fee_structure):
    response = await client.get("/api/v1/fees/structures", headers=headers(world.teacher_a))

    assert response.status_code == 403
