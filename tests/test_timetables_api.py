import pytest


@pytest.fixture
async def timetable(client, world, headers):
    admin = headers(world.admin_a)
    year = (await client.post(
        "/api/v1/academic-calendar/years",
        json={"name": "2024/2025", "start_date": "2024-09-01", "end_date": "2025-07-31"},
        headers=admin
    )).json()["academic_year"]
    response = await client.post(
        "/api/v1/timetables",
        json={
            "name": "Main timetable",
            "academic_year_id": year["id"],
            "effective_from": "2024-09-01",
            "effective_to": "2025-07-31",
        },
        headers=admin
    )
    assert response.status_code == 201
    return response.json()["timetable"]


def _slot(world, start, end, **extra):
    return {"day": "MONDAY", "start_time": start, "end_time": end, "class_id": world.class_a1.id, **extra}


async def test_second_active_timetable_conflicts(client, world, headers, timetable):
    response = await client.post(
        "/api/v1/timetables",
        json={
            "name": "Spring timetable",
            "academic_year_id": timetable["academic_year_id"],
            "effective_from": "2025-01-01",
            "effective_to": "2025-03-31",
        },
        headers=headers(world.admin_a)
    )

    assert response.status_code == 409


async def test_adjacent_slots_do_not_clash(client, world, headers, timetable):
    url = f"/api/v1/timetables/{timetable['id']}/slots"
    admin = headers(world.admin_a)

    assert (await client.post(url, json=_slot(world, "09:00", "10:00"), headers=admin)).status_code == 201
    assert (await client.post(url, json=_slot(world, "10:00", "11:00"), headers=admin)).status_code == 201

    overlapping = await client.post(url, json=_slot(world, "10:30", "11:30"), headers=admin)
    assert overlapping.status_code == 409


async def test_teacher_cannot_be_in_two_places(client, world, headers, timetable):
    url = f"/api/v1/timetables/{timetable['id']}/slots"
    admin = headers(world.admin_a)

    first = _slot(world, "09:00", "10:00", teacher_id=world.teacher_a.id)
    assert (await client.post(url, json=first, headers=admin)).status_code == 201

    second = {**first, "class_id": world.class_a2.id, "start_time": "09:30", "end_time": "10:30"}
    response = await client.post(url, json=second, headers=admin)
    assert response.status_code == 409
    assert "Teacher" in response.json()["message"]


async def test_slot_times_are_validated(client, world, headers, timetable):
    url = f"/api/v1/timetables/{timetable['id']}/slots"

    assert (await client.post(url, json=_slot(world, "11:00", "10:00"), headers=headers(world.admin_a))).status_code == 400
    assert (await client.post(url, json=_slot(world, "25:00", "26:00"), headers=headers(world.admin_a))).status_code == 400


async def test_timetable_with_slots_cannot_be_deleted(client, world, headers, timetable):
    admin = headers(world.admin_a)
    await client.post(f"/api/v1/timetables/{timetable['id']}/slots", json=_slot(world, "09:00", "10:00"), headers=admin)

    response = await client.delete(f"/api/v1/timetables/{timetable['id']}", headers=admin)
    assert response.status_code == 400
    assert response.json()["dependencies"] == {"slots": 1}
