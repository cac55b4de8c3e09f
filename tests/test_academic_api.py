async def _academic_year(client, admin_headers, **overrides):
    payload = {"name": "2024/2025", "start_date": "2024-09-01", "end_date": "2025-07-31", **overrides}
    response = await client.post("/api/v1/academic-calendar/years", json=payload, headers=admin_headers)
    assert response.status_code == 201
    return response.json()["academic_year"]


async def test_term_creation_and_overlap_conflict(client, world, headers):
    admin = headers(world.admin_a)
    year = await _academic_year(client, admin)

    first = await client.post(
        "/api/v1/academic-calendar/terms",
        json={"name": "Term 1", "academic_year_id": year["id"], "start_date": "2024-09-01", "end_date": "2024-12-15"},
        headers=admin
    )
    assert first.status_code == 201
    assert first.json()["term"]["school_id"] == world.school_a.id

    overlapping = await client.post(
        "/api/v1/academic-calendar/terms",
        json={"name": "Term 2", "academic_year_id": year["id"], "start_date": "2024-12-15", "end_date": "2025-03-31"},
        headers=admin
    )
    assert overlapping.status_code == 409
    assert overlapping.json()["error_code"] == "CONFLICT"


async def test_term_outside_year_is_rejected(client, world, headers):
    admin = headers(world.admin_a)
    year = await _academic_year(client, admin)

    response = await client.post(
        "/api/v1/academic-calendar/terms",
        json={"name": "Late", "academic_year_id": year["id"], "start_date": "2025-07-01", "end_date": "2025-08-31"},
        headers=admin
    )
    assert response.status_code == 400


async def test_term_with_reversed_dates_is_invalid(client, world, headers):
    admin = headers(world.admin_a)
    year = await _academic_year(client, admin)

    response = await client.post(
        "/api/v1/academic-calendar/terms",
        json={"name": "Bad", "academic_year_id": year["id"], "start_date": "2024-12-01", "end_date": "2024-11-01"},
        headers=admin
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


async def test_overlapping_academic_years_conflict(client, world, headers):
    admin = headers(world.admin_a)
    await _academic_year(client, admin)

    response = await client.post(
        "/api/v1/academic-calendar/years",
        json={"name": "Overlap", "start_date": "2025-07-31", "end_date": "2026-07-31"},
        headers=admin
    )
    assert response.status_code == 409


async def test_subject_delete_blocked_by_dependents(client, world, headers):
    admin = headers(world.admin_a)
    assigned = await client.post(
        f"/api/v1/subjects/{world.subject_a.id}/teachers", json={"teacher_id": world.teacher_a.id}, headers=admin
    )
    assert assigned.status_code == 200
    lesson = await client.post(
        "/api/v1/lessons",
        json={
            "name": "Maths 1A", "subject_id": world.subject_a.id,
            "class_id": world.class_a1.id, "teacher_id": world.teacher_a.id
        },
        headers=admin
    )
    assert lesson.status_code == 201

    response = await client.delete(f"/api/v1/subjects/{world.subject_a.id}", headers=admin)

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "HAS_DEPENDENTS"
    assert body["dependencies"] == {"lessons": 1, "assignments": 0, "examQuestions": 0}


async def test_subject_delete_reports_linked_assignments(client, world, headers):
    admin = headers(world.admin_a)
    for number in range(3):
        created = await client.post(
            "/api/v1/assignments",
            json={
                "title": f"Homework {number}",
                "start_date": "2024-01-01T08:00:00",
                "due_date": "2030-01-01T08:00:00",
                "max_score": 10,
                "subject_id": world.subject_a.id,
                "class_id": world.class_a1.id,
            },
            headers=admin
        )
        assert created.status_code == 201

    response = await client.delete(f"/api/v1/subjects/{world.subject_a.id}", headers=admin)

    assert response.status_code == 400
    assert response.json()["dependencies"] == {"lessons": 0, "assignments": 3, "examQuestions": 0}
    assert (await client.get(f"/api/v1/subjects/{world.subject_a.id}", headers=admin)).status_code == 200

async def test_subject_without_dependents_is_deleted(client, world, headers):
    admin = headers(world.admin_a)

    response = await client.delete(f"/api/v1/subjects/{world.subject_a.id}", headers=admin)

    assert response.status_code == 200
    assert (await client.get(f"/api/v1/subjects/{world.subject_a.id}", headers=admin)).status_code == 404


async def test_subject_teacher_assignment(client, world, headers):
    admin = headers(world.admin_a)
    url = f"/api/v1/subjects/{world.subject_a.id}/teachers"

    assigned = await client.post(url, json={"teacher_id": world.teacher_a.id}, headers=admin)
    assert assigned.status_code == 200
    assert assigned.json()["subject"]["teacher_ids"] == [world.teacher_a.id]

    duplicate = await client.post(url, json={"teacher_id": world.teacher_a.id}, headers=admin)
    assert duplicate.status_code == 409

    removed = await client.delete(f"{url}/{world.teacher_a.id}", headers=admin)
    assert removed.json()["subject"]["teacher_ids"] == []


async def test_class_details_and_delete_guard(client, world, headers):
    admin = headers(world.admin_a)

    detail = await client.get(f"/api/v1/classes/{world.class_a1.id}", headers=admin)
    assert detail.status_code == 200
    assert detail.json()["student_count"] == 1
    assert detail.json()["available_seats"] == 29

    blocked = await client.delete(f"/api/v1/classes/{world.class_a1.id}", headers=admin)
    assert blocked.status_code == 400
    assert blocked.json()["dependencies"]["students"] == 1


async def test_teacher_sees_only_own_classes(client, world, headers):
    response = await client.get("/api/v1/classes", headers=headers(world.teacher_a))

    assert [item["id"] for item in response.json()["classes"]] == [world.class_a1.id]


async def test_duplicate_class_name_conflicts(client, world, headers):
    response = await client.post(
        "/api/v1/classes", json={"name": "1A", "capacity": 20}, headers=headers(world.admin_a)
    )

    assert response.status_code == 409


async def test_class_supervisor_must_be_teacher_of_same_school(client, world, headers):
    response = await client.post(
        "/api/v1/classes",
        json={"name": "2A", "capacity": 20, "supervisor_id": world.parent_a.id},
        headers=headers(world.admin_a)
    )

    assert response.status_code == 404


async def test_calendar_view_groups_entries(client, world, headers):
    admin = headers(world.admin_a)
    await _academic_year(client, admin)
    holiday = await client.post(
        "/api/v1/academic-calendar/holidays",
        json={"name": "Mid-term break", "start_date": "2024-10-21", "end_date": "2024-10-25"},
        headers=admin
    )
    assert holiday.status_code == 201

    view = await client.get(
        "/api/v1/academic-calendar/view",
        params={"start_date": "2024-10-01", "end_date": "2024-10-31"},
        headers=headers(world.teacher_a)
    )

    body = view.json()
    assert view.status_code == 200
    assert [item["name"] for item in body["holidays"]] == ["Mid-term break"]
    assert len(body["academic_years"]) == 1
