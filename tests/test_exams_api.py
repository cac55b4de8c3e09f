import pytest


@pytest.fixture
def exam_payload(world):
    return {
        "title": "Mid-term Mathematics",
        "start_time": "2024-10-10T09:00:00",
        "end_time": "2024-10-10T11:00:00",
        "total_marks": 100,
        "passing_marks": 50,
        "subject_id": world.subject_a.id,
        "class_id": world.class_a1.id,
    }


async def _exam(client, world, headers, payload):
    response = await client.post("/api/v1/exams", json=payload, headers=headers(world.admin_a))
    assert response.status_code == 201
    return response.json()["exam"]


async def test_passing_marks_cannot_exceed_total(client, world, headers, exam_payload):
    response = await client.post(
        "/api/v1/exams", json={**exam_payload, "passing_marks": 120}, headers=headers(world.admin_a)
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


async def test_exam_end_must_follow_start(client, world, headers, exam_payload):
    response = await client.post(
        "/api/v1/exams", json={**exam_payload, "end_time": "2024-10-10T08:00:00"}, headers=headers(world.admin_a)
    )

    assert response.status_code == 400


async def test_exam_link_to_foreign_class_is_rejected(client, world, headers, exam_payload):
    response = await client.post("/api/v1/exams", json=exam_payload, headers=headers(world.admin_b))

    assert response.status_code == 404


async def test_results_derive_grade_and_summary(client, world, headers, exam_payload):
    exam = await _exam(client, world, headers, exam_payload)

    uploaded = await client.post(
        f"/api/v1/exams/{exam['id']}/results",
        json={"results": [{"student_id": world.student_a1.id, "score": 72}]},
        headers=headers(world.teacher_a)
    )
    assert uploaded.status_code == 201
    result = uploaded.json()["results"][0]
    assert result["percentage"] == 72.0
    assert result["grade"] == "B+"

    summary = (await client.get(f"/api/v1/exams/{exam['id']}/summary", headers=headers(world.admin_a))).json()
    assert summary["summary"]["candidates"] == 1
    assert summary["summary"]["passed"] == 1
    assert summary["summary"]["grade_distribution"] == {"B+": 1}


async def test_result_above_total_is_rejected(client, world, headers, exam_payload):
    exam = await _exam(client, world, headers, exam_payload)

    response = await client.post(
        f"/api/v1/exams/{exam['id']}/results",
        json={"results": [{"student_id": world.student_a1.id, "score": 101}]},
        headers=headers(world.admin_a)
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "results.0.score"


async def test_result_for_student_outside_exam_class(client, world, headers, exam_payload):
    exam = await _exam(client, world, headers, exam_payload)

    response = await client.post(
        f"/api/v1/exams/{exam['id']}/results",
        json={"results": [{"student_id": world.student_a2.id, "score": 50}]},
        headers=headers(world.admin_a)
    )

    assert response.status_code == 400


async def test_question_marks_are_capped_by_total(client, world, headers, exam_payload):
    exam = await _exam(client, world, headers, {**exam_payload, "total_marks": 10, "passing_marks": 5})
    url = f"/api/v1/exams/{exam['id']}/questions"

    assert (await client.post(url, json={"question": "2 + 2?", "marks": 6}, headers=headers(world.admin_a))).status_code == 201
    too_many = await client.post(url, json={"question": "3 + 3?", "marks": 5}, headers=headers(world.admin_a))
    assert too_many.status_code == 400
    assert too_many.json()["error_code"] == "BUSINESS_RULE"


async def test_room_cannot_be_double_booked(client, world, headers, exam_payload):
    admin = headers(world.admin_a)
    exam = await _exam(client, world, headers, exam_payload)
    room = (await client.post(
        "/api/v1/rooms", json={"name": "Hall", "code": "H1", "capacity": 40}, headers=admin
    )).json()["room"]
    url = f"/api/v1/exams/{exam['id']}/sessions"
    session = {
        "room_id": room["id"],
        "start_time": "2024-10-10T09:00:00",
        "end_time": "2024-10-10T11:00:00",
        "expected_candidates": 20,
    }

    assert (await client.post(url, json=session, headers=admin)).status_code == 201
    clash = await client.post(
        url, json={**session, "start_time": "2024-10-10T10:30:00", "end_time": "2024-10-10T12:00:00"}, headers=admin
    )
    assert clash.status_code == 409


async def test_room_capacity_limits_candidates(client, world, headers, exam_payload):
    admin = headers(world.admin_a)
    exam = await _exam(client, world, headers, exam_payload)
    room = (await client.post(
        "/api/v1/rooms", json={"name": "Lab", "code": "L1", "capacity": 10}, headers=admin
    )).json()["room"]

    response = await client.post(
        f"/api/v1/exams/{exam['id']}/sessions",
        json={
            "room_id": room["id"],
            "start_time": "2024-10-10T09:00:00",
            "end_time": "2024-10-10T11:00:00",
            "expected_candidates": 25,
        },
        headers=admin
    )
    assert response.status_code == 400
