from datetime import date, timedelta

from sqlalchemy import select

from school_api.models import Notification

TODAY = date.today()


async def test_summary_without_records_is_zero(client, world, headers):
    response = await client.get(
        f"/api/v1/attendance/students/{world.student_a1.id}/summary", headers=headers(world.admin_a)
    )

    assert response.status_code == 200
    summary = response.json()["summary"]
    assert summary["total_records"] == 0
    assert summary["attendance_rate"] == "0.00"


async def test_teacher_records_register_and_summary_rate(client, world, headers):
    teacher = headers(world.teacher_a)
    for offset, present in [(1, True), (2, True), (3, False)]:
        response = await client.post(
            "/api/v1/attendance",
            json={
                "student_id": world.student_a1.id,
                "date": (TODAY - timedelta(days=offset)).isoformat(),
                "present": present
            },
            headers=teacher
        )
        assert response.status_code == 201

    summary = (await client.get(
        f"/api/v1/attendance/students/{world.student_a1.id}/summary", headers=teacher
    )).json()["summary"]
    assert summary["present"] == 2
    assert summary["absent"] == 1
    assert summary["attendance_rate"] == "66.67"


async def test_recording_same_day_overwrites(client, world, headers):
    teacher = headers(world.teacher_a)
    payload = {"student_id": world.student_a1.id, "date": TODAY.isoformat(), "present": True}

    first = await client.post("/api/v1/attendance", json=payload, headers=teacher)
    second = await client.post("/api/v1/attendance", json={**payload, "present": False}, headers=teacher)

    assert first.json()["attendance"]["id"] == second.json()["attendance"]["id"]
    listing = await client.get(
        "/api/v1/attendance", params={"student_id": world.student_a1.id}, headers=teacher
    )
    assert listing.json()["pagination"]["total"] == 1
    assert listing.json()["attendance"][0]["present"] is False


async def test_absence_notifies_guardians(client, world, headers, session):
    response = await client.post(
        "/api/v1/attendance",
        json={"student_id": world.student_a1.id, "date": TODAY.isoformat(), "present": False},
        headers=headers(world.teacher_a)
    )
    assert response.status_code == 201

    notes = (await session.execute(
        select(Notification).where(Notification.user_id == world.parent_a.id)
    )).scalars().all()
    assert len(notes) == 1
    assert notes[0].type == "ATTENDANCE"


async def test_teacher_cannot_mark_students_outside_own_classes(client, world, headers):
    response = await client.post(
        "/api/v1/attendance",
        json={"student_id": world.student_a2.id, "date": TODAY.isoformat(), "present": True},
        headers=headers(world.teacher_a)
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


async def test_future_date_is_rejected(client, world, headers):
    response = await client.post(
        "/api/v1/attendance",
        json={"student_id": world.student_a1.id, "date": (TODAY + timedelta(days=2)).isoformat(), "present": True},
        headers=headers(world.admin_a)
    )

    assert response.status_code == 400


async def test_bulk_register(client, world, headers):
    response = await client.post(
        "/api/v1/attendance/bulk",
        json={
            "date": TODAY.isoformat(),
            "records": [
                {"student_id": world.student_a1.id, "present": True},
                {"student_id": world.student_a2.id, "present": False},
            ]
        },
        headers=headers(world.principal_a)
    )

    assert response.status_code == 201
    assert len(response.json()["attendance"]) == 2


async def test_bulk_register_rejects_duplicate_students(client, world, headers):
    response = await client.post(
        "/api/v1/attendance/bulk",
        json={
            "date": TODAY.isoformat(),
            "records": [
                {"student_id": world.student_a1.id, "present": True},
                {"student_id": world.student_a1.id, "present": False},
            ]
        },
        headers=headers(world.admin_a)
    )

    assert response.status_code == 400


async def test_parent_cannot_record_attendance(client, world, headers):
    response = await client.post(
        "/api/v1/attendance",
        json={"student_id": world.student_a1.id, "date": TODAY.isoformat(), "present": True},
        headers=headers(world.parent_a)
    )

    assert response.status_code == 403
