import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from school_api.models import ExamResult
from school_api.services.notification_service import NotificationService


@pytest.fixture
async def assignment(client, world, headers):
    response = await client.post(
        "/api/v1/assignments",
        json={
            "title": "Fractions worksheet",
            "start_date": "2024-01-01T08:00:00",
            "due_date": "2030-01-01T08:00:00",
            "max_score": 20,
            "subject_id": world.subject_a.id,
            "class_id": world.class_a1.id,
        },
        headers=headers(world.teacher_a)
    )
    assert response.status_code == 201
    return response.json()["assignment"]


async def test_teacher_owns_created_assignment(world, assignment):
    assert assignment["teacher_id"] == world.teacher_a.id


async def test_teacher_cannot_set_work_for_other_classes(client, world, headers):
    response = await client.post(
        "/api/v1/assignments",
        json={
            "title": "Reading",
            "start_date": "2024-01-01T08:00:00",
            "due_date": "2030-01-01T08:00:00",
            "max_score": 10,
            "subject_id": world.subject_a.id,
            "class_id": world.class_a2.id,
        },
        headers=headers(world.teacher_a)
    )

    assert response.status_code == 404


async def test_parent_is_told_about_new_work(client, world, headers, assignment):
    listing = await client.get("/api/v1/notifications", params={"type": "ASSIGNMENT"}, headers=headers(world.parent_a))

    assert listing.json()["pagination"]["total"] == 1


async def test_grading_records_a_result(client, world, headers, session, assignment):
    submitted = await client.post(
        f"/api/v1/assignments/{assignment['id']}/submissions",
        json={"student_id": world.student_a1.id, "content": "1/2 + 1/4 = 3/4"},
        headers=headers(world.parent_a)
    )
    assert submitted.status_code == 201
    submission = submitted.json()["submission"]

    graded = await client.post(
        f"/api/v1/assignments/{assignment['id']}/submissions/{submission['id']}/grade",
        json={"score": 17, "feedback": "Good work"},
        headers=headers(world.teacher_a)
    )
    assert graded.status_code == 200
    assert graded.json()["submission"]["score"] == 17

    result = (await session.execute(
        select(ExamResult).where(ExamResult.assignment_id == assignment["id"])
    )).scalar_one()
    assert result.percentage == 85.0
    assert result.grade == "A"

    resubmit = await client.post(
        f"/api/v1/assignments/{assignment['id']}/submissions",
        json={"student_id": world.student_a1.id, "content": "again"},
        headers=headers(world.parent_a)
    )
    assert resubmit.status_code == 400


async def test_score_cannot_exceed_max(client, world, headers, assignment):
    submission = (await client.post(
        f"/api/v1/assignments/{assignment['id']}/submissions",
        json={"student_id": world.student_a1.id},
        headers=headers(world.parent_a)
    )).json()["submission"]

    response = await client.post(
        f"/api/v1/assignments/{assignment['id']}/submissions/{submission['id']}/grade",
        json={"score": 21},
        headers=headers(world.teacher_a)
    )
    assert response.status_code == 400


async def test_parent_cannot_submit_for_other_children(client, world, headers, assignment):
    response = await client.post(
        f"/api/v1/assignments/{assignment['id']}/submissions",
        json={"student_id": world.student_a2.id},
        headers=headers(world.parent_a)
    )

    assert response.status_code == 404


async def test_status_filter(client, world, headers, assignment):
    parent = headers(world.parent_a)

    active = await client.get("/api/v1/assignments", params={"status": "active"}, headers=parent)
    assert [item["id"] for item in active.json()["assignments"]] == [assignment["id"]]

    overdue = await client.get("/api/v1/assignments", params={"status": "overdue"}, headers=parent)
    assert overdue.json()["assignments"] == []


async def test_failed_notification_batch_keeps_the_assignment(client, world, headers, monkeypatch):
    def broken_batch(self, *args, **kwargs):
        raise SQLAlchemyError("notification insert failed")

    monkeypatch.setattr(NotificationService, "_build", broken_batch)

    response = await client.post(
        "/api/v1/assignments",
        json={
            "title": "Spelling list",
            "start_date": "2024-01-01T08:00:00",
            "due_date": "2030-01-01T08:00:00",
            "max_score": 10,
            "subject_id": world.subject_a.id,
            "class_id": world.class_a1.id,
        },
        headers=headers(world.teacher_a)
    )

    assert response.status_code == 201
    created = response.json()["assignment"]
    fetched = await client.get(f"/api/v1/assignments/{created['id']}", headers=headers(world.teacher_a))
    assert fetched.status_code == 200
    listing = await client.get("/api/v1/notifications", headers=headers(world.parent_a))
    assert listing.json()["pagination"]["total"] == 0
