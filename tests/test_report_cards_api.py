import pytest
from sqlalchemy import select

from school_api.models import Notification


@pytest.fixture
async def term(client, world, headers):
    admin = headers(world.admin_a)
    year = (await client.post(
        "/api/v1/academic-calendar/years",
        json={"name": "2024/2025", "start_date": "2024-09-01", "end_date": "2025-07-31"},
        headers=admin
    )).json()["academic_year"]
    response = await client.post(
        "/api/v1/academic-calendar/terms",
        json={"name": "Term 1", "academic_year_id": year["id"], "start_date": "2024-09-01", "end_date": "2024-12-15"},
        headers=admin
    )
    return response.json()["term"]


@pytest.fixture
async def graded_exam(client, world, headers, term):
    admin = headers(world.admin_a)
    exam = (await client.post(
        "/api/v1/exams",
        json={
            "title": "Term 1 Mathematics",
            "start_time": "2024-11-20T09:00:00",
            "end_time": "2024-11-20T11:00:00",
            "total_marks": 80,
            "passing_marks": 40,
            "subject_id": world.subject_a.id,
            "class_id": world.class_a1.id,
            "term_id": term["id"],
        },
        headers=admin
    )).json()["exam"]
    await client.post(
        f"/api/v1/exams/{exam['id']}/results",
        json={"results": [{"student_id": world.student_a1.id, "score": 60}]},
        headers=admin
    )
    return exam


async def test_report_card_workflow(client, world, headers, session, term, graded_exam):
    admin = headers(world.admin_a)
    parent = headers(world.parent_a)

    created = await client.post(
        "/api/v1/report-cards", json={"student_id": world.student_a1.id, "term_id": term["id"]}, headers=admin
    )
    assert created.status_code == 201
    card_id = created.json()["report_card"]["id"]
    assert created.json()["report_card"]["status"] == "DRAFT"

    # Parents only see published cards
    assert (await client.get(f"/api/v1/report-cards/{card_id}", headers=parent)).status_code == 404

    generated = (await client.post(f"/api/v1/report-cards/{card_id}/generate", headers=admin)).json()["report_card"]
    assert generated["status"] == "GENERATED"
    assert generated["overall_percentage"] == 75.0
    assert generated["overall_grade"] == "B+"
    assert generated["gpa"] == 3.0
    assert generated["attendance_rate"] == "0.00"
    assert [subject["subject_id"] for subject in generated["subjects"]] == [world.subject_a.id]

    publish_early = await client.post(f"/api/v1/report-cards/{card_id}/publish", headers=admin)
    assert publish_early.status_code == 400

    approved = await client.post(f"/api/v1/report-cards/{card_id}/approve", headers=admin)
    assert approved.json()["report_card"]["approved_by_id"] == world.admin_a.id

    published = await client.post(f"/api/v1/report-cards/{card_id}/publish", headers=admin)
    assert published.json()["report_card"]["status"] == "PUBLISHED"

    visible = await client.get(f"/api/v1/report-cards/{card_id}", headers=parent)
    assert visible.status_code == 200

    notes = (await session.execute(
        select(Notification).where(Notification.user_id == world.parent_a.id)
    )).scalars().all()
    published_notes = [note for note in notes if note.title == "Report card published"]
    assert len(published_notes) == 1
    assert published_notes[0].type == "RESULT"

    assert (await client.delete(f"/api/v1/report-cards/{card_id}", headers=admin)).status_code == 400
    archived = await client.post(f"/api/v1/report-cards/{card_id}/archive", headers=admin)
    assert archived.json()["report_card"]["status"] == "ARCHIVED"


async def test_duplicate_report_card_conflicts(client, world, headers, term):
    admin = headers(world.admin_a)
    payload = {"student_id": world.student_a1.id, "term_id": term["id"]}

    assert (await client.post("/api/v1/report-cards", json=payload, headers=admin)).status_code == 201
    assert (await client.post("/api/v1/report-cards", json=payload, headers=admin)).status_code == 409


async def test_batch_generation_skips_existing(client, world, headers, term, graded_exam):
    admin = headers(world.admin_a)
    await client.post(
        "/api/v1/report-cards", json={"student_id": world.student_a1.id, "term_id": term["id"]}, headers=admin
    )

    response = await client.post(
        "/api/v1/report-cards/generate",
        json={"student_ids": [world.student_a1.id, world.student_a2.id], "term_id": term["id"]},
        headers=admin
    )

    assert response.status_code == 201
    body = response.json()
    assert body["skipped_student_ids"] == [world.student_a1.id]
    assert [card["student_id"] for card in body["report_cards"]] == [world.student_a2.id]
    assert body["report_cards"][0]["overall_percentage"] == 0.0


async def test_teacher_cannot_approve(client, world, headers, term):
    card = (await client.post(
        "/api/v1/report-cards", json={"student_id": world.student_a1.id, "term_id": term["id"]},
        headers=headers(world.admin_a)
    )).json()["report_card"]

    response = await client.post(f"/api/v1/report-cards/{card['id']}/approve", headers=headers(world.teacher_a))
    assert response.status_code == 403
