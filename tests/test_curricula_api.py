import pytest


@pytest.fixture
async def curriculum(client, world, headers):
    """A curriculum with Mathematics for grade 1 and one learning objective"""
    admin = headers(world.admin_a)
    created = await client.post("/api/v1/curricula", json={"name": "National Primary"}, headers=admin)
    assert created.status_code == 201
    curriculum = created.json()["curriculum"]

    item = await client.post(
        "/api/v1/curricula/subjects",
        json={"curriculum_id": curriculum["id"], "subject_id": world.subject_a.id, "grade_id": world.grade_a.id,
              "hours_per_week": 5},
        headers=admin
    )
    assert item.status_code == 201

    objective = await client.post(
        "/api/v1/curricula/objectives",
        json={
            "curriculum_subject_id": item.json()["curriculum_subject"]["id"],
            "title": "Count to one hundred",
            "description": "Counts forwards and backwards within 100",
            "objective_type": "SKILL",
            "blooms_level": "APPLY",
        },
        headers=admin
    )
    assert objective.status_code == 201
    return {
        "curriculum": curriculum,
        "curriculum_subject": item.json()["curriculum_subject"],
        "objective": objective.json()["learning_objective"],
    }


async def _record(client, headers, user, student_id, objective_id, **overrides):
    payload = {
        "student_id": student_id,
        "learning_objective_id": objective_id,
        "status": "IN_PROGRESS",
        "mastery_level": "DEVELOPING",
        **overrides,
    }
    return await client.put("/api/v1/curricula/progress", json=payload, headers=headers(user))


async def test_duplicate_name_and_version_conflicts(client, world, headers, curriculum):
    response = await client.post(
        "/api/v1/curricula", json={"name": "National Primary", "version": "1.0"}, headers=headers(world.admin_a)
    )
    assert response.status_code == 409

    newer = await client.post(
        "/api/v1/curricula", json={"name": "National Primary", "version": "2.0"}, headers=headers(world.admin_a)
    )
    assert newer.status_code == 201


async def test_details_nest_subjects_and_objectives(client, world, headers, curriculum):
    response = await client.get(f"/api/v1/curricula/{curriculum['curriculum']['id']}", headers=headers(world.teacher_a))

    assert response.status_code == 200
    subjects = response.json()["curriculum"]["subjects"]
    assert [s["subject"]["code"] for s in subjects] == ["MATH"]
    assert subjects[0]["hours_per_week"] == 5
    assert subjects[0]["learning_objectives"][0]["title"] == "Count to one hundred"
    assert subjects[0]["learning_objectives"][0]["progress_count"] == 0


async def test_list_reports_subject_counts(client, world, headers, curriculum):
    response = await client.get("/api/v1/curricula", headers=headers(world.admin_a))

    assert response.json()["curricula"][0]["subject_count"] == 1
    foreign = await client.get("/api/v1/curricula", headers=headers(world.admin_b))
    assert foreign.json()["curricula"] == []


async def test_subject_cannot_be_its_own_prerequisite(client, world, headers, curriculum):
    response = await client.post(
        "/api/v1/curricula/subjects",
        json={"curriculum_id": curriculum["curriculum"]["id"], "subject_id": world.subject_a.id,
              "grade_id": world.grade_a.id, "prerequisite_ids": [world.subject_a.id]},
        headers=headers(world.admin_a)
    )

    assert response.status_code == 400


async def test_subject_added_twice_for_same_grade_conflicts(client, world, headers, curriculum):
    response = await client.post(
        "/api/v1/curricula/subjects",
        json={"curriculum_id": curriculum["curriculum"]["id"], "subject_id": world.subject_a.id,
              "grade_id": world.grade_a.id},
        headers=headers(world.admin_a)
    )

    assert response.status_code == 409


async def test_delete_blocked_while_subjects_remain(client, world, headers, curriculum):
    curriculum_id = curriculum["curriculum"]["id"]

    response = await client.delete(f"/api/v1/curricula/{curriculum_id}", headers=headers(world.admin_a))

    assert response.status_code == 400
    assert response.json()["error_code"] == "HAS_DEPENDENTS"
    assert response.json()["dependencies"] == {"subjects": 1}


async def test_progress_is_upserted_per_objective(client, world, headers, curriculum):
    objective_id = curriculum["objective"]["id"]

    first = await _record(client, headers, world.teacher_a, world.student_a1.id, objective_id)
    assert first.status_code == 200
    assert first.json()["progress"]["completed_at"] is None

    second = await _record(
        client, headers, world.teacher_a, world.student_a1.id, objective_id,
        status="MASTERED", mastery_level="ADVANCED", assessment_score=92
    )
    assert second.json()["progress"]["id"] == first.json()["progress"]["id"]
    assert second.json()["progress"]["completed_at"] is not None
    assert second.json()["progress"]["assessment_date"] is not None

    reopened = await _record(client, headers, world.teacher_a, world.student_a1.id, objective_id)
    assert reopened.json()["progress"]["completed_at"] is None


async def test_teacher_cannot_record_progress_for_untaught_student(client, world, headers, curriculum):
    response = await _record(client, headers, world.teacher_a, world.student_a2.id, curriculum["objective"]["id"])

    assert response.status_code == 404


async def test_score_outside_range_is_invalid(client, world, headers, curriculum):
    response = await _record(
        client, headers, world.admin_a, world.student_a1.id, curriculum["objective"]["id"], assessment_score=120
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


async def test_parent_reads_child_progress_with_statistics(client, world, headers, curriculum):
    objective_id = curriculum["objective"]["id"]
    await _record(
        client, headers, world.admin_a, world.student_a1.id, objective_id,
        status="COMPLETED", mastery_level="PROFICIENT", assessment_score=80
    )

    response = await client.get(
        f"/api/v1/curricula/progress/students/{world.student_a1.id}", headers=headers(world.parent_a)
    )

    assert response.status_code == 200
    body = response.json()
    assert body["progress"][0]["objective"]["title"] == "Count to one hundred"
    assert body["progress"][0]["subject"]["code"] == "MATH"
    assert body["statistics"] == {
        "total": 1, "not_started": 0, "in_progress": 0, "completed": 1, "mastered": 0, "average_score": 80.0
    }

    other = await client.get(
        f"/api/v1/curricula/progress/students/{world.student_a2.id}", headers=headers(world.parent_a)
    )
    assert other.status_code == 404


async def test_curriculum_progress_groups_by_student(client, world, headers, curriculum):
    objective_id = curriculum["objective"]["id"]
    await _record(client, headers, world.admin_a, world.student_a1.id, objective_id, assessment_score=60)
    await _record(client, headers, world.admin_a, world.student_a2.id, objective_id, status="NOT_STARTED")

    admin_view = await client.get(
        f"/api/v1/curricula/{curriculum['curriculum']['id']}/progress", headers=headers(world.admin_a)
    )
    rows = admin_view.json()["student_progress"]
    assert len(rows) == 2
    assert {row["statistics"]["total"] for row in rows} == {1}

    teacher_view = await client.get(
        f"/api/v1/curricula/{curriculum['curriculum']['id']}/progress", headers=headers(world.teacher_a)
    )
    assert [row["student"]["id"] for row in teacher_view.json()["student_progress"]] == [world.student_a1.id]


async def test_teachers_cannot_create_curricula(client, world, headers):
    response = await client.post("/api/v1/curricula", json={"name": "Shadow"}, headers=headers(world.teacher_a))

    assert response.status_code == 403
