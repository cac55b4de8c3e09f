from school_api.core.security import create_access_token
from school_api.models import User


async def test_school_admin_lists_only_own_students(client, world, headers):
    response = await client.get("/api/v1/students", headers=headers(world.admin_a))

    assert response.status_code == 200
    ids = {student["id"] for student in response.json()["students"]}
    assert ids == {world.student_a1.id, world.student_a2.id}


async def test_school_id_parameter_does_not_widen_scope(client, world, headers):
    response = await client.get(
        "/api/v1/students", params={"school_id": world.school_b.id}, headers=headers(world.admin_a)
    )

    assert world.student_b1.id not in {student["id"] for student in response.json()["students"]}


async def test_super_admin_narrows_with_school_id(client, world, headers):
    response = await client.get(
        "/api/v1/students", params={"school_id": world.school_b.id}, headers=headers(world.super_admin)
    )

    assert [student["id"] for student in response.json()["students"]] == [world.student_b1.id]


async def test_foreign_student_is_not_found(client, world, headers):
    response = await client.get(f"/api/v1/students/{world.student_b1.id}", headers=headers(world.admin_a))

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"


async def test_teacher_sees_only_students_of_own_classes(client, world, headers):
    response = await client.get("/api/v1/students", headers=headers(world.teacher_a))

    assert [student["id"] for student in response.json()["students"]] == [world.student_a1.id]
    other = await client.get(f"/api/v1/students/{world.student_a2.id}", headers=headers(world.teacher_a))
    assert other.status_code == 404


async def test_teacher_without_classes_sees_no_students(client, world, headers):
    response = await client.get("/api/v1/students", headers=headers(world.idle_teacher))

    assert response.json()["students"] == []
    assert response.json()["pagination"]["total"] == 0


async def test_parent_sees_only_own_children(client, world, headers):
    response = await client.get("/api/v1/students", headers=headers(world.parent_a))

    assert [student["id"] for student in response.json()["students"]] == [world.student_a1.id]


async def test_parent_cannot_create_students(client, world, headers):
    response = await client.post(
        "/api/v1/students",
        json={"registration_number": "X1", "name": "X", "surname": "Y", "sex": "MALE", "birthday": "2013-01-01"},
        headers=headers(world.parent_a)
    )

    assert response.status_code == 403
    assert response.json()["error_code"] == "PERMISSION_DENIED"


async def test_unknown_role_is_denied_before_any_lookup(client, world, session):
    stranger = User(
        email="stranger@schoolmail.com", username="stranger", password_hash="x", name="S", surname="T",
        role="janitor", school_id=world.school_a.id, is_active=True
    )
    session.add(stranger)
    await session.commit()
    token = create_access_token(stranger.id, stranger.role)

    response = await client.get("/api/v1/students", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403


async def test_admin_writes_land_in_own_school(client, world, headers):
    response = await client.post(
        "/api/v1/students",
        json={
            "registration_number": "NEW-1", "name": "Zuri", "surname": "Otieno", "sex": "FEMALE",
            "birthday": "2013-02-02", "school_id": world.school_b.id
        },
        headers=headers(world.admin_a)
    )

    assert response.status_code == 201
    assert response.json()["student"]["school_id"] == world.school_a.id


async def test_cross_school_reference_is_rejected(client, world, headers):
    response = await client.post(
        "/api/v1/students",
        json={
            "registration_number": "NEW-2", "name": "Juma", "surname": "Ali", "sex": "MALE",
            "birthday": "2013-02-02", "class_id": world.class_a1.id
        },
        headers=headers(world.admin_b)
    )

    assert response.status_code == 404


async def test_pagination_meta(client, world, headers):
    response = await client.get("/api/v1/students", params={"page": "2", "limit": "1"}, headers=headers(world.admin_a))

    body = response.json()
    assert len(body["students"]) == 1
    assert body["pagination"] == {"page": 2, "limit": 1, "total": 2, "pages": 2}


async def test_page_past_the_end_is_empty(client, world, headers):
    response = await client.get("/api/v1/students", params={"page": "5", "limit": "1"}, headers=headers(world.admin_a))

    assert response.status_code == 200
    body = response.json()
    assert body["students"] == []
    assert body["pagination"] == {"page": 5, "limit": 1, "total": 2, "pages": 2}


async def test_non_numeric_pagination_falls_back(client, world, headers):
    response = await client.get("/api/v1/students", params={"page": "x", "limit": "y"}, headers=headers(world.admin_a))

    assert response.status_code == 200
    assert response.json()["pagination"]["page"] == 1
    assert response.json()["pagination"]["limit"] == 10
