from datetime import date, timedelta

import pytest

from school_api.services.analytics_service import compose


@pytest.fixture
async def attendance(client, world, headers):
    today = date.today()
    for offset, present in ((1, True), (2, True), (3, False)):
        await client.post(
            "/api/v1/attendance",
            json={"student_id": world.student_a1.id, "date": str(today - timedelta(days=offset)), "present": present},
            headers=headers(world.admin_a)
        )


async def test_school_overview(client, world, headers, attendance):
    response = await client.get("/api/v1/analytics/school", headers=headers(world.admin_a))

    assert response.status_code == 200
    analytics = response.json()["analytics"]
    assert analytics["overview"]["total_students"] == 2
    assert analytics["overview"]["total_teachers"] == 2
    assert analytics["overview"]["total_parents"] == 1
    assert analytics["attendance"]["attendance_rate"] == "66.67"


async def test_school_overview_needs_staff(client, world, headers):
    assert (await client.get("/api/v1/analytics/school", headers=headers(world.parent_a))).status_code == 403


async def test_student_analytics_for_guardian(client, world, headers, attendance):
    response = await client.get(f"/api/v1/analytics/students/{world.student_a1.id}", headers=headers(world.parent_a))

    assert response.status_code == 200
    analytics = response.json()["analytics"]
    assert analytics["student"]["registration_number"] == "AMINA"
    assert analytics["attendance"]["present_count"] == 2
    assert analytics["risk_level"] == "High Risk"


async def test_student_analytics_hidden_from_other_parents(client, world, headers):
    response = await client.get(f"/api/v1/analytics/students/{world.student_a2.id}", headers=headers(world.parent_a))

    assert response.status_code == 404


async def test_parent_engagement_without_reads(client, world, headers):
    response = await client.get("/api/v1/analytics/parent-engagement", headers=headers(world.admin_a))

    engagement = response.json()["analytics"]
    assert engagement["overview"]["total_parents"] == 1
    assert engagement["overview"]["engagement_rate"] == "0.00"


@pytest.mark.parametrize("user_key, role", [
    ("super_admin", "super_admin"),
    ("admin_a", "school_admin"),
    ("principal_a", "principal"),
    ("teacher_a", "teacher"),
    ("parent_a", "parent"),
])
async def test_dashboard_per_role(client, world, headers, user_key, role):
    response = await client.get("/api/v1/dashboard", headers=headers(getattr(world, user_key)))

    assert response.status_code == 200
    assert response.json()["dashboard"]["role"] == role


async def test_parent_dashboard_lists_children(client, world, headers):
    dashboard = (await client.get("/api/v1/dashboard", headers=headers(world.parent_a))).json()["dashboard"]

    assert [child["id"] for child in dashboard["children"]] == [world.student_a1.id]


async def test_risk_level_matches_between_student_and_class_views(client, world, headers):
    admin = headers(world.admin_a)

    student = (await client.get(f"/api/v1/analytics/students/{world.student_a2.id}", headers=admin)).json()["analytics"]
    klass = (await client.get(f"/api/v1/analytics/classes/{world.class_a2.id}", headers=admin)).json()["analytics"]

    flagged = {item["id"]: item for item in klass["insights"]["struggling_students"]}
    assert world.student_a2.id in flagged
    assert flagged[world.student_a2.id]["attendance_rate"] == student["attendance"]["attendance_rate"] == "0.00"
    assert flagged[world.student_a2.id]["risk_level"] == student["risk_level"] == "High Risk"


async def test_compose_fails_when_any_branch_fails(database):
    async def ok(session):
        return 1

    async def broken(session):
        raise RuntimeError("branch failed")

    with pytest.raises(RuntimeError, match="branch failed"):
        await compose(database, {"ok": ok, "broken": broken})


async def test_compose_merges_branch_results(database):
    async def students(session):
        return 2

    async def teachers(session):
        return 3

    assert await compose(database, {"students": students, "teachers": teachers}) == {"students": 2, "teachers": 3}
