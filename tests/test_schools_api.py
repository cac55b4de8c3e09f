from sqlalchemy import select

from school_api.models import Notification

REGISTRATION = {
    "name": "Delta High",
    "email": "office@delta-high.com",
    "registration_number": "delta-77",
    "admin_name": "Dana",
    "admin_surname": "Mwangi",
    "admin_email": "dana@delta-high.com",
    "admin_username": "dana",
    "admin_password": "DeltaPass123",
}


async def test_registration_creates_pending_school_and_notifies_super_admins(client, world, session):
    response = await client.post("/api/v1/schools/register", json=REGISTRATION)

    assert response.status_code == 201
    body = response.json()
    assert body["school"]["verification_status"] == "PENDING"
    assert body["school"]["registration_number"] == "DELTA-77"
    assert body["admin"]["role"] == "school_admin"

    notes = (await session.execute(
        select(Notification).where(Notification.user_id == world.super_admin.id)
    )).scalars().all()
    assert [note.title for note in notes] == ["New school registration"]


async def test_duplicate_registration_conflicts(client, world):
    assert (await client.post("/api/v1/schools/register", json=REGISTRATION)).status_code == 201

    again = await client.post("/api/v1/schools/register", json={**REGISTRATION, "admin_email": "x@delta-high.com"})
    assert again.status_code == 409


async def test_admin_cannot_sign_in_until_approved(client, world, headers):
    created = (await client.post("/api/v1/schools/register", json=REGISTRATION)).json()
    credentials = {"email": REGISTRATION["admin_email"], "password": REGISTRATION["admin_password"]}

    assert (await client.post("/api/v1/auth/login", json=credentials)).status_code == 403

    verified = await client.post(
        f"/api/v1/schools/{created['school']['id']}/verify",
        json={"status": "APPROVED"},
        headers=headers(world.super_admin)
    )
    assert verified.status_code == 200
    assert verified.json()["school"]["verification_status"] == "APPROVED"

    assert (await client.post("/api/v1/auth/login", json=credentials)).status_code == 200


async def test_only_super_admin_verifies(client, world, headers):
    response = await client.post(
        f"/api/v1/schools/{world.pending.id}/verify",
        json={"status": "APPROVED"},
        headers=headers(world.admin_a)
    )

    assert response.status_code == 403


async def test_school_admin_sees_only_own_school(client, world, headers):
    response = await client.get("/api/v1/schools", headers=headers(world.admin_a))

    assert response.status_code == 200
    assert [school["id"] for school in response.json()["schools"]] == [world.school_a.id]

    other = await client.get(f"/api/v1/schools/{world.school_b.id}", headers=headers(world.admin_a))
    assert other.status_code == 404


async def test_super_admin_filters_by_status(client, world, headers):
    response = await client.get(
        "/api/v1/schools", params={"verification_status": "PENDING"}, headers=headers(world.super_admin)
    )

    assert response.status_code == 200
    assert [school["name"] for school in response.json()["schools"]] == ["Gamma School"]
