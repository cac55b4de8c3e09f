import pytest


@pytest.fixture
async def new_principal(client, world, headers):
    response = await client.post(
        "/api/v1/principals",
        json={
            "email": "deputy@schoolmail.com",
            "username": "deputy",
            "name": "Dana",
            "surname": "Deputy",
            "qualifications": "MEd Leadership",
        },
        headers=headers(world.admin_a)
    )
    assert response.status_code == 201
    return response.json()


async def test_created_principal_awaits_verification(world, new_principal):
    principal = new_principal["principal"]

    assert principal["role"] == "principal"
    assert principal["school_id"] == world.school_a.id
    assert principal["is_verified"] is False


async def test_generated_password_allows_login(client, new_principal):
    credentials = new_principal["generated_credentials"]

    response = await client.post("/api/v1/auth/login", json=credentials)

    assert response.status_code == 200


async def test_supplied_password_is_not_echoed(client, world, headers):
    response = await client.post(
        "/api/v1/principals",
        json={
            "email": "head@schoolmail.com", "username": "headteacher", "name": "Hana", "surname": "Head",
            "password": "Sup3rSecret!"
        },
        headers=headers(world.admin_a)
    )

    assert response.status_code == 201
    assert "generated_credentials" not in response.json()


async def test_principal_sees_only_own_record(client, world, headers, new_principal):
    own = await client.get("/api/v1/principals", headers=headers(world.principal_a))
    assert [item["id"] for item in own.json()["principals"]] == [world.principal_a.id]

    other = await client.get(f"/api/v1/principals/{new_principal['principal']['id']}", headers=headers(world.principal_a))
    assert other.status_code == 404


async def test_admin_lists_principals_of_own_school(client, world, headers, new_principal):
    listing = await client.get("/api/v1/principals", headers=headers(world.admin_a))
    assert listing.json()["pagination"]["total"] == 2

    foreign = await client.get("/api/v1/principals", headers=headers(world.admin_b))
    assert foreign.json()["principals"] == []


async def test_verification_notifies_principal(client, world, headers, new_principal):
    principal_id = new_principal["principal"]["id"]

    response = await client.put(
        f"/api/v1/principals/{principal_id}/verify", json={"status": "APPROVED"}, headers=headers(world.admin_a)
    )

    assert response.status_code == 200
    assert response.json()["principal"]["is_verified"] is True
    assert response.json()["approval_status"] == "APPROVED"

    login = await client.post("/api/v1/auth/login", json=new_principal["generated_credentials"])
    token = login.json()["access_token"]
    inbox = await client.get(
        "/api/v1/notifications", params={"type": "APPROVAL"}, headers={"Authorization": f"Bearer {token}"}
    )
    assert inbox.json()["notifications"][0]["title"] == "Principal verification approved"


async def test_pending_is_not_a_verification_decision(client, world, headers, new_principal):
    response = await client.put(
        f"/api/v1/principals/{new_principal['principal']['id']}/verify",
        json={"status": "PENDING"},
        headers=headers(world.admin_a)
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


async def test_principals_cannot_verify_or_delete(client, world, headers, new_principal):
    principal_id = new_principal["principal"]["id"]
    principal = headers(world.principal_a)

    verify = await client.put(f"/api/v1/principals/{principal_id}/verify", json={"status": "APPROVED"}, headers=principal)
    assert verify.status_code == 403
    assert (await client.delete(f"/api/v1/principals/{principal_id}", headers=principal)).status_code == 403


async def test_admin_of_other_school_cannot_verify(client, world, headers, new_principal):
    response = await client.put(
        f"/api/v1/principals/{new_principal['principal']['id']}/verify",
        json={"status": "REJECTED", "comments": "Wrong school"},
        headers=headers(world.admin_b)
    )

    assert response.status_code == 404


async def test_principal_updates_own_profile(client, world, headers):
    response = await client.patch(
        f"/api/v1/principals/{world.principal_a.id}", json={"bio": "Twenty years in education"},
        headers=headers(world.principal_a)
    )

    assert response.status_code == 200
    assert response.json()["principal"]["bio"] == "Twenty years in education"


async def test_teachers_cannot_list_principals(client, world, headers):
    assert (await client.get("/api/v1/principals", headers=headers(world.teacher_a))).status_code == 403
