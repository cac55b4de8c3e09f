from conftest import PASSWORD


async def test_login_returns_token_pair(client, world):
    response = await client.post("/api/v1/auth/login", json={"email": "admina@schoolmail.com", "password": PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"] and body["refresh_token"]
    assert body["user"]["role"] == "school_admin"
    assert body["user"]["school_id"] == world.school_a.id


async def test_login_with_wrong_password(client, world):
    response = await client.post("/api/v1/auth/login", json={"email": "admina@schoolmail.com", "password": "nope-nope"})

    assert response.status_code == 401
    assert response.json()["error_code"] == "INVALID_CREDENTIALS"


async def test_login_blocked_for_unverified_school(client, world):
    response = await client.post(
        "/api/v1/auth/login", json={"email": "pendingadmin@schoolmail.com", "password": PASSWORD}
    )

    assert response.status_code == 403


async def test_me_requires_token(client, world):
    response = await client.get("/api/v1/auth/me")

    assert response.status_code == 401
    assert set(response.json()) >= {"message", "error_code"}


async def test_me_rejects_garbage_token(client, world):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["error_code"] == "TOKEN_ERROR"


async def test_token_of_unverified_school_is_refused(client, world, headers):
    response = await client.get("/api/v1/students", headers=headers(world.pending_admin))

    assert response.status_code == 403


async def test_refresh_and_logout(client, world):
    login = (await client.post(
        "/api/v1/auth/login", json={"email": "teachera@schoolmail.com", "password": PASSWORD}
    )).json()

    refreshed = await client.post("/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["access_token"]

    logout = await client.post(
        "/api/v1/auth/logout",
        json={"refresh_token": login["refresh_token"]},
        headers={"Authorization": f"Bearer {login['access_token']}"}
    )
    assert logout.status_code == 200

    again = await client.post("/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]})
    assert again.status_code == 401


async def test_password_reset_flow(client, world):
    requested = await client.post("/api/v1/auth/password-reset/request", json={"email": "parenta@schoolmail.com"})
    assert requested.status_code == 200
    token = requested.json()["reset_token"]

    confirmed = await client.post(
        "/api/v1/auth/password-reset/confirm", json={"token": token, "new_password": "BrandNewPass1"}
    )
    assert confirmed.status_code == 200

    login = await client.post("/api/v1/auth/login", json={"email": "parenta@schoolmail.com", "password": "BrandNewPass1"})
    assert login.status_code == 200


async def test_password_reset_for_unknown_email_gives_no_token(client, world):
    response = await client.post("/api/v1/auth/password-reset/request", json={"email": "ghost@schoolmail.com"})

    assert response.status_code == 200
    assert "reset_token" not in response.json()
