async def test_health_reports_database(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["database"] == "connected"


async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


async def test_request_id_is_generated(client):
    response = await client.get("/health")

    assert response.headers["X-Request-ID"]


async def test_unknown_route_uses_error_envelope(client):
    response = await client.get("/api/v1/nowhere")

    assert response.status_code == 404
    assert response.json()["error_code"] == "HTTP_ERROR"
