async def _send(client, world, headers, **targets):
    payload = {"title": "Staff meeting", "content": "Friday at 3pm in the hall", **targets}
    return await client.post("/api/v1/notifications", json=payload, headers=headers(world.admin_a))


async def test_send_requires_a_target(client, world, headers):
    response = await _send(client, world, headers)

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


async def test_send_by_role_stays_in_school(client, world, headers):
    response = await _send(client, world, headers, roles=["teacher"])

    assert response.status_code == 201
    assert response.json()["count"] == 2

    listing = (await client.get("/api/v1/notifications", headers=headers(world.idle_teacher))).json()
    assert listing["unread_count"] == 1
    assert listing["notifications"][0]["title"] == "Staff meeting"

    other_school = (await client.get("/api/v1/notifications", headers=headers(world.admin_b))).json()
    assert other_school["notifications"] == []


async def test_class_target_reaches_parents(client, world, headers):
    response = await _send(client, world, headers, class_id=world.class_a1.id)

    assert response.json()["count"] == 1
    count = await client.get("/api/v1/notifications/unread-count", headers=headers(world.parent_a))
    assert count.json()["unread_count"] == 1


async def test_targets_are_deduplicated(client, world, headers):
    response = await _send(
        client, world, headers, user_ids=[world.parent_a.id, world.admin_b.id], class_id=world.class_a1.id
    )

    # admin_b belongs to another school and parent_a is only counted once
    assert response.json()["count"] == 1


async def test_mark_read_and_read_all(client, world, headers):
    await _send(client, world, headers, user_ids=[world.teacher_a.id])
    await _send(client, world, headers, user_ids=[world.teacher_a.id])
    teacher = headers(world.teacher_a)

    first = (await client.get("/api/v1/notifications", headers=teacher)).json()["notifications"][0]
    read = await client.post(f"/api/v1/notifications/{first['id']}/read", headers=teacher)
    assert read.json()["notification"]["is_read"] is True
    assert read.json()["notification"]["read_at"] is not None

    unread = await client.get("/api/v1/notifications", params={"is_read": "false"}, headers=teacher)
    assert unread.json()["pagination"]["total"] == 1

    marked = await client.post("/api/v1/notifications/read-all", headers=teacher)
    assert marked.json()["count"] == 1

    stats = (await client.get("/api/v1/notifications/stats", headers=teacher)).json()["stats"]
    assert stats["total"] == 2
    assert stats["unread"] == 0
    assert stats["by_type"] == {"GENERAL": 2}


async def test_notifications_are_private(client, world, headers):
    await _send(client, world, headers, user_ids=[world.teacher_a.id])
    note = (await client.get("/api/v1/notifications", headers=headers(world.teacher_a))).json()["notifications"][0]

    assert (await client.get(f"/api/v1/notifications/{note['id']}", headers=headers(world.idle_teacher))).status_code == 404
    assert (await client.post(f"/api/v1/notifications/{note['id']}/read", headers=headers(world.admin_a))).status_code == 404

    assert (await client.delete(f"/api/v1/notifications/{note['id']}", headers=headers(world.teacher_a))).status_code == 200


async def test_parents_cannot_broadcast(client, world, headers):
    response = await client.post(
        "/api/v1/notifications",
        json={"title": "Hello", "content": "Hi all", "roles": ["parent"]},
        headers=headers(world.parent_a)
    )

    assert response.status_code == 403
