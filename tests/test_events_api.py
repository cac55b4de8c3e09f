import pytest


@pytest.fixture
def event_payload():
    return {
        "title": "Sports Day",
        "description": "Annual athletics on the main field",
        "location": "Main field",
        "start_time": "2030-06-01T08:00:00",
        "end_time": "2030-06-01T15:00:00",
        "event_type": "SPORTS",
        "rsvp_required": True,
    }


async def _create(client, world, headers, payload):
    response = await client.post("/api/v1/events", json=payload, headers=headers(world.admin_a))
    assert response.status_code == 201
    return response.json()["event"]


async def test_new_event_notifies_parents(client, world, headers, event_payload):
    await _create(client, world, headers, event_payload)

    listing = (await client.get("/api/v1/notifications", params={"type": "EVENT"}, headers=headers(world.parent_a))).json()
    assert [note["title"] for note in listing["notifications"]] == ["New event: Sports Day"]


async def test_event_end_must_follow_start(client, world, headers, event_payload):
    payload = {**event_payload, "end_time": "2030-06-01T07:00:00"}

    response = await client.post("/api/v1/events", json=payload, headers=headers(world.admin_a))
    assert response.status_code == 400


async def test_rsvp_is_recorded_once_per_user(client, world, headers, event_payload):
    event = await _create(client, world, headers, event_payload)
    parent = headers(world.parent_a)
    url = f"/api/v1/events/{event['id']}/rsvp"

    assert (await client.post(url, json={"response": "MAYBE"}, headers=parent)).status_code == 200
    changed = await client.post(url, json={"response": "ATTENDING"}, headers=parent)
    assert changed.json()["rsvp"]["response"] == "ATTENDING"

    detail = (await client.get(f"/api/v1/events/{event['id']}", headers=parent)).json()
    assert detail["rsvp_counts"] == {"ATTENDING": 1}

    rsvps = (await client.get(f"/api/v1/events/{event['id']}/rsvps", headers=headers(world.admin_a))).json()["rsvps"]
    assert [answer["user_id"] for answer in rsvps] == [world.parent_a.id]

    organiser = (await client.get("/api/v1/notifications", params={"type": "EVENT"}, headers=headers(world.admin_a))).json()
    assert organiser["pagination"]["total"] == 2


async def test_rsvp_rejected_when_not_required(client, world, headers, event_payload):
    event = await _create(client, world, headers, {**event_payload, "rsvp_required": False})

    response = await client.post(
        f"/api/v1/events/{event['id']}/rsvp", json={"response": "ATTENDING"}, headers=headers(world.parent_a)
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "BUSINESS_RULE"


async def test_events_are_tenant_scoped(client, world, headers, event_payload):
    event = await _create(client, world, headers, event_payload)

    assert (await client.get(f"/api/v1/events/{event['id']}", headers=headers(world.admin_b))).status_code == 404
    upcoming = (await client.get("/api/v1/events/upcoming", headers=headers(world.teacher_a))).json()
    assert [item["id"] for item in upcoming["events"]] == [event["id"]]


async def test_parents_cannot_create_events(client, world, headers, event_payload):
    response = await client.post("/api/v1/events", json=event_payload, headers=headers(world.parent_a))
    assert response.status_code == 403
