import pytest
from conftest import make_user

from school_api.schemas.enums import UserRole


@pytest.fixture
async def material(client, world, headers):
    admin = headers(world.admin_a)
    category = (await client.post(
        "/api/v1/materials/categories", json={"name": "Stationery"}, headers=admin
    )).json()["category"]
    response = await client.post(
        "/api/v1/materials",
        json={
            "name": "Exercise book",
            "price": 2.5,
            "stock_quantity": 10,
            "min_order_qty": 2,
            "max_order_qty": 6,
            "category_id": category["id"],
        },
        headers=admin
    )
    assert response.status_code == 201
    return response.json()["material"]


async def test_cart_add_update_and_clear(client, world, headers, material):
    parent = headers(world.parent_a)

    added = await client.post(
        "/api/v1/materials/cart/items", json={"material_id": material["id"], "quantity": 2}, headers=parent
    )
    assert added.status_code == 201
    cart = added.json()["cart"]
    assert cart["total_items"] == 2
    assert cart["total_amount"] == 5.0

    # Adding the same material again increases the quantity
    again = await client.post(
        "/api/v1/materials/cart/items", json={"material_id": material["id"], "quantity": 1}, headers=parent
    )
    items = again.json()["cart"]["items"]
    assert len(items) == 1
    assert items[0]["quantity"] == 3

    updated = await client.patch(f"/api/v1/materials/cart/items/{items[0]['id']}", json={"quantity": 4}, headers=parent)
    assert updated.json()["cart"]["items"][0]["subtotal"] == 10.0

    cleared = await client.delete("/api/v1/materials/cart", headers=parent)
    assert cleared.json()["cart"]["items"] == []
    assert cleared.json()["cart"]["total_amount"] == 0.0


async def test_cart_enforces_order_limits(client, world, headers, material):
    parent = headers(world.parent_a)
    url = "/api/v1/materials/cart/items"

    too_few = await client.post(url, json={"material_id": material["id"], "quantity": 1}, headers=parent)
    assert too_few.status_code == 400

    too_many = await client.post(url, json={"material_id": material["id"], "quantity": 7}, headers=parent)
    assert too_many.status_code == 400


async def test_cart_respects_stock(client, world, headers, material):
    await client.patch(f"/api/v1/materials/{material['id']}", json={"stock_quantity": 3}, headers=headers(world.admin_a))

    response = await client.post(
        "/api/v1/materials/cart/items", json={"material_id": material["id"], "quantity": 5}, headers=headers(world.parent_a)
    )
    assert response.status_code == 400
    assert response.json()["available"] == 3


async def test_cart_items_belong_to_their_owner(client, world, headers, material, session, password_hash):
    other = make_user(UserRole.PARENT, "otherparent", password_hash, world.school_a.id)
    session.add(other)
    await session.commit()

    cart = (await client.post(
        "/api/v1/materials/cart/items", json={"material_id": material["id"], "quantity": 2},
        headers=headers(world.parent_a)
    )).json()["cart"]

    response = await client.delete(
        f"/api/v1/materials/cart/items/{cart['items'][0]['id']}", headers=headers(other)
    )
    assert response.status_code == 404


async def test_only_parents_have_carts(client, world, headers):
    assert (await client.get("/api/v1/materials/cart", headers=headers(world.admin_a))).status_code == 403


async def test_foreign_material_is_hidden(client, world, headers, material):
    assert (await client.get(f"/api/v1/materials/{material['id']}", headers=headers(world.admin_b))).status_code == 404

    search = await client.get("/api/v1/materials", params={"search": "exercise"}, headers=headers(world.parent_a))
    assert [item["id"] for item in search.json()["materials"]] == [material["id"]]


@pytest.fixture
async def order(client, world, headers, material):
    parent = headers(world.parent_a)
    added = await client.post(
        "/api/v1/materials/cart/items", json={"material_id": material["id"], "quantity": 4}, headers=parent
    )
    assert added.status_code == 201

    response = await client.post("/api/v1/materials/orders", json={"delivery_notes": "Front desk"}, headers=parent)
    assert response.status_code == 201
    return response.json()


async def _stock(client, world, headers, material_id):
    response = await client.get(f"/api/v1/materials/{material_id}", headers=headers(world.admin_a))
    return response.json()["material"]["stock_quantity"]


async def test_order_snapshots_cart_and_empties_it(client, world, headers, material, order):
    assert order["order"]["status"] == "PENDING"
    assert order["order"]["order_number"].startswith("ORD-")
    assert order["order"]["total_amount"] == 10.0
    assert order["items"] == [{
        "id": order["items"][0]["id"], "material_id": material["id"], "material_name": "Exercise book",
        "quantity": 4, "unit_price": 2.5, "total_price": 10.0,
    }]

    cart = await client.get("/api/v1/materials/cart", headers=headers(world.parent_a))
    assert cart.json()["cart"]["items"] == []
    # Stock is only taken on confirmation
    assert await _stock(client, world, headers, material["id"]) == 10


async def test_empty_cart_cannot_be_ordered(client, world, headers):
    response = await client.post("/api/v1/materials/orders", json={}, headers=headers(world.parent_a))

    assert response.status_code == 400
    assert response.json()["message"] == "Cart is empty"


async def test_home_delivery_needs_an_address(client, world, headers):
    response = await client.post(
        "/api/v1/materials/orders", json={"delivery_method": "HOME_DELIVERY"}, headers=headers(world.parent_a)
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


async def test_confirmation_takes_stock_and_notifies_parent(client, world, headers, material, order):
    order_id = order["order"]["id"]

    response = await client.patch(
        f"/api/v1/materials/orders/{order_id}/status", json={"status": "CONFIRMED"}, headers=headers(world.admin_a)
    )

    assert response.status_code == 200
    assert response.json()["order"]["confirmed_at"] is not None
    assert await _stock(client, world, headers, material["id"]) == 6

    inbox = await client.get("/api/v1/notifications", headers=headers(world.parent_a))
    assert inbox.json()["notifications"][0]["title"] == "Order status update"


async def test_confirmation_fails_when_stock_ran_out(client, world, headers, material, order):
    admin = headers(world.admin_a)
    await client.patch(f"/api/v1/materials/{material['id']}", json={"stock_quantity": 3}, headers=admin)

    response = await client.patch(
        f"/api/v1/materials/orders/{order['order']['id']}/status", json={"status": "CONFIRMED"}, headers=admin
    )

    assert response.status_code == 400
    assert response.json()["requested"] == 4
    assert await _stock(client, world, headers, material["id"]) == 3
    details = await client.get(f"/api/v1/materials/orders/{order['order']['id']}", headers=admin)
    assert details.json()["order"]["status"] == "PENDING"


async def test_status_must_follow_fulfilment_order(client, world, headers, order):
    response = await client.patch(
        f"/api/v1/materials/orders/{order['order']['id']}/status", json={"status": "DELIVERED"},
        headers=headers(world.admin_a)
    )

    assert response.status_code == 400
    assert response.json()["allowed"] == ["CANCELLED", "CONFIRMED"]


async def test_cancelling_confirmed_order_returns_stock(client, world, headers, material, order):
    order_id = order["order"]["id"]
    await client.patch(
        f"/api/v1/materials/orders/{order_id}/status", json={"status": "CONFIRMED"}, headers=headers(world.admin_a)
    )

    response = await client.post(
        f"/api/v1/materials/orders/{order_id}/cancel", json={"reason": "Bought elsewhere"}, headers=headers(world.parent_a)
    )

    assert response.status_code == 200
    assert response.json()["order"]["status"] == "CANCELLED"
    assert response.json()["order"]["admin_notes"] == "Bought elsewhere"
    assert await _stock(client, world, headers, material["id"]) == 10


async def test_orders_past_confirmation_cannot_be_cancelled(client, world, headers, order):
    admin = headers(world.admin_a)
    order_id = order["order"]["id"]
    for step in ("CONFIRMED", "PREPARING"):
        await client.patch(f"/api/v1/materials/orders/{order_id}/status", json={"status": step}, headers=admin)

    response = await client.post(f"/api/v1/materials/orders/{order_id}/cancel", json={}, headers=headers(world.parent_a))

    assert response.status_code == 400


async def test_order_lists_are_scoped(client, world, headers, order, session, password_hash):
    other = make_user(UserRole.PARENT, "orderlessparent", password_hash, world.school_a.id)
    session.add(other)
    await session.commit()
    order_id = order["order"]["id"]

    own = await client.get("/api/v1/materials/orders", headers=headers(world.parent_a))
    assert [item["id"] for item in own.json()["orders"]] == [order_id]

    school = await client.get("/api/v1/materials/orders", params={"status": "PENDING"}, headers=headers(world.admin_a))
    assert school.json()["pagination"]["total"] == 1

    foreign = await client.get("/api/v1/materials/orders", headers=headers(world.admin_b))
    assert foreign.json()["orders"] == []

    assert (await client.get("/api/v1/materials/orders", headers=headers(other))).json()["orders"] == []
    assert (await client.get(f"/api/v1/materials/orders/{order_id}", headers=headers(other))).status_code == 404
    assert (await client.get(f"/api/v1/materials/orders/{order_id}", headers=headers(world.admin_b))).status_code == 404


async def test_parents_cannot_change_order_status(client, world, headers, order):
    response = await client.patch(
        f"/api/v1/materials/orders/{order['order']['id']}/status", json={"status": "CONFIRMED"},
        headers=headers(world.parent_a)
    )

    assert response.status_code == 403
