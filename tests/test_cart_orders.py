import pytest

import guest_service

CUSTOMER = {"name": "Maria Rossi", "email": "maria@example.com", "phone": "555-0101"}
ADDRESS = {"street": "1 Via Roma", "city": "Springfield", "state": "IL", "zip_code": "62701"}


def add(client, headers, item, quantity=1, **extra):
    body = {"menu_item_id": str(item["_id"]), "quantity": quantity, **extra}
    return client.post("/api/shop/cart/items", json=body, headers=headers)


def test_add_item_with_addon_and_coupon(client, auth, customer, veg_item):
    headers = auth(customer)
    addon_id = veg_item["addons"][0]["id"]
    response = add(client, headers, veg_item, 3, addons=[addon_id])
    assert response.status_code == 200
    cart = response.json()["data"]
    assert cart["subtotal"] == 36.0
    assert cart["items"][0]["addons"] == [{"name": "Extra cheese", "price": 2.0}]
    assert cart["estimated_delivery_time"] == 35

    response = client.post("/api/shop/cart/coupon", json={"coupon_code": "SAVE10"}, headers=headers)
    assert response.status_code == 200
    cart = response.json()["data"]
    assert cart["discount"] == 3.6
    assert cart["total"] == 32.4


def test_same_line_is_merged(client, auth, customer, veg_item):
    headers = auth(customer)
    add(client, headers, veg_item, 1, size="Large")
    cart = add(client, headers, veg_item, 2, size="Large").json()["data"]
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3


def test_unknown_addon_rejected(client, auth, customer, veg_item):
    response = add(client, auth(customer), veg_item, 1, addons=["nope"])
    assert response.status_code == 400


def test_unavailable_item_rejected(client, auth, customer, make_category, make_menu_item):
    item = make_menu_item(make_category(), is_available=False)
    response = add(client, auth(customer), item)
    assert response.status_code == 400
    assert response.json()["message"] == "Menu item is not available"


def test_stock_limit(client, auth, customer, make_category, make_menu_item):
    item = make_menu_item(make_category(), quantity=2)
    response = add(client, auth(customer), item, 3)
    assert response.status_code == 400
    assert response.json()["message"] == "Only 2 items available in stock"


def test_coupon_rules(client, auth, customer, veg_item):
    headers = auth(customer)
    empty = client.post("/api/shop/cart/coupon", json={"coupon_code": "SAVE10"}, headers=headers)
    assert empty.status_code == 400
    add(client, headers, veg_item, 1)
    too_small = client.post("/api/shop/cart/coupon", json={"coupon_code": "SAVE10"}, headers=headers)
    assert too_small.status_code == 400
    assert "Minimum order amount" in too_small.json()["message"]
    invalid = client.post("/api/shop/cart/coupon", json={"coupon_code": "BOGUS"}, headers=headers)
    assert invalid.json()["message"] == "Invalid coupon code"


def test_update_remove_and_clear(client, auth, customer, veg_item):
    headers = auth(customer)
    line_id = add(client, headers, veg_item, 1).json()["data"]["items"][0]["id"]

    updated = client.put(f"/api/shop/cart/items/{line_id}", json={"quantity": 4}, headers=headers)
    assert updated.json()["data"]["items"][0]["item_total"] == 40.0

    missing = client.delete("/api/shop/cart/items/unknown", headers=headers)
    assert missing.status_code == 404

    removed = client.delete(f"/api/shop/cart/items/{line_id}", headers=headers)
    assert removed.json()["data"]["items"] == []

    add(client, headers, veg_item, 1)
    cleared = client.delete("/api/shop/cart", headers=headers)
    assert cleared.json()["data"]["total_items"] == 0


def test_cart_requires_login(client):
    response = client.get("/api/shop/cart")
    assert response.status_code == 401
    assert response.json()["message"] == "Access token required"


def test_checkout_places_order_and_clears_cart(client, auth, customer, veg_item, mongo, outbox):
    headers = auth(customer)
    add(client, headers, veg_item, 3, addons=[veg_item["addons"][0]["id"]])
    client.post("/api/shop/cart/coupon", json={"coupon_code": "SAVE10"}, headers=headers)

    response = client.post("/api/shop/orders", json={
        "customer": CUSTOMER,
        "order_type": "delivery",
        "delivery_address": ADDRESS,
        "payment_method": "cash",
    }, headers=headers)
    assert response.status_code == 201
    order = response.json()["data"]["order"]
    assert order["order_number"].startswith("PEP-")
    assert order["order_number"].endswith("-0001")
    assert order["subtotal"] == 36.0
    assert order["discount"] == 3.6
    assert order["coupon_code"] == "SAVE10"
    assert order["total_price"] == round(36.0 + order["delivery_fee"] + order["tax"] - 3.6, 2)
    assert order["status"] == "pending"
    assert order["is_guest_order"] is False
    assert order["status_history"][0]["status"] == "pending"
    assert order["items"][0]["price"] == 10.0

    stock = mongo["menuitem"].find_one({"_id": veg_item["_id"]})
    assert stock["quantity"] == 17
    assert stock["total_sales"] == 3
    assert client.get("/api/shop/cart", headers=headers).json()["data"]["items"] == []
    assert outbox[0]["to"] == CUSTOMER["email"]

    second = add(client, headers, veg_item, 1)
    assert second.status_code == 200
    again = client.post("/api/shop/orders", json={"customer": CUSTOMER, "order_type": "pickup"}, headers=headers)
    assert again.json()["data"]["order_number"].endswith("-0002")
    assert again.json()["data"]["order"]["delivery_fee"] == 0.0


def test_checkout_with_empty_cart(client, auth, customer):
    response = client.post("/api/shop/orders", json={"customer": CUSTOMER, "order_type": "pickup"}, headers=auth(customer))
    assert response.status_code == 400
    assert response.json()["message"] == "Cart is empty"


def test_delivery_needs_address(client, auth, customer):
    response = client.post("/api/shop/orders", json={"customer": CUSTOMER, "order_type": "delivery"}, headers=auth(customer))
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_customers_only_see_their_orders(client, auth, make_user, veg_item):
    alice, bob = make_user(), make_user()
    add(client, auth(alice), veg_item, 1)
    order = client.post("/api/shop/orders", json={"customer": CUSTOMER, "order_type": "pickup"}, headers=auth(alice)).json()["data"]["order"]

    assert client.get(f"/api/shop/orders/{order['_id']}", headers=auth(alice)).status_code == 200
    assert client.get(f"/api/shop/orders/{order['_id']}", headers=auth(bob)).status_code == 404
    assert client.get("/api/shop/orders", headers=auth(bob)).json()["data"]["orders"] == []


# ===================== Guest flow =====================

@pytest.fixture
def session_id(client):
    response = client.post("/api/shop/guest/session")
    assert response.status_code == 201
    return response.json()["data"]["session_id"]


def test_session_id_format(session_id):
    assert session_id.startswith("guest_")
    assert len(session_id.split("_")[2]) == 32


def test_invalid_session_rejected(client):
    response = client.get("/api/shop/guest/cart/not-a-session")
    assert response.status_code == 400


def test_guest_checkout_and_lookup(client, session_id, veg_item, mongo):
    response = client.post(f"/api/shop/guest/cart/{session_id}/items", json={"menu_item_id": str(veg_item["_id"]), "quantity": 2})
    assert response.status_code == 200
    assert response.json()["data"]["subtotal"] == 20.0

    response = client.post("/api/shop/guest/checkout", json={
        "session_id": session_id,
        "customer": CUSTOMER,
        "order_type": "pickup",
    })
    assert response.status_code == 201
    order_number = response.json()["data"]["order_number"]

    guest = guest_service.get_guest_by_session(session_id)
    assert guest["role"] == "guest"
    assert guest["email"] == CUSTOMER["email"]
    assert guest["name"] == CUSTOMER["name"]

    found = client.get(f"/api/shop/guest/orders/{order_number}")
    assert found.json()["data"]["order"]["is_guest_order"] is True

    tracking = client.get(f"/api/shop/guest/orders/{order_number}/track").json()["data"]
    assert tracking["status"] == "pending"
    assert 0 < tracking["time_remaining_minutes"] <= 35

    by_email = client.get("/api/shop/guest/orders/email/MARIA@example.com").json()["data"]
    assert [o["order_number"] for o in by_email["orders"]] == [order_number]

    by_session = client.get(f"/api/shop/guest/orders/session/{session_id}").json()["data"]
    assert len(by_session["orders"]) == 1


def test_guest_lookup_ignores_customer_orders(client, auth, customer, veg_item):
    add(client, auth(customer), veg_item, 1)
    order = client.post("/api/shop/orders", json={"customer": CUSTOMER, "order_type": "pickup"}, headers=auth(customer)).json()["data"]
    assert client.get(f"/api/shop/guest/orders/{order['order_number']}").status_code == 404
    assert client.get(f"/api/shop/guest/orders/email/{CUSTOMER['email']}").status_code == 404


def test_destroy_session(client, session_id, veg_item, mongo):
    client.post(f"/api/shop/guest/cart/{session_id}/items", json={"menu_item_id": str(veg_item["_id"])})
    assert client.delete(f"/api/shop/guest/session/{session_id}").status_code == 200
    assert mongo["cart"].count_documents({}) == 0
    assert mongo["user"].count_documents({"role": "guest"}) == 0
    assert client.delete(f"/api/shop/guest/session/{session_id}").status_code == 404
