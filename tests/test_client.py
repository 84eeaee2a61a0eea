import pytest

from client import AdminClient, ApiError

IMAGE = ("tiramisu.jpg", b"\xff\xd8\xff fake", "image/jpeg")


@pytest.fixture
def admin(client, make_user):
    make_user("super-admin", email="boss@example.com", password="boss-pass")
    api = AdminClient("", session=client)
    api.login("boss@example.com", "boss-pass")
    return api


def test_login_keeps_token_and_user(admin):
    assert admin.is_authenticated
    assert admin.user["role"] == "super-admin"
    assert admin.profile()["email"] == "boss@example.com"


def test_bad_login_raises(client, make_user):
    make_user(email="someone@example.com")
    api = AdminClient("", session=client)
    with pytest.raises(ApiError) as excinfo:
        api.login("someone@example.com", "wrong")
    assert excinfo.value.status_code == 401
    assert excinfo.value.message == "Invalid credentials"
    assert not api.is_authenticated


def test_catalogue_round_trip(admin):
    category = admin.create_category({"name": "Dolci", "description": "Desserts", "is_vegetarian": True}, IMAGE)
    assert admin.get_category(category["_id"])["name"] == "Dolci"

    item = admin.create_menu_item({
        "name": "Tiramisu",
        "description": "Coffee and mascarpone",
        "category": category["_id"],
        "mrp": 8,
        "discounted_price": 7,
        "quantity": 12,
    }, [IMAGE])
    assert item["is_vegetarian"] is True

    listed = admin.list_menu_items(search="tira")
    assert [i["name"] for i in listed["menu_items"]] == ["Tiramisu"]

    updated = admin.update_menu_item(item["_id"], {"quantity": 3})
    assert updated["quantity"] == 3

    after = admin.delete_menu_image(item["_id"], item["images"][0]["id"])
    assert after["images"] == []

    with pytest.raises(ApiError) as excinfo:
        admin.delete_category(category["_id"])
    assert excinfo.value.status_code == 400

    admin.delete_menu_item(item["_id"])
    admin.delete_category(category["_id"])
    assert admin.list_categories()["categories"] == []


def test_validation_errors_are_exposed(admin):
    with pytest.raises(ApiError) as excinfo:
        admin.create_category({"name": "No side", "description": "Missing flag"}, IMAGE)
    assert excinfo.value.status_code == 400
    assert excinfo.value.errors


def test_orders_and_users(admin, client, auth, customer, veg_item):
    headers = auth(customer)
    client.post("/api/shop/cart/items", json={"menu_item_id": str(veg_item["_id"])}, headers=headers)
    client.post("/api/shop/orders", json={"customer": {"name": "Cliente", "email": "c@example.com"}, "order_type": "pickup"}, headers=headers)

    orders = admin.list_orders(status="pending", search=None)
    assert orders["pagination"]["total_items"] == 1
    order = admin.update_order_status(orders["orders"][0]["_id"], status="preparing")
    assert order["status"] == "preparing"

    csv_bytes = admin.export_orders_csv()
    assert csv_bytes.startswith(b'"Order Number"')

    promoted = admin.update_user_role(str(customer["_id"]), "non-veg-admin")
    assert promoted["role"] == "non-veg-admin"
    assert admin.get_user(str(customer["_id"]))["stats"]["order_count"] == 1


def test_logout_forgets_token(admin):
    admin.logout()
    assert not admin.is_authenticated
    assert admin.user is None


def test_options_and_reports(admin, make_category, make_menu_item):
    parent = make_category(name="Pizzas")
    make_menu_item(parent)
    level = admin.create_spicy_level({"name": "Mild", "level": 1, "parent_category": str(parent["_id"])})
    assert level["is_vegetarian"] is True
    admin.create_preparation({"name": "Wood-fired", "parent_category": str(parent["_id"])})
    assert [s["name"] for s in admin.list_spicy_levels()["spicy_levels"]] == ["Mild"]
    assert admin.list_preparations()["pagination"]["total_items"] == 1

    assert admin.report_data("menu")["items"][0]["category"] == "Pizzas"
    assert admin.export_report_csv("menu").startswith(b'"Name","Category"')
