import json

import storage
from schemas import Product

IMAGE = ("pizza.png", b"\x89PNG fake", "image/png")


def item_payload(category, **overrides):
    data = {
        "name": "Diavola",
        "description": "Spicy salami pizza",
        "category": str(category["_id"]),
        "mrp": 14.0,
        "discounted_price": 12.5,
        "quantity": 30,
        "sizes": ["Medium", "Large"],
        "addons": [{"name": "Chili oil", "price": 0.5}],
        "spicy_level": "Hot",
    }
    data.update(overrides)
    return data


def test_create_menu_item_takes_side_from_category(client, auth, non_veg_admin, make_category, images):
    category = make_category(is_vegetarian=False)
    response = client.post(
        "/api/admin/menu",
        data={"data": json.dumps(item_payload(category))},
        files=[("images", IMAGE), ("images", IMAGE)],
        headers=auth(non_veg_admin),
    )
    assert response.status_code == 201
    item = response.json()["data"]
    assert item["is_vegetarian"] is False
    assert len(item["images"]) == 2
    assert all(img["id"] for img in item["images"])
    assert item["addons"][0]["id"]
    assert len(images.uploaded) == 2


def test_vegetarian_flag_must_match_category(client, auth, super_admin, make_category):
    category = make_category(is_vegetarian=True)
    response = client.post(
        "/api/admin/menu",
        data={"data": json.dumps(item_payload(category, is_vegetarian=False))},
        headers=auth(super_admin),
    )
    assert response.status_code == 400
    assert "must match its category" in response.json()["message"]


def test_discounted_price_above_mrp_rejected(client, auth, super_admin, make_category):
    category = make_category()
    response = client.post(
        "/api/admin/menu",
        data={"data": json.dumps(item_payload(category, mrp=10, discounted_price=11))},
        headers=auth(super_admin),
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "Discounted price cannot be greater than MRP"


def test_update_checks_price_against_stored_mrp(client, auth, super_admin, veg_item):
    response = client.put(
        f"/api/admin/menu/{veg_item['_id']}",
        data={"data": json.dumps({"discounted_price": 15})},
        headers=auth(super_admin),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Discounted price cannot be greater than MRP"


def test_update_appends_images(client, auth, veg_admin, veg_item):
    response = client.put(
        f"/api/admin/menu/{veg_item['_id']}",
        data={"data": json.dumps({"quantity": 5, "featured": True})},
        files=[("images", IMAGE)],
        headers=auth(veg_admin),
    )
    assert response.status_code == 200
    item = response.json()["data"]
    assert item["quantity"] == 5
    assert item["featured"] is True
    assert len(item["images"]) == 1


def test_veg_admin_cannot_touch_non_veg_items(client, auth, veg_admin, make_category, make_menu_item, mongo):
    item = make_menu_item(make_category(is_vegetarian=False), name="Pepperoni")
    headers = auth(veg_admin)
    assert client.get(f"/api/admin/menu/{item['_id']}", headers=headers).status_code == 403
    response = client.delete(f"/api/admin/menu/{item['_id']}", headers=headers)
    assert response.status_code == 403
    assert response.json()["message"] == "You cannot delete non-vegetarian menu items"
    assert mongo["menuitem"].count_documents({}) == 1


def test_veg_admin_cannot_delete_non_veg_product(client, auth, veg_admin, make_category, make_menu_item, mongo):
    product = make_menu_item(make_category(is_vegetarian=False), model=Product, name="Salami")
    response = client.delete(f"/api/admin/products/{product['_id']}", headers=auth(veg_admin))
    assert response.status_code == 403
    assert response.json()["message"] == "You cannot delete non-vegetarian products"
    assert mongo["product"].count_documents({}) == 1


def test_list_is_scoped_to_partition(client, auth, non_veg_admin, make_category, make_menu_item):
    make_menu_item(make_category(is_vegetarian=True), name="Caprese")
    make_menu_item(make_category(is_vegetarian=False), name="Carbonara")
    response = client.get("/api/admin/menu", headers=auth(non_veg_admin))
    data = response.json()["data"]
    assert [i["name"] for i in data["menu_items"]] == ["Carbonara"]
    assert data["pagination"]["total_items"] == 1


def test_search_is_literal(client, auth, super_admin, make_category, make_menu_item):
    category = make_category()
    make_menu_item(category, name="Quattro (4) Formaggi")
    make_menu_item(category, name="Marinara")
    response = client.get("/api/admin/menu", params={"search": "(4)"}, headers=auth(super_admin))
    assert [i["name"] for i in response.json()["data"]["menu_items"]] == ["Quattro (4) Formaggi"]


def test_delete_item_removes_images(client, auth, super_admin, make_category, make_menu_item, mongo, images):
    item = make_menu_item(make_category(), images=[{"public_id": "menu-items/a", "url": "https://x/a.jpg"}])
    response = client.delete(f"/api/admin/menu/{item['_id']}", headers=auth(super_admin))
    assert response.status_code == 200
    assert images.deleted == ["menu-items/a"]
    assert mongo["menuitem"].count_documents({}) == 0


def test_delete_single_image(client, auth, super_admin, make_category, make_menu_item, images):
    item = make_menu_item(make_category(), images=[
        {"public_id": "menu-items/a", "url": "https://x/a.jpg"},
        {"public_id": "menu-items/b", "url": "https://x/b.jpg"},
    ])
    image_id = item["images"][0]["id"]
    response = client.delete(f"/api/admin/menu/{item['_id']}/images/{image_id}", headers=auth(super_admin))
    assert response.status_code == 200
    assert [img["public_id"] for img in response.json()["data"]["images"]] == ["menu-items/b"]
    assert images.deleted == ["menu-items/a"]

    missing = client.delete(f"/api/admin/menu/{item['_id']}/images/{image_id}", headers=auth(super_admin))
    assert missing.status_code == 404


def test_product_stats(client, auth, super_admin, make_category, make_menu_item):
    category = make_category()
    make_menu_item(category, model=Product, name="Olive oil", quantity=4)
    make_menu_item(category, model=Product, name="Pasta", quantity=6)
    response = client.get("/api/admin/products/stats", headers=auth(super_admin))
    overview = response.json()["data"]["overview"]
    assert overview["total"] == 2
    assert overview["total_stock"] == 10


def test_unknown_item_is_404(client, auth, super_admin):
    response = client.get("/api/admin/menu/not-an-id", headers=auth(super_admin))
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Menu item not found"}


def test_upload_failure_aborts_create(client, auth, super_admin, make_category, monkeypatch, mongo):
    def broken(content, folder):
        raise storage.ImageUploadError("Failed to upload image")

    monkeypatch.setattr(storage, "upload_image", broken)
    response = client.post(
        "/api/admin/menu",
        data={"data": json.dumps(item_payload(make_category()))},
        files=[("images", IMAGE)],
        headers=auth(super_admin),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Failed to upload image"
    assert mongo["menuitem"].count_documents({}) == 0


def test_null_required_fields_are_rejected_on_update(client, auth, super_admin, veg_item, mongo):
    response = client.put(
        f"/api/admin/menu/{veg_item['_id']}",
        data={"data": json.dumps({"name": None, "mrp": None})},
        headers=auth(super_admin),
    )
    assert response.status_code == 400
    errors = response.json()["errors"]
    assert [e["field"] for e in errors] == ["name", "mrp"]
    assert errors[0]["message"] == "name cannot be null"
    stored = mongo["menuitem"].find_one({"_id": veg_item["_id"]})
    assert stored["name"] == veg_item["name"]
    assert stored["mrp"] == veg_item["mrp"]


def test_null_special_instructions_clears_the_note(client, auth, super_admin, make_category, make_menu_item, mongo):
    item = make_menu_item(make_category(), special_instructions="Ask for gluten free base")
    response = client.put(
        f"/api/admin/menu/{item['_id']}",
        data={"data": json.dumps({"special_instructions": None})},
        headers=auth(super_admin),
    )
    assert response.status_code == 200
    assert mongo["menuitem"].find_one({"_id": item["_id"]})["special_instructions"] is None
