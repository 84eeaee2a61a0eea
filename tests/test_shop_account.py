from datetime import datetime, timezone

from bson import ObjectId

HOME = {
    "full_name": "Maria Rossi",
    "phone_number": "+1 (555) 010-1000",
    "street": "1 Via Roma",
    "city": "Springfield",
    "state": "IL",
    "zip_code": "62701",
}


def save(client, headers, **overrides):
    return client.post("/api/shop/addresses", json={**HOME, **overrides}, headers=headers)


# ===================== Addresses =====================

def test_first_address_becomes_default(client, auth, customer):
    response = save(client, auth(customer))
    assert response.status_code == 201
    assert response.json()["data"]["address"]["is_default"] is True
    second = save(client, auth(customer), type="work").json()["data"]["address"]
    assert second["is_default"] is False


def test_new_default_unsets_the_previous_one(client, auth, customer, mongo):
    first = save(client, auth(customer)).json()["data"]["address"]
    save(client, auth(customer), type="work", is_default=True)
    assert mongo["address"].find_one({"_id": ObjectId(first["_id"])})["is_default"] is False
    assert mongo["address"].count_documents({"is_default": True}) == 1


def test_set_default_and_read_it_back(client, auth, customer):
    headers = auth(customer)
    save(client, headers)
    work = save(client, headers, type="work").json()["data"]["address"]
    response = client.put(f"/api/shop/addresses/{work['_id']}/default", headers=headers)
    assert response.status_code == 200
    default = client.get("/api/shop/addresses/default", headers=headers).json()["data"]["address"]
    assert default["_id"] == work["_id"]
    listed = client.get("/api/shop/addresses", headers=headers).json()["data"]["addresses"]
    assert listed[0]["_id"] == work["_id"]


def test_default_cannot_be_unset_directly(client, auth, customer):
    home = save(client, auth(customer)).json()["data"]["address"]
    response = client.put(f"/api/shop/addresses/{home['_id']}", json={"is_default": False}, headers=auth(customer))
    assert response.status_code == 400
    assert response.json()["message"] == "Set another address as default instead"


def test_deleting_default_promotes_remaining_address(client, auth, customer, mongo):
    headers = auth(customer)
    home = save(client, headers).json()["data"]["address"]
    work = save(client, headers, type="work").json()["data"]["address"]
    response = client.delete(f"/api/shop/addresses/{home['_id']}", headers=headers)
    assert response.status_code == 200
    assert mongo["address"].find_one({"_id": ObjectId(work["_id"])})["is_default"] is True


def test_other_users_address_is_not_found(client, auth, customer, make_user):
    home = save(client, auth(customer)).json()["data"]["address"]
    stranger = make_user("customer")
    response = client.get(f"/api/shop/addresses/{home['_id']}", headers=auth(stranger))
    assert response.status_code == 404
    assert response.json()["message"] == "Address not found"


def test_invalid_zip_code_rejected(client, auth, customer):
    response = save(client, auth(customer), zip_code="ABCDE")
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "zip_code"


def test_no_default_address(client, auth, customer):
    response = client.get("/api/shop/addresses/default", headers=auth(customer))
    assert response.status_code == 404
    assert response.json()["message"] == "No default address found"


def test_addresses_require_sign_in(client):
    assert client.get("/api/shop/addresses").status_code == 401


def test_null_apartment_clears_but_null_street_is_rejected(client, auth, customer):
    headers = auth(customer)
    home = save(client, headers, apartment="Apt 4").json()["data"]["address"]
    url = f"/api/shop/addresses/{home['_id']}"
    assert client.put(url, json={"street": None}, headers=headers).status_code == 400
    response = client.put(url, json={"apartment": None}, headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["address"]["apartment"] is None


# ===================== Profile =====================

def test_update_profile(client, auth, customer):
    response = client.put("/api/shop/profile", json={"name": "Maria R.", "phone_number": "555-0199"}, headers=auth(customer))
    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["name"] == "Maria R."
    assert user["phone_number"] == "555-0199"
    assert "password_hash" not in user


def test_change_password(client, auth, make_user):
    user = make_user("customer", email="anna@example.com", password="pizza123")
    headers = auth(user)
    wrong = client.put("/api/shop/profile/password", json={"current_password": "nope", "new_password": "pasta456"}, headers=headers)
    assert wrong.status_code == 400
    assert wrong.json()["message"] == "Current password is incorrect"
    same = client.put("/api/shop/profile/password", json={"current_password": "pizza123", "new_password": "pizza123"}, headers=headers)
    assert same.status_code == 400

    response = client.put("/api/shop/profile/password", json={"current_password": "pizza123", "new_password": "pasta456"}, headers=headers)
    assert response.status_code == 200
    login = client.post("/api/auth/login", json={"email": "anna@example.com", "password": "pasta456"})
    assert login.status_code == 200


def test_profile_stats(client, auth, customer, mongo):
    user_id = str(customer["_id"])
    mongo["order"].insert_many([
        {"user": user_id, "status": "delivered", "total_price": 20.0, "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
         "items": [{"menu": "m1", "name": "Margherita", "quantity": 2}]},
        {"user": user_id, "status": "pending", "total_price": 10.0, "created_at": datetime(2024, 2, 1, tzinfo=timezone.utc),
         "items": [{"menu": "m1", "name": "Margherita", "quantity": 1}, {"menu": "m2", "name": "Tiramisu", "quantity": 1}]},
    ])
    data = client.get("/api/shop/profile/stats", headers=auth(customer)).json()["data"]
    assert data["total_orders"] == 2
    assert data["total_spent"] == 30.0
    assert data["average_order_value"] == 15.0
    assert data["favorite_items"][0] == {"menu": "m1", "name": "Margherita", "quantity": 3}
    assert data["last_order_status"] == "pending"


def test_account_with_active_orders_cannot_be_deleted(client, auth, customer, mongo):
    mongo["order"].insert_one({"user": str(customer["_id"]), "status": "preparing", "total_price": 10.0, "items": []})
    response = client.delete("/api/shop/profile", headers=auth(customer))
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot delete an account with active orders"


def test_deleted_account_cannot_sign_in(client, auth, make_user, mongo):
    user = make_user("customer", email="gone@example.com", password="pizza123")
    headers = auth(user)
    assert client.delete("/api/shop/profile", headers=headers).status_code == 200
    assert mongo["user"].find_one({"_id": user["_id"]})["status"] == "deactivated"
    assert client.get("/api/shop/profile", headers=headers).status_code == 401
    login = client.post("/api/auth/login", json={"email": "gone@example.com", "password": "pizza123"})
    assert login.status_code == 401
