def test_subscribe_and_unsubscribe(client, mongo):
    response = client.post("/api/shop/newsletter/subscribe", json={"email": "Fan@Example.com", "name": "Fan"})
    assert response.status_code == 201
    assert mongo["newsletter"].find_one({"email": "fan@example.com"})["is_active"] is True

    again = client.post("/api/shop/newsletter/subscribe", json={"email": "fan@example.com"})
    assert again.status_code == 400

    left = client.post("/api/shop/newsletter/unsubscribe", json={"email": "fan@example.com", "reason": "Too many emails"})
    assert left.status_code == 200
    stored = mongo["newsletter"].find_one({"email": "fan@example.com"})
    assert stored["is_active"] is False
    assert stored["unsubscribe_reason"] == "Too many emails"

    back = client.post("/api/shop/newsletter/subscribe", json={"email": "fan@example.com"})
    assert back.json()["message"] == "Welcome back! Your subscription has been reactivated"
    assert mongo["newsletter"].count_documents({}) == 1


def test_unsubscribe_unknown_email(client):
    response = client.post("/api/shop/newsletter/unsubscribe", json={"email": "ghost@example.com"})
    assert response.status_code == 404


def test_complaints_are_high_priority(client, mongo):
    response = client.post("/api/shop/contact", json={
        "name": "Paolo",
        "email": "paolo@example.com",
        "subject": "Cold pizza",
        "message": "My pizza arrived cold.",
        "type": "complaint",
    })
    assert response.status_code == 201
    contact = mongo["contact"].find_one({})
    assert contact["priority"] == "high"
    assert contact["status"] == "new"


def test_newsletter_admin_is_super_admin_only(client, auth, veg_admin):
    assert client.get("/api/admin/newsletter", headers=auth(veg_admin)).status_code == 403


def test_send_newsletter(client, auth, super_admin, outbox):
    empty = client.post("/api/admin/newsletter/send", json={"subject": "News", "content": "<p>Hi</p>"}, headers=auth(super_admin))
    assert empty.status_code == 400

    client.post("/api/shop/newsletter/subscribe", json={"email": "a@example.com"})
    client.post("/api/shop/newsletter/subscribe", json={"email": "b@example.com"})
    client.post("/api/shop/newsletter/unsubscribe", json={"email": "b@example.com"})
    response = client.post("/api/admin/newsletter/send", json={"subject": "News", "content": "<p>Hi</p>"}, headers=auth(super_admin))
    assert response.json()["data"] == {"total_subscribers": 1, "sent_count": 1, "failed_count": 0}
    assert [m["to"] for m in outbox] == ["a@example.com"]


def test_export_subscribers(client, auth, super_admin):
    client.post("/api/shop/newsletter/subscribe", json={"email": "a@example.com", "name": "Ada"})
    response = client.get("/api/admin/newsletter/export", headers=auth(super_admin))
    assert response.status_code == 200
    lines = response.text.strip().splitlines()
    assert lines[0] == '"Email","Name","Status","Source","Subscribed At"'
    assert lines[1].startswith('"a@example.com","Ada","Active","website"')


def test_contact_reply_resolves_message(client, auth, super_admin, mongo, outbox):
    client.post("/api/shop/contact", json={
        "name": "Sara", "email": "sara@example.com", "subject": "Hours", "message": "Are you open Sunday?",
    })
    contact_id = str(mongo["contact"].find_one({})["_id"])
    headers = auth(super_admin)

    read = client.get(f"/api/admin/contacts/{contact_id}", headers=headers).json()["data"]["contact"]
    assert read["is_read"] is True

    response = client.post(f"/api/admin/contacts/{contact_id}/reply", json={"message": "Yes, 12 to 10."}, headers=headers)
    data = response.json()["data"]
    assert data["email_sent"] is True
    assert data["contact"]["status"] == "resolved"
    assert data["contact"]["response"]["message"] == "Yes, 12 to 10."
    assert outbox[-1]["to"] == "sara@example.com"


def test_public_menu_hides_unavailable_items(client, make_category, make_menu_item):
    category = make_category()
    make_menu_item(category, name="Calzone", featured=True)
    make_menu_item(category, name="Hidden", is_available=False)
    make_menu_item(category, name="Retired", is_active=False)

    menu = client.get("/api/shop/menu").json()["data"]["menu_items"]
    assert [i["name"] for i in menu] == ["Calzone"]
    featured = client.get("/api/shop/menu/featured").json()["data"]["menu_items"]
    assert [i["name"] for i in featured] == ["Calzone"]
    found = client.get("/api/shop/menu", params={"q": "calz"}).json()["data"]["menu_items"]
    assert len(found) == 1


def test_public_menu_item_detail(client, make_category, make_menu_item):
    category = make_category(name="Pizze Rosse")
    item = make_menu_item(category)
    data = client.get(f"/api/shop/menu/{item['_id']}").json()["data"]
    assert data["category_detail"]["name"] == "Pizze Rosse"


def test_health_endpoints(client):
    assert client.get("/").status_code == 200
    response = client.get("/test")
    assert response.json()["database"] == "✅ Available"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_contact_reply_escapes_user_text(client, auth, super_admin, mongo, outbox):
    client.post("/api/shop/contact", json={
        "name": "<b>Eve</b>", "email": "eve@example.com", "subject": "Hi", "message": "<script>alert(1)</script>",
    })
    contact_id = str(mongo["contact"].find_one({})["_id"])
    client.post(f"/api/admin/contacts/{contact_id}/reply", json={"message": "See <img src=x>"}, headers=auth(super_admin))
    html = outbox[-1]["html"]
    assert "<script>" not in html
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
    assert "&lt;b&gt;Eve&lt;/b&gt;" in html
    assert "See &lt;img src=x&gt;" in html


def test_order_confirmation_escapes_customer_and_item_names(outbox):
    import email_service

    email_service.send_order_confirmation({
        "order_number": "PEP-20240101-0001",
        "customer": {"name": "<i>Bob</i>", "email": "bob@example.com"},
        "items": [{"name": "Pizza <script>", "size": "Large", "quantity": 1, "item_total": 10.0}],
        "total_price": 10.0,
    })
    html = outbox[0]["html"]
    assert "Hi &lt;i&gt;Bob&lt;/i&gt;" in html
    assert "Pizza &lt;script&gt; (Large)" in html
    assert "<script>" not in html


def test_startup_ensures_indexes(monkeypatch):
    import database
    from fastapi.testclient import TestClient
    from main import app

    calls = []
    monkeypatch.setattr(database, "ensure_indexes", lambda: calls.append("indexes"))
    with TestClient(app):
        assert calls == ["indexes"]

    monkeypatch.setattr(database, "db", None)
    with TestClient(app):
        assert calls == ["indexes"]
