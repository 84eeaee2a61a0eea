from bson import ObjectId

from schemas import Product


def test_lists_visible_products_with_filters(client, make_category, make_menu_item):
    category = make_category()
    make_menu_item(category, model=Product, name="Olive oil", discounted_price=8.0, tags=["pantry"])
    make_menu_item(category, model=Product, name="Chili flakes", discounted_price=4.0, spicy_level="Hot", tags=["pantry", "spice"])
    make_menu_item(category, model=Product, name="Retired", is_active=False)

    response = client.get("/api/shop/products", params={"sort_by": "price", "sort_order": "asc"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert [p["name"] for p in data["products"]] == ["Chili flakes", "Olive oil"]
    assert data["filters"]["min_price"] == 4.0
    assert data["filters"]["max_price"] == 8.0
    assert data["filters"]["available_tags"] == ["pantry", "spice"]


def test_filters_by_tag_and_price(client, make_category, make_menu_item):
    category = make_category()
    make_menu_item(category, model=Product, name="Olive oil", discounted_price=8.0, tags=["pantry"])
    make_menu_item(category, model=Product, name="Chili flakes", discounted_price=4.0, tags=["spice"])

    by_tag = client.get("/api/shop/products", params={"tags": "spice, gift"}).json()["data"]["products"]
    assert [p["name"] for p in by_tag] == ["Chili flakes"]
    by_price = client.get("/api/shop/products", params={"min_price": 5}).json()["data"]["products"]
    assert [p["name"] for p in by_price] == ["Olive oil"]


def test_featured_products_come_first(client, make_category, make_menu_item):
    category = make_category()
    make_menu_item(category, model=Product, name="Plain")
    make_menu_item(category, model=Product, name="Signature sauce", featured=True)
    products = client.get("/api/shop/products/featured").json()["data"]["products"]
    assert products[0]["name"] == "Signature sauce"


def test_search_requires_a_query(client):
    response = client.get("/api/shop/products/search", params={"q": "  "})
    assert response.status_code == 400
    assert response.json()["message"] == "Search query is required"


def test_search_returns_suggestions(client, make_category, make_menu_item):
    make_menu_item(make_category(), model=Product, name="Truffle oil", description="Black truffle")
    data = client.get("/api/shop/products/search", params={"q": "truffle"}).json()["data"]
    assert [p["name"] for p in data["products"]] == ["Truffle oil"]
    assert data["suggestions"] == ["Truffle oil"]
    assert data["query"] == "truffle"


def test_product_detail_with_related(client, make_category, make_menu_item):
    category = make_category(name="Pantry")
    product = make_menu_item(category, model=Product, name="Olive oil")
    make_menu_item(category, model=Product, name="Balsamic")
    data = client.get(f"/api/shop/products/{product['_id']}").json()["data"]
    assert data["product"]["category_detail"]["name"] == "Pantry"
    assert [p["name"] for p in data["related_products"]] == ["Balsamic"]


def test_unknown_or_inactive_product_is_404(client, make_category, make_menu_item):
    hidden = make_menu_item(make_category(), model=Product, is_active=False)
    assert client.get(f"/api/shop/products/{hidden['_id']}").status_code == 404
    response = client.get(f"/api/shop/products/{ObjectId()}")
    assert response.status_code == 404
    assert response.json()["message"] == "Product not found"
