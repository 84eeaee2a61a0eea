import os

os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ.pop("DATABASE_URL", None)
os.environ.pop("SMTP_EMAIL", None)
os.environ.pop("ADMIN_NOTIFICATION_EMAIL", None)

from types import SimpleNamespace

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import email_service
import storage
from auth import create_access_token, hash_password
from database import create_document, find_raw
from schemas import Category, Menuitem, Product, User
from main import app


@pytest.fixture(autouse=True)
def mongo(monkeypatch):
    db = mongomock.MongoClient()["peppinos_test"]
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture(autouse=True)
def images(monkeypatch):
    uploaded, deleted = [], []

    def upload(content, folder):
        public_id = f"{folder}/img{len(uploaded) + 1}"
        uploaded.append(public_id)
        return {"public_id": public_id, "url": f"https://res.cloudinary.com/demo/{public_id}.jpg", "width": 800, "height": 600}

    monkeypatch.setattr(storage, "upload_image", upload)
    monkeypatch.setattr(storage, "delete_image", deleted.append)
    return SimpleNamespace(uploaded=uploaded, deleted=deleted)


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    sent = []

    def send(to_email, subject, html):
        sent.append({"to": to_email, "subject": subject, "html": html})
        return True

    monkeypatch.setattr(email_service, "send_email", send)
    return sent


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user():
    counter = {"n": 0}

    def _make(role="customer", email=None, password="secret123", status="active", name=None):
        counter["n"] += 1
        user = User(
            name=name or f"{role} {counter['n']}",
            email=email or f"{role.replace('-', '')}{counter['n']}@peppinos.com",
            password_hash=hash_password(password),
            role=role,
            status=status,
        )
        return find_raw("user", create_document("user", user))

    return _make


def auth_headers(user: dict) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def super_admin(make_user):
    return make_user("super-admin")


@pytest.fixture
def veg_admin(make_user):
    return make_user("veg-admin")


@pytest.fixture
def non_veg_admin(make_user):
    return make_user("non-veg-admin")


@pytest.fixture
def customer(make_user):
    return make_user("customer")


@pytest.fixture
def make_category():
    counter = {"n": 0}

    def _make(is_vegetarian=True, name=None, parent=None, is_active=True):
        counter["n"] += 1
        name = name or f"Category {counter['n']}"
        category = Category(
            name=name,
            slug=name.lower().replace(" ", "-"),
            description=f"{name} description",
            type="menu" if parent else "parent",
            parent_category=str(parent["_id"]) if parent else None,
            is_vegetarian=parent["is_vegetarian"] if parent else is_vegetarian,
            image={"public_id": f"categories/{counter['n']}", "url": "https://res.cloudinary.com/demo/c.jpg"},
            is_active=is_active,
        )
        return find_raw("category", create_document("category", category))

    return _make


@pytest.fixture
def make_menu_item():
    def _make(category, model=Menuitem, **overrides):
        fields = {
            "name": "Margherita",
            "description": "Tomato, mozzarella and basil",
            "category": str(category["_id"]),
            "mrp": 12.0,
            "discounted_price": 10.0,
            "quantity": 20,
            "sizes": ["Small", "Medium", "Large"],
            "addons": [{"name": "Extra cheese", "price": 2.0}],
            "is_vegetarian": category["is_vegetarian"],
            "preparation_time": 20,
        }
        fields.update(overrides)
        collection_name = "product" if model is Product else "menuitem"
        return find_raw(collection_name, create_document(collection_name, model(**fields)))

    return _make


@pytest.fixture
def veg_item(make_category, make_menu_item):
    return make_menu_item(make_category(is_vegetarian=True))


@pytest.fixture
def auth():
    return auth_headers
