"""
Database Helper Functions

MongoDB helpers shared by every router. Collections are addressed by the
lowercase model name (e.g. MenuItem -> "menuitem").

Routers never touch the client directly: they go through `collection()` or
the CRUD helpers below so the `db` handle can be swapped (tests use mongomock).
"""

import logging
import math
from datetime import datetime, timezone
from typing import Union, Optional, Any, List

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient, ASCENDING, DESCENDING

from config import settings

logger = logging.getLogger(__name__)

_client = None
db = None

if settings.DATABASE_URL and settings.DATABASE_NAME:
    _client = MongoClient(
        settings.DATABASE_URL,
        serverSelectionTimeoutMS=settings.DB_SERVER_SELECTION_TIMEOUT_MS,
        connectTimeoutMS=settings.DB_CONNECT_TIMEOUT_MS,
        socketTimeoutMS=settings.DB_SOCKET_TIMEOUT_MS,
    )
    db = _client[settings.DATABASE_NAME]


class DatabaseUnavailable(Exception):
    pass


def _ensure_db():
    if db is None:
        raise DatabaseUnavailable("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")


def _to_dict(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump()
    return dict(data)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """pymongo hands back naive UTC datetimes unless the client is tz-aware."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def collection(name: str):
    _ensure_db()
    return db[name]


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a string id, returning None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


# CRUD helpers

def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    _ensure_db()
    payload = _to_dict(data)
    now = utcnow()
    payload['created_at'] = now
    payload['updated_at'] = now
    result = db[collection_name].insert_one(payload)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None, sort: Optional[list] = None) -> List[dict]:
    _ensure_db()
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(int(limit))
    return [serialize_doc(doc) for doc in cursor]


def find_raw(collection_name: str, _id: Any) -> Optional[dict]:
    """Fetch a document by id without serializing it (ObjectIds intact)."""
    _ensure_db()
    oid = to_object_id(_id)
    if oid is None:
        return None
    return db[collection_name].find_one({"_id": oid})


def delete_document(collection_name: str, _id: str) -> bool:
    _ensure_db()
    oid = to_object_id(_id)
    if oid is None:
        return False
    result = db[collection_name].delete_one({"_id": oid})
    return result.deleted_count > 0


def paginate(collection_name: str, filter_dict: dict, page: int = 1, limit: int = 10, sort_by: str = "created_at", sort_order: str = "desc") -> dict:
    """Run a counted, paginated query.

    Returns ``{"items": [...], "pagination": {...}}`` with the pagination
    block shaped the way the admin client expects it.
    """
    _ensure_db()
    page = max(int(page), 1)
    limit = max(int(limit), 1)
    direction = DESCENDING if sort_order == "desc" else ASCENDING
    total = db[collection_name].count_documents(filter_dict)
    cursor = (
        db[collection_name]
        .find(filter_dict)
        .sort([(sort_by, direction)])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    return {
        "items": [serialize_doc(doc) for doc in cursor],
        "pagination": {
            "current_page": page,
            "total_pages": math.ceil(total / limit) if total else 0,
            "total_items": total,
            "items_per_page": limit,
        },
    }


def ensure_indexes():
    """Create the indexes the application relies on. Safe to call repeatedly."""
    _ensure_db()
    db["user"].create_index(
        "email",
        unique=True,
        # guests carry no password hash and may share a customer's email
        partialFilterExpression={"status": "active", "password_hash": {"$type": "string"}},
        name="active_email_unique",
    )
    db["user"].create_index("role")
    db["user"].create_index("session_id", sparse=True)
    db["category"].create_index("name", unique=True)
    db["category"].create_index("slug", unique=True)
    db["category"].create_index("is_vegetarian")
    db["menuitem"].create_index("category")
    db["menuitem"].create_index("is_vegetarian")
    db["product"].create_index("category")
    db["cart"].create_index("user", unique=True)
    db["order"].create_index("order_number", unique=True)
    db["order"].create_index([("user", ASCENDING), ("created_at", DESCENDING)])
    db["newsletter"].create_index("email", unique=True)
    db["contact"].create_index("status")
    for option in ("spicylevel", "preparation"):
        db[option].create_index([("parent_category", ASCENDING), ("name", ASCENDING)], unique=True)
    db["address"].create_index([("user", ASCENDING), ("is_default", DESCENDING)])
    logger.info("Database indexes ensured")


# Utility

def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    return _serialize(dict(doc))


def _serialize(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)  # convert ObjectId to string
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    return value
