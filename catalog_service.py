"""
Catalogue rules shared by the category, menu item and product controllers.

Every catalogue resource sits on one side of the vegetarian partition. For a
menu category the side is decided by its parent category; items inherit the
side of their category. All write paths resolve the side here and hand it to
`roles.can_perform_action` before touching the database.
"""
import logging
import re
from typing import List, Optional

from fastapi import HTTPException

import roles
import storage
from database import collection, create_document, find_raw, serialize_doc, to_object_id, utcnow
from schemas import Addon, CatalogItemCreate, CatalogItemUpdate, Image
from http_utils import search_regex

logger = logging.getLogger(__name__)

# collection -> (display noun, storage folder)
CATALOG_KINDS = {
    "menuitem": ("menu item", "menu-items"),
    "product": ("product", "products"),
}

# per-parent-category options: collection -> (display noun, response key)
OPTION_KINDS = {
    "spicylevel": ("spicy level", "spicy_levels"),
    "preparation": ("preparation", "preparations"),
}


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def effective_vegetarian(category: dict) -> bool:
    if category.get("type") == "menu" and category.get("parent_category"):
        parent = find_raw("category", category["parent_category"])
        if parent is not None:
            return bool(parent.get("is_vegetarian"))
    return bool(category.get("is_vegetarian"))


def resolve_parent(parent_id: str) -> dict:
    parent = find_raw("category", parent_id)
    if not parent or parent.get("type") != "parent":
        raise HTTPException(status_code=400, detail="Invalid parent category")
    return parent


def category_scope(category: dict) -> List[str]:
    """Ids of the category and, for a parent, of every menu category under it."""
    ids = [str(category["_id"])]
    if category.get("type") == "parent":
        children = collection("category").find({"parent_category": ids[0]}, {"_id": 1})
        ids.extend(str(child["_id"]) for child in children)
    return ids


def cascade_side(parent_id: str, is_vegetarian: bool):
    """Copy a parent's new side onto its menu categories and options."""
    update = {"$set": {"is_vegetarian": is_vegetarian, "updated_at": utcnow()}}
    for collection_name in ("category", *OPTION_KINDS):
        collection(collection_name).update_many({"parent_category": parent_id}, update)
    logger.info("Moved everything under category %s to is_vegetarian=%s", parent_id, is_vegetarian)


def ensure_allowed(user: dict, action: str, is_vegetarian: bool, noun: str):
    if not roles.can_perform_action(user.get("role"), action, is_vegetarian):
        raise HTTPException(
            status_code=403,
            detail=f"You cannot {action} {roles.partition_label(is_vegetarian)} {noun}",
        )


def load_or_404(collection_name: str, _id: str, noun: str) -> dict:
    doc = find_raw(collection_name, _id)
    if not doc:
        raise HTTPException(status_code=404, detail=f"{noun.capitalize()} not found")
    return doc


def list_filter(user: dict, search: Optional[str] = None, is_vegetarian: Optional[bool] = None, is_active: Optional[bool] = None, category: Optional[str] = None) -> dict:
    query = dict(roles.get_role_based_filter(user.get("role")))
    if search:
        query["$or"] = [{"name": search_regex(search)}, {"description": search_regex(search)}]
    # a partition admin's own filter always wins over the query string
    if is_vegetarian is not None and "is_vegetarian" not in query:
        query["is_vegetarian"] = is_vegetarian
    if is_active is not None:
        query["is_active"] = is_active
    if category:
        query["category"] = category
    return query


def bulk_status(collection_name: str, user: dict, ids: List[str], is_active: bool) -> dict:
    oids = [oid for oid in (to_object_id(i) for i in ids) if oid]
    query = {"_id": {"$in": oids}, **roles.get_role_based_filter(user.get("role"))}
    result = collection(collection_name).update_many(query, {"$set": {"is_active": is_active, "updated_at": utcnow()}})
    logger.info("%s bulk-set is_active=%s on %s %s documents", user.get("email"), is_active, result.modified_count, collection_name)
    return {"matched_count": result.matched_count, "modified_count": result.modified_count}


# ===================== Menu items / products =====================

def _category_side(category_id: str) -> tuple:
    category = find_raw("category", category_id)
    if not category:
        raise HTTPException(status_code=400, detail="Invalid category")
    return category, effective_vegetarian(category)


def create_item(collection_name: str, user: dict, payload: CatalogItemCreate, images: List[bytes]) -> dict:
    noun, folder = CATALOG_KINDS[collection_name]
    _, is_vegetarian = _category_side(payload.category)
    if payload.is_vegetarian is not None and payload.is_vegetarian != is_vegetarian:
        raise HTTPException(status_code=400, detail=f"The {noun} vegetarian status must match its category")
    ensure_allowed(user, "create", is_vegetarian, noun + "s")

    uploaded = [Image(**img).model_dump() for img in storage.upload_images(images, folder)]
    data = payload.model_dump(exclude={"is_vegetarian", "addons"})
    data.update(
        addons=[Addon(**a.model_dump()).model_dump() for a in payload.addons],
        images=uploaded,
        is_vegetarian=is_vegetarian,
        is_active=True,
        is_available=True,
        total_sales=0,
        created_by=str(user["_id"]),
    )
    item_id = create_document(collection_name, data)
    logger.info("%s created %s %s (%s)", user.get("email"), noun, item_id, payload.name)
    return serialize_doc(find_raw(collection_name, item_id))


def update_item(collection_name: str, item: dict, user: dict, payload: CatalogItemUpdate, images: List[bytes]) -> dict:
    noun, folder = CATALOG_KINDS[collection_name]
    ensure_allowed(user, "update", item.get("is_vegetarian"), noun + "s")

    changes = payload.model_dump(exclude_unset=True, exclude={"addons"})
    if payload.category is not None and payload.category != item.get("category"):
        _, is_vegetarian = _category_side(payload.category)
        if is_vegetarian != item.get("is_vegetarian"):
            raise HTTPException(status_code=400, detail=f"The {noun} vegetarian status must match its category")

    mrp = changes.get("mrp", item.get("mrp"))
    discounted = changes.get("discounted_price", item.get("discounted_price"))
    if mrp is not None and discounted is not None and discounted > mrp:
        raise HTTPException(status_code=400, detail="Discounted price cannot be greater than MRP")

    if payload.addons is not None:
        changes["addons"] = [Addon(**a.model_dump()).model_dump() for a in payload.addons]

    update = {"$set": {**changes, "updated_at": utcnow()}}
    new_images = [Image(**img).model_dump() for img in storage.upload_images(images, folder)]
    if new_images:
        update["$push"] = {"images": {"$each": new_images}}
    collection(collection_name).update_one({"_id": item["_id"]}, update)
    logger.info("%s updated %s %s", user.get("email"), noun, item["_id"])
    return serialize_doc(find_raw(collection_name, item["_id"]))


def delete_item(collection_name: str, item: dict, user: dict):
    noun, _ = CATALOG_KINDS[collection_name]
    ensure_allowed(user, "delete", item.get("is_vegetarian"), noun + "s")
    storage.delete_images_quietly(item.get("images", []))
    collection(collection_name).delete_one({"_id": item["_id"]})
    logger.info("%s deleted %s %s", user.get("email"), noun, item["_id"])


def delete_item_image(collection_name: str, item: dict, user: dict, image_id: str) -> dict:
    noun, _ = CATALOG_KINDS[collection_name]
    ensure_allowed(user, "update", item.get("is_vegetarian"), noun + "s")
    image = next((img for img in item.get("images", []) if img.get("id") == image_id), None)
    if image is None:
        raise HTTPException(status_code=404, detail="Image not found")
    storage.delete_images_quietly([image])
    collection(collection_name).update_one(
        {"_id": item["_id"]},
        {"$pull": {"images": {"id": image_id}}, "$set": {"updated_at": utcnow()}},
    )
    return serialize_doc(find_raw(collection_name, item["_id"]))


def item_stats(collection_name: str, user: dict) -> dict:
    match = roles.get_role_based_filter(user.get("role"))
    overview = list(collection(collection_name).aggregate([
        {"$match": match},
        {"$group": {
            "_id": None,
            "total": {"$sum": 1},
            "active": {"$sum": {"$cond": [{"$eq": ["$is_active", True]}, 1, 0]}},
            "inactive": {"$sum": {"$cond": [{"$eq": ["$is_active", False]}, 1, 0]}},
            "vegetarian": {"$sum": {"$cond": [{"$eq": ["$is_vegetarian", True]}, 1, 0]}},
            "non_vegetarian": {"$sum": {"$cond": [{"$eq": ["$is_vegetarian", False]}, 1, 0]}},
            "featured": {"$sum": {"$cond": [{"$eq": ["$featured", True]}, 1, 0]}},
            "average_price": {"$avg": "$discounted_price"},
            "total_stock": {"$sum": "$quantity"},
        }},
    ]))
    by_category = list(collection(collection_name).aggregate([
        {"$match": match},
        {"$group": {"_id": "$category", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ]))
    summary = overview[0] if overview else {
        "total": 0, "active": 0, "inactive": 0, "vegetarian": 0, "non_vegetarian": 0,
        "featured": 0, "average_price": 0, "total_stock": 0,
    }
    summary.pop("_id", None)
    return {
        "overview": summary,
        "by_category": [{"category": row["_id"], "count": row["count"]} for row in by_category],
    }
