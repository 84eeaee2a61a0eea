import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

import roles
import storage
from auth import require_permission
from catalog_service import (
    OPTION_KINDS,
    bulk_status,
    cascade_side,
    category_scope,
    effective_vegetarian,
    ensure_allowed,
    load_or_404,
    resolve_parent,
    slugify,
)
from database import collection, create_document, find_raw, paginate, serialize_doc, utcnow
from http_utils import ok, parse_form_model, read_images, search_regex
from schemas import BulkStatusRequest, Category, CategoryCreate, CategoryUpdate, Image

logger = logging.getLogger(__name__)

router = APIRouter()

NOUN = "categories"
FOLDER = "categories"


def _with_counts(category: dict) -> dict:
    data = serialize_doc(category)
    category_id = data["_id"]
    data["menu_item_count"] = collection("menuitem").count_documents({"category": category_id})
    data["product_count"] = collection("product").count_documents({"category": category_id})
    data["child_count"] = collection("category").count_documents({"parent_category": category_id})
    return data


def _ensure_unique_name(name: str, exclude_id=None):
    query = {"name": {"$regex": f"^{search_regex(name)['$regex']}$", "$options": "i"}}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    if collection("category").find_one(query):
        raise HTTPException(status_code=400, detail="Category with this name already exists")


def _upload_single(image: Optional[UploadFile]) -> Optional[dict]:
    payloads = read_images([image] if image is not None else [])
    if not payloads:
        return None
    return Image(**storage.upload_image(payloads[0], FOLDER)).model_dump()


@router.get("")
def list_categories(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    type: Optional[str] = None,
    parent_category: Optional[str] = None,
    is_vegetarian: Optional[bool] = None,
    is_active: Optional[bool] = None,
    sort_by: str = "sort_order",
    sort_order: str = "asc",
    user: dict = Depends(require_permission(roles.VIEW_CATALOG)),
):
    query = dict(roles.get_role_based_filter(user["role"]))
    if search:
        query["$or"] = [{"name": search_regex(search)}, {"description": search_regex(search)}]
    if is_vegetarian is not None and "is_vegetarian" not in query:
        query["is_vegetarian"] = is_vegetarian
    if is_active is not None:
        query["is_active"] = is_active
    if type:
        query["type"] = type
    if parent_category:
        query["parent_category"] = parent_category

    result = paginate("category", query, page, limit, sort_by, sort_order)
    categories = [_with_counts(c) for c in result["items"]]
    return ok("Categories retrieved successfully", {"categories": categories, "pagination": result["pagination"]})


@router.get("/stats")
def category_stats(user: dict = Depends(require_permission(roles.VIEW_CATALOG))):
    stats = list(collection("category").aggregate([
        {"$match": roles.get_role_based_filter(user["role"])},
        {"$group": {
            "_id": None,
            "total_categories": {"$sum": 1},
            "active_categories": {"$sum": {"$cond": [{"$eq": ["$is_active", True]}, 1, 0]}},
            "inactive_categories": {"$sum": {"$cond": [{"$eq": ["$is_active", False]}, 1, 0]}},
            "vegetarian_categories": {"$sum": {"$cond": [{"$eq": ["$is_vegetarian", True]}, 1, 0]}},
            "non_vegetarian_categories": {"$sum": {"$cond": [{"$eq": ["$is_vegetarian", False]}, 1, 0]}},
            "parent_categories": {"$sum": {"$cond": [{"$eq": ["$type", "parent"]}, 1, 0]}},
            "menu_categories": {"$sum": {"$cond": [{"$eq": ["$type", "menu"]}, 1, 0]}},
        }},
    ]))
    data = stats[0] if stats else {
        "total_categories": 0,
        "active_categories": 0,
        "inactive_categories": 0,
        "vegetarian_categories": 0,
        "non_vegetarian_categories": 0,
        "parent_categories": 0,
        "menu_categories": 0,
    }
    data.pop("_id", None)
    return ok("Category statistics retrieved successfully", data)


@router.put("/bulk-status")
def bulk_update_status(payload: BulkStatusRequest, user: dict = Depends(require_permission(roles.MANAGE_CATALOG))):
    result = bulk_status("category", user, payload.ids, payload.is_active)
    return ok(f"{result['modified_count']} categories updated successfully", result)


@router.get("/{category_id}")
def get_category(category_id: str, user: dict = Depends(require_permission(roles.VIEW_CATALOG))):
    category = load_or_404("category", category_id, "category")
    ensure_allowed(user, "view", effective_vegetarian(category), NOUN)
    return ok("Category retrieved successfully", {"category": _with_counts(category)})


@router.post("", status_code=201)
def create_category(
    data: str = Form(...),
    image: Optional[UploadFile] = File(None),
    user: dict = Depends(require_permission(roles.MANAGE_CATALOG)),
):
    payload = parse_form_model(CategoryCreate, data)
    if payload.type == "menu":
        parent = resolve_parent(payload.parent_category)
        is_vegetarian = bool(parent.get("is_vegetarian"))
    else:
        is_vegetarian = payload.is_vegetarian
    ensure_allowed(user, "create", is_vegetarian, NOUN)
    _ensure_unique_name(payload.name)

    uploaded = _upload_single(image)
    if uploaded is None:
        raise HTTPException(status_code=400, detail="Category image is required")

    category = Category(
        name=payload.name,
        slug=slugify(payload.name),
        description=payload.description,
        type=payload.type,
        parent_category=payload.parent_category if payload.type == "menu" else None,
        is_vegetarian=is_vegetarian,
        image=uploaded,
        sort_order=payload.sort_order,
    )
    category_id = create_document("category", category)
    logger.info("%s created category %s (%s)", user["email"], category_id, payload.name)
    return ok("Category created successfully", {"category": _with_counts(find_raw("category", category_id))})


@router.put("/{category_id}")
def update_category(
    category_id: str,
    data: str = Form("{}"),
    image: Optional[UploadFile] = File(None),
    user: dict = Depends(require_permission(roles.MANAGE_CATALOG)),
):
    category = load_or_404("category", category_id, "category")
    current_side = effective_vegetarian(category)
    ensure_allowed(user, "update", current_side, NOUN)
    payload = parse_form_model(CategoryUpdate, data)

    changes = payload.model_dump(exclude_unset=True, exclude={"is_vegetarian", "parent_category"})
    if payload.name is not None and payload.name != category["name"]:
        _ensure_unique_name(payload.name, exclude_id=category["_id"])
        changes["slug"] = slugify(payload.name)

    new_side = current_side
    if category.get("type") == "menu" and payload.parent_category is not None:
        parent = resolve_parent(payload.parent_category)
        changes["parent_category"] = payload.parent_category
        new_side = bool(parent.get("is_vegetarian"))
    elif category.get("type") == "parent" and payload.is_vegetarian is not None:
        new_side = payload.is_vegetarian

    side_changed = new_side != current_side
    if side_changed:
        ensure_allowed(user, "update", new_side, NOUN)
        scope = {"category": {"$in": category_scope(category)}}
        items = collection("menuitem").count_documents(scope) + collection("product").count_documents(scope)
        if items:
            raise HTTPException(status_code=400, detail="Cannot change the vegetarian status of a category that has items")
        changes["is_vegetarian"] = new_side

    # nothing is written until the upload has succeeded
    uploaded = _upload_single(image)
    if uploaded is not None:
        changes["image"] = uploaded

    changes["updated_at"] = utcnow()
    collection("category").update_one({"_id": category["_id"]}, {"$set": changes})
    if side_changed and category.get("type") == "parent":
        cascade_side(category_id, new_side)
    if uploaded is not None and category.get("image"):
        storage.delete_images_quietly([category["image"]])
    logger.info("%s updated category %s", user["email"], category_id)
    return ok("Category updated successfully", {"category": _with_counts(find_raw("category", category_id))})


@router.delete("/{category_id}")
def delete_category(category_id: str, user: dict = Depends(require_permission(roles.MANAGE_CATALOG))):
    category = load_or_404("category", category_id, "category")
    ensure_allowed(user, "delete", effective_vegetarian(category), NOUN)

    children = collection("category").count_documents({"parent_category": category_id})
    menu_items = collection("menuitem").count_documents({"category": category_id})
    products = collection("product").count_documents({"category": category_id})
    if children or menu_items or products:
        raise HTTPException(
            status_code=400,
            detail=(
                f"Cannot delete category. It has {children} menu categories, "
                f"{menu_items} menu items and {products} products associated with it."
            ),
        )

    if category.get("image"):
        storage.delete_images_quietly([category["image"]])
    collection("category").delete_one({"_id": category["_id"]})
    for option_collection in OPTION_KINDS:
        collection(option_collection).delete_many({"parent_category": category_id})
    logger.info("%s deleted category %s", user["email"], category_id)
    return ok("Category deleted successfully")
