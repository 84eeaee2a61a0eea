from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from database import find_raw, get_documents, paginate, serialize_doc
from http_utils import ok, search_regex

router = APIRouter()

VISIBLE = {"is_active": True, "is_available": True}


@router.get("/menu")
def list_menu(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    q: Optional[str] = None,
    category: Optional[str] = None,
    is_vegetarian: Optional[bool] = None,
    spicy_level: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort_by: str = "sort_order",
    sort_order: str = "asc",
):
    filter_q = dict(VISIBLE)
    if category:
        filter_q["category"] = category
    if is_vegetarian is not None:
        filter_q["is_vegetarian"] = is_vegetarian
    if spicy_level:
        filter_q["spicy_level"] = spicy_level
    if q:
        pattern = search_regex(q)
        filter_q["$or"] = [
            {"name": pattern},
            {"description": pattern},
            {"tags": pattern},
        ]
    if min_price is not None or max_price is not None:
        price_filter = {}
        if min_price is not None:
            price_filter["$gte"] = min_price
        if max_price is not None:
            price_filter["$lte"] = max_price
        filter_q["discounted_price"] = price_filter
    result = paginate("menuitem", filter_q, page, limit, sort_by, sort_order)
    return ok("Menu retrieved successfully", {"menu_items": result["items"], "pagination": result["pagination"]})


@router.get("/menu/featured")
def featured_menu(limit: int = Query(8, ge=1, le=50)):
    items = get_documents("menuitem", {**VISIBLE, "featured": True}, limit=limit, sort=[("sort_order", 1), ("total_sales", -1)])
    return ok("Featured menu retrieved successfully", {"menu_items": items})


@router.get("/menu/{item_id}")
def get_menu_item(item_id: str):
    item = find_raw("menuitem", item_id)
    if not item or not item.get("is_active", True):
        raise HTTPException(status_code=404, detail="Menu item not found")
    data = serialize_doc(item)
    category = find_raw("category", item.get("category"))
    if category:
        data["category_detail"] = {"_id": str(category["_id"]), "name": category["name"], "slug": category.get("slug")}
    return ok("Menu item retrieved successfully", data)


@router.get("/categories")
def list_categories(type: Optional[str] = None, is_vegetarian: Optional[bool] = None):
    filter_q = {"is_active": True}
    if type:
        filter_q["type"] = type
    if is_vegetarian is not None:
        filter_q["is_vegetarian"] = is_vegetarian
    categories = get_documents("category", filter_q, sort=[("sort_order", 1), ("name", 1)])
    return ok("Categories retrieved successfully", {"categories": categories})
