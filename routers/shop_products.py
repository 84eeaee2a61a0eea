from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from database import collection, find_raw, get_documents, paginate, serialize_doc, utcnow
from http_utils import ok, search_regex

router = APIRouter()

VISIBLE = {"is_active": True, "is_available": True}
NEW_ARRIVAL_DAYS = 30


def _search_clause(term: str) -> dict:
    pattern = search_regex(term)
    return {"$or": [{"name": pattern}, {"description": pattern}, {"tags": pattern}]}


def _available_filters() -> dict:
    prices = list(collection("product").aggregate([
        {"$match": VISIBLE},
        {"$group": {"_id": None, "min_price": {"$min": "$discounted_price"}, "max_price": {"$max": "$discounted_price"}}},
    ]))
    return {
        "min_price": prices[0]["min_price"] if prices else 0,
        "max_price": prices[0]["max_price"] if prices else 0,
        "spicy_levels": sorted(collection("product").distinct("spicy_level", VISIBLE)),
        "available_tags": sorted(collection("product").distinct("tags", VISIBLE)),
    }


@router.get("/products")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    is_vegetarian: Optional[bool] = None,
    spicy_level: Optional[str] = None,
    tags: Optional[str] = Query(None, description="Comma separated"),
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
):
    filter_q = dict(VISIBLE)
    if search:
        filter_q.update(_search_clause(search))
    if category:
        filter_q["category"] = category
    if is_vegetarian is not None:
        filter_q["is_vegetarian"] = is_vegetarian
    if spicy_level:
        filter_q["spicy_level"] = spicy_level
    if tags:
        filter_q["tags"] = {"$in": [t.strip() for t in tags.split(",") if t.strip()]}
    if min_price is not None or max_price is not None:
        price_filter = {}
        if min_price is not None:
            price_filter["$gte"] = min_price
        if max_price is not None:
            price_filter["$lte"] = max_price
        filter_q["discounted_price"] = price_filter
    if sort_by == "price":
        sort_by = "discounted_price"
    elif sort_by == "popularity":
        sort_by = "total_sales"

    result = paginate("product", filter_q, page, limit, sort_by, sort_order)
    return ok("Products retrieved successfully", {
        "products": result["items"],
        "pagination": result["pagination"],
        "filters": _available_filters(),
    })


@router.get("/products/featured")
def featured_products(limit: int = Query(8, ge=1, le=50)):
    # flagged products first, then anything added recently
    since = utcnow() - timedelta(days=NEW_ARRIVAL_DAYS)
    query = {**VISIBLE, "$or": [{"featured": True}, {"created_at": {"$gte": since}}]}
    items = get_documents("product", query, limit=limit, sort=[("featured", -1), ("total_sales", -1), ("created_at", -1)])
    return ok("Featured products retrieved successfully", {"products": items})


@router.get("/products/search")
def search_products(q: str = "", limit: int = Query(10, ge=1, le=50)):
    if not q.strip():
        raise HTTPException(status_code=400, detail="Search query is required")
    items = get_documents("product", {**VISIBLE, **_search_clause(q)}, limit=limit, sort=[("total_sales", -1)])
    suggestions = collection("product").find({**VISIBLE, "name": search_regex(q)}, {"name": 1}).limit(5)
    return ok("Search results retrieved successfully", {
        "products": items,
        "suggestions": [s["name"] for s in suggestions],
        "query": q,
    })


@router.get("/products/{product_id}")
def get_product(product_id: str):
    product = find_raw("product", product_id)
    if not product or not product.get("is_active", True):
        raise HTTPException(status_code=404, detail="Product not found")
    data = serialize_doc(product)
    category = find_raw("category", product.get("category"))
    if category:
        data["category_detail"] = {
            "_id": str(category["_id"]),
            "name": category["name"],
            "slug": category.get("slug"),
            "description": category.get("description"),
        }
    related = get_documents(
        "product",
        {**VISIBLE, "category": product.get("category"), "_id": {"$ne": product["_id"]}},
        limit=6,
    )
    return ok("Product retrieved successfully", {"product": data, "related_products": related})
