from datetime import timedelta

from fastapi import APIRouter, Depends, Query

import roles
from auth import require_permission
from database import collection, utcnow
from http_utils import ok
from report_service import PERIODS

router = APIRouter()


def _first(pipeline_result, key, default=0):
    rows = list(pipeline_result)
    return rows[0][key] if rows else default


@router.get("/analytics")
def dashboard_analytics(
    period: str = Query("30d", pattern="^(7d|30d|90d|1y)$"),
    user: dict = Depends(require_permission(roles.VIEW_ANALYTICS)),
):
    since = utcnow() - timedelta(days=PERIODS[period])
    orders = collection("order")
    in_period = {"created_at": {"$gte": since}}
    paid_in_period = {**in_period, "payment_status": "paid"}
    catalogue_scope = roles.get_role_based_filter(user["role"])

    overview = {
        "total_orders": orders.count_documents(in_period),
        "total_revenue": round(_first(orders.aggregate([
            {"$match": paid_in_period},
            {"$group": {"_id": None, "total": {"$sum": "$total_price"}}},
        ]), "total"), 2),
        "average_order_value": round(_first(orders.aggregate([
            {"$match": paid_in_period},
            {"$group": {"_id": None, "avg": {"$avg": "$total_price"}}},
        ]), "avg") or 0, 2),
        "pending_orders": orders.count_documents({"status": "pending"}),
        "completed_orders": orders.count_documents({**in_period, "status": {"$in": ["completed", "delivered"]}}),
        "new_users": collection("user").count_documents({**in_period, "role": {"$ne": roles.GUEST}}),
        "total_menu_items": collection("menuitem").count_documents({**catalogue_scope, "is_active": True}),
        "total_categories": collection("category").count_documents({**catalogue_scope, "is_active": True}),
        "low_stock_items": collection("menuitem").count_documents({**catalogue_scope, "quantity": {"$lte": 5}}),
    }

    daily_revenue = orders.aggregate([
        {"$match": paid_in_period},
        {"$group": {
            "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$created_at"}},
            "revenue": {"$sum": "$total_price"},
            "order_count": {"$sum": 1},
        }},
        {"$sort": {"_id": 1}},
    ])
    top_items = orders.aggregate([
        {"$match": {**in_period, "status": {"$ne": "cancelled"}}},
        {"$unwind": "$items"},
        {"$group": {
            "_id": "$items.menu",
            "name": {"$first": "$items.name"},
            "total_quantity": {"$sum": "$items.quantity"},
            "total_revenue": {"$sum": "$items.item_total"},
        }},
        {"$sort": {"total_quantity": -1}},
        {"$limit": 5},
    ])
    status_distribution = orders.aggregate([
        {"$match": in_period},
        {"$group": {"_id": "$status", "count": {"$sum": 1}}},
    ])

    return ok("Dashboard analytics retrieved successfully", {
        "period": period,
        "overview": overview,
        "daily_revenue": [{"date": d["_id"], "revenue": round(d["revenue"], 2), "order_count": d["order_count"]} for d in daily_revenue],
        "top_menu_items": [
            {"menu": t["_id"], "name": t["name"], "total_quantity": t["total_quantity"], "total_revenue": round(t["total_revenue"], 2)}
            for t in top_items
        ],
        "order_status_distribution": {row["_id"]: row["count"] for row in status_distribution},
    })
