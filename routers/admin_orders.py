import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

import order_service
import roles
from auth import require_permission
from database import collection, find_raw, paginate, serialize_doc, utcnow
from http_utils import csv_response, date_range_filter, ok, search_regex
from schemas import OrderStatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter()

EXPORT_HEADERS = [
    "Order Number", "Customer Name", "Customer Email", "Phone", "Customer Type",
    "Status", "Payment Status", "Order Type", "Total Amount", "Items",
    "Order Date", "Delivery Address",
]


def _with_customer_type(order: dict) -> dict:
    order["customer_type"] = "guest" if order.get("is_guest_order") else "registered"
    return order


@router.get("")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    order_type: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    user: dict = Depends(require_permission(roles.VIEW_ALL_ORDERS)),
):
    query = date_range_filter(start_date, end_date)
    if search:
        pattern = search_regex(search)
        query["$or"] = [
            {"order_number": pattern},
            {"customer.name": pattern},
            {"customer.email": pattern},
        ]
    if status:
        query["status"] = status
    if payment_status:
        query["payment_status"] = payment_status
    if order_type:
        query["order_type"] = order_type

    result = paginate("order", query, page, limit, sort_by, sort_order)
    orders = [_with_customer_type(o) for o in result["items"]]
    return ok("Orders retrieved successfully", {"orders": orders, "pagination": result["pagination"]})


@router.get("/stats")
def order_stats(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user: dict = Depends(require_permission(roles.VIEW_ANALYTICS)),
):
    match = date_range_filter(start_date, end_date)
    overview = list(collection("order").aggregate([
        {"$match": match},
        {"$group": {
            "_id": None,
            "total_orders": {"$sum": 1},
            "total_revenue": {"$sum": "$total_price"},
            "average_order_value": {"$avg": "$total_price"},
            "pending_orders": {"$sum": {"$cond": [{"$eq": ["$status", "pending"]}, 1, 0]}},
            "confirmed_orders": {"$sum": {"$cond": [{"$eq": ["$status", "confirmed"]}, 1, 0]}},
            "preparing_orders": {"$sum": {"$cond": [{"$eq": ["$status", "preparing"]}, 1, 0]}},
            "ready_orders": {"$sum": {"$cond": [{"$eq": ["$status", "ready"]}, 1, 0]}},
            "completed_orders": {"$sum": {"$cond": [{"$in": ["$status", ["completed", "delivered"]]}, 1, 0]}},
            "cancelled_orders": {"$sum": {"$cond": [{"$eq": ["$status", "cancelled"]}, 1, 0]}},
            "paid_orders": {"$sum": {"$cond": [{"$eq": ["$payment_status", "paid"]}, 1, 0]}},
            "pending_payments": {"$sum": {"$cond": [{"$eq": ["$payment_status", "pending"]}, 1, 0]}},
            "guest_orders": {"$sum": {"$cond": [{"$eq": ["$is_guest_order", True]}, 1, 0]}},
        }},
    ]))
    summary = overview[0] if overview else {
        "total_orders": 0, "total_revenue": 0, "average_order_value": 0,
        "pending_orders": 0, "confirmed_orders": 0, "preparing_orders": 0,
        "ready_orders": 0, "completed_orders": 0, "cancelled_orders": 0,
        "paid_orders": 0, "pending_payments": 0, "guest_orders": 0,
    }
    summary.pop("_id", None)

    daily_revenue = list(collection("order").aggregate([
        {"$match": {"created_at": {"$gte": utcnow() - timedelta(days=7)}, "payment_status": "paid"}},
        {"$group": {
            "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$created_at"}},
            "revenue": {"$sum": "$total_price"},
            "order_count": {"$sum": 1},
        }},
        {"$sort": {"_id": 1}},
    ]))

    top_items = list(collection("order").aggregate([
        {"$match": {**match, "status": {"$ne": "cancelled"}}},
        {"$unwind": "$items"},
        {"$group": {
            "_id": "$items.menu",
            "name": {"$first": "$items.name"},
            "total_quantity": {"$sum": "$items.quantity"},
            "total_revenue": {"$sum": "$items.item_total"},
        }},
        {"$sort": {"total_quantity": -1}},
        {"$limit": 10},
    ]))

    return ok("Order statistics retrieved successfully", {
        "overview": summary,
        "daily_revenue": [{"date": d["_id"], "revenue": d["revenue"], "order_count": d["order_count"]} for d in daily_revenue],
        "top_items": [
            {"menu": t["_id"], "name": t["name"], "total_quantity": t["total_quantity"], "total_revenue": t["total_revenue"]}
            for t in top_items
        ],
    })


@router.get("/export")
def export_orders(
    format: str = Query("csv", pattern="^(csv|json)$"),
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user: dict = Depends(require_permission(roles.EXPORT_REPORTS)),
):
    query = date_range_filter(start_date, end_date)
    if status:
        query["status"] = status
    orders = list(collection("order").find(query).sort([("created_at", -1)]))
    logger.info("%s exported %s orders as %s", user["email"], len(orders), format)

    if format == "json":
        return ok("Orders exported successfully", {"orders": [serialize_doc(o) for o in orders]})

    rows = []
    for order in orders:
        customer = order.get("customer") or {}
        address = order.get("delivery_address") or {}
        created = order.get("created_at")
        rows.append([
            order.get("order_number"),
            customer.get("name", "N/A"),
            customer.get("email", "N/A"),
            customer.get("phone") or "N/A",
            "guest" if order.get("is_guest_order") else "registered",
            order.get("status"),
            order.get("payment_status"),
            order.get("order_type"),
            f"{order.get('total_price', 0):.2f}",
            "; ".join(f"{item.get('name', 'Unknown')} ({item.get('quantity')})" for item in order.get("items", [])),
            created.strftime("%Y-%m-%d") if created else "",
            f"{address['street']}, {address['city']}" if address else "N/A",
        ])
    return csv_response(f"orders-{utcnow().strftime('%Y-%m-%d')}.csv", EXPORT_HEADERS, rows)


@router.get("/{order_id}")
def get_order(order_id: str, user: dict = Depends(require_permission(roles.VIEW_ALL_ORDERS))):
    order = find_raw("order", order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return ok("Order retrieved successfully", {"order": _with_customer_type(serialize_doc(order))})


@router.put("/{order_id}/status")
def update_order_status(order_id: str, payload: OrderStatusUpdate, user: dict = Depends(require_permission(roles.UPDATE_ORDER_STATUS))):
    order = find_raw("order", order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    updated = order_service.update_status(order, str(user["_id"]), payload.status, payload.payment_status, payload.notes)
    return ok("Order status updated successfully", {"order": _with_customer_type(updated)})
