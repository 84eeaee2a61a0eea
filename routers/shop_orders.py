from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

import order_service
from auth import get_current_user
from database import find_raw, paginate, serialize_doc
from http_utils import ok
from schemas import CheckoutRequest

router = APIRouter()


@router.post("", status_code=201)
def create_order(payload: CheckoutRequest, user: dict = Depends(get_current_user)):
    order = order_service.place_order(user, payload)
    return ok("Order placed successfully", {"order": order, "order_number": order["order_number"]})


@router.get("")
def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    status: Optional[str] = None,
    user: dict = Depends(get_current_user),
):
    query = {"user": str(user["_id"])}
    if status:
        query["status"] = status
    result = paginate("order", query, page, limit)
    return ok("Orders retrieved successfully", {"orders": result["items"], "pagination": result["pagination"]})


@router.get("/{order_id}")
def get_my_order(order_id: str, user: dict = Depends(get_current_user)):
    order = find_raw("order", order_id)
    if not order or order.get("user") != str(user["_id"]):
        raise HTTPException(status_code=404, detail="Order not found")
    return ok("Order retrieved successfully", {"order": serialize_doc(order)})
