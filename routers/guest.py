"""
Guest shopping: session tokens, a cart keyed by session and checkout
without an account. Lookups only ever return orders placed as a guest.
"""
import re

from fastapi import APIRouter, HTTPException, Query

import cart_service
import guest_service
import order_service
from database import collection, paginate, serialize_doc
from http_utils import ok
from schemas import CartItemAdd, CartItemUpdate, GuestCheckoutRequest

router = APIRouter()

SESSION_PATTERN = re.compile(r"^guest_\d+_[0-9a-f]{32}$")


def _guest_for(session_id: str) -> dict:
    if not SESSION_PATTERN.match(session_id):
        raise HTTPException(status_code=400, detail="Invalid guest session")
    return guest_service.get_or_create_guest_user(session_id)


def _guest_order(order_number: str) -> dict:
    order = collection("order").find_one({"order_number": order_number, "is_guest_order": True})
    if not order:
        raise HTTPException(status_code=404, detail="Guest order not found")
    return order


# ===================== Session =====================

@router.post("/session", status_code=201)
def create_session():
    return ok("Guest session created successfully", {"session_id": guest_service.generate_session_id()})


@router.delete("/session/{session_id}")
def destroy_session(session_id: str):
    if not guest_service.delete_guest_session(session_id):
        raise HTTPException(status_code=404, detail="Guest session not found")
    return ok("Guest session destroyed successfully")


# ===================== Cart =====================

@router.get("/cart/{session_id}")
def get_guest_cart(session_id: str):
    guest = _guest_for(session_id)
    cart = cart_service.get_or_create_cart(str(guest["_id"]))
    return ok("Guest cart retrieved successfully", cart_service.cart_summary(cart))


@router.post("/cart/{session_id}/items")
def add_to_guest_cart(session_id: str, payload: CartItemAdd):
    guest = _guest_for(session_id)
    return ok("Item added to cart successfully", cart_service.add_item(str(guest["_id"]), payload))


@router.put("/cart/{session_id}/items/{item_id}")
def update_guest_cart_item(session_id: str, item_id: str, payload: CartItemUpdate):
    guest = _guest_for(session_id)
    return ok("Cart item updated successfully", cart_service.update_item(str(guest["_id"]), item_id, payload.quantity))


@router.delete("/cart/{session_id}/items/{item_id}")
def remove_from_guest_cart(session_id: str, item_id: str):
    guest = _guest_for(session_id)
    return ok("Item removed from cart successfully", cart_service.remove_item(str(guest["_id"]), item_id))


@router.delete("/cart/{session_id}")
def clear_guest_cart(session_id: str):
    guest = _guest_for(session_id)
    return ok("Cart cleared successfully", cart_service.clear_cart(str(guest["_id"])))


# ===================== Checkout & lookups =====================

@router.post("/checkout", status_code=201)
def guest_checkout(payload: GuestCheckoutRequest):
    if not SESSION_PATTERN.match(payload.session_id):
        raise HTTPException(status_code=400, detail="Invalid guest session")
    guest = guest_service.get_or_create_guest_user(payload.session_id, payload.customer.model_dump())
    order = order_service.place_order(guest, payload, is_guest=True)
    return ok("Guest order created successfully", {"order": order, "order_number": order["order_number"]})


@router.get("/orders/email/{email}")
def guest_orders_by_email(email: str, page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=50)):
    query = {
        "is_guest_order": True,
        "customer.email": {"$regex": f"^{re.escape(email.strip())}$", "$options": "i"},
    }
    result = paginate("order", query, page, limit)
    if not result["items"]:
        raise HTTPException(status_code=404, detail="No guest orders found for this email")
    return ok("Guest orders retrieved successfully", {"orders": result["items"], "pagination": result["pagination"]})


@router.get("/orders/session/{session_id}")
def guest_orders_by_session(session_id: str):
    guest = guest_service.get_guest_by_session(session_id)
    if not guest:
        raise HTTPException(status_code=404, detail="No guest orders found for this session")
    orders = collection("order").find({"user": str(guest["_id"]), "is_guest_order": True}).sort([("created_at", -1)])
    return ok("Guest orders retrieved successfully", {"orders": [serialize_doc(o) for o in orders]})


@router.get("/orders/{order_number}")
def get_guest_order(order_number: str):
    return ok("Guest order retrieved successfully", {"order": serialize_doc(_guest_order(order_number))})


@router.get("/orders/{order_number}/track")
def track_guest_order(order_number: str):
    info = order_service.tracking_info(_guest_order(order_number))
    return ok("Order tracking information retrieved successfully", info)
