"""
Order placement and status transitions.

An order is an immutable snapshot of the cart lines at checkout time plus
the computed totals. Stock is decremented with `$inc` after the order is
stored; checkout does not re-check stock, so two concurrent checkouts can
over-sell the last units of an item.
"""
import logging
from datetime import timedelta
from typing import Optional

from pymongo.errors import DuplicateKeyError

import email_service
import pricing
from cart_service import get_or_create_cart, save_cart
from config import settings
from database import as_utc, collection, create_document, find_raw, serialize_doc, to_object_id, utcnow
from schemas import CheckoutRequest, Order

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 5
STATUS_TIMESTAMP_FIELDS = {
    "confirmed": "confirmed_at",
    "preparing": "preparing_at",
    "ready": "ready_at",
    "out_for_delivery": "out_for_delivery_at",
    "delivered": "delivered_at",
    "completed": "completed_at",
    "cancelled": "cancelled_at",
}


def generate_order_number() -> str:
    """Next `PEP-YYYYMMDD-NNNN` number for today."""
    prefix = f"{settings.ORDER_PREFIX}-{utcnow().strftime('%Y%m%d')}-"
    last = collection("order").find_one(
        {"order_number": {"$regex": f"^{prefix}"}},
        sort=[("order_number", -1)],
    )
    sequence = 1
    if last:
        try:
            sequence = int(last["order_number"].rsplit("-", 1)[1]) + 1
        except (IndexError, ValueError):
            sequence = 1
    return f"{prefix}{sequence:04d}"


def _snapshot(line: dict) -> dict:
    return {
        "menu": line["menu"],
        "name": line.get("name"),
        "quantity": line["quantity"],
        "size": line.get("size"),
        "addons": line.get("addons", []),
        "special_instructions": line.get("special_instructions"),
        "price": line["price_at_time"],
        "item_total": line["item_total"],
    }


def _insert_order(order: Order) -> str:
    # the unique index on order_number arbitrates concurrent checkouts
    for _ in range(ORDER_NUMBER_ATTEMPTS):
        try:
            return create_document("order", order)
        except DuplicateKeyError:
            order.order_number = generate_order_number()
    raise DuplicateKeyError("Could not allocate a unique order number")


def place_order(user: dict, payload: CheckoutRequest, is_guest: bool = False) -> dict:
    user_id = str(user["_id"])
    cart = get_or_create_cart(user_id)
    if not cart.get("items"):
        raise pricing.CartError("Cart is empty")

    totals = pricing.cart_totals(cart["items"], cart.get("coupon"))
    checkout = pricing.checkout_totals(totals["subtotal"], totals["discount"], payload.order_type)
    minutes = pricing.estimated_delivery_minutes(
        [(find_raw("menuitem", line["menu"]) or {}).get("preparation_time") for line in cart["items"]]
    )
    now = utcnow()

    order = Order(
        order_number=generate_order_number(),
        user=user_id,
        customer=payload.customer.model_dump(),
        items=[_snapshot(line) for line in cart["items"]],
        order_type=payload.order_type,
        timing=payload.timing,
        scheduled_date=payload.scheduled_date.isoformat() if payload.timing == "scheduled" else None,
        scheduled_time=payload.scheduled_time if payload.timing == "scheduled" else None,
        delivery_address=payload.delivery_address.model_dump() if payload.order_type == "delivery" else None,
        payment_method=payload.payment_method,
        coupon_code=(cart.get("coupon") or {}).get("code") if checkout["discount"] else None,
        estimated_delivery_time=now + timedelta(minutes=minutes),
        special_instructions=payload.special_instructions,
        is_guest_order=is_guest,
        status_history=[{
            "status": "pending",
            "payment_status": "pending",
            "updated_by": user_id,
            "notes": "Order placed",
            "timestamp": now,
        }],
        **checkout,
    )
    order_id = _insert_order(order)

    for line in cart["items"]:
        oid = to_object_id(line["menu"])
        if oid:
            collection("menuitem").update_one(
                {"_id": oid},
                {"$inc": {"quantity": -int(line["quantity"]), "total_sales": int(line["quantity"])}},
            )

    cart["items"] = []
    cart["coupon"] = None
    save_cart(cart)

    stored = find_raw("order", order_id)
    logger.info("Order %s placed by %s (%s) total %.2f", order.order_number, user_id, "guest" if is_guest else "customer", order.total_price)
    email_service.send_order_confirmation(stored)
    return serialize_doc(stored)


def update_status(order: dict, actor_id: str, status: Optional[str] = None, payment_status: Optional[str] = None, notes: Optional[str] = None) -> dict:
    """Apply a status/payment transition and append it to the history."""
    now = utcnow()
    changes = {}
    if status is not None:
        changes["status"] = status
        if status in STATUS_TIMESTAMP_FIELDS:
            changes[STATUS_TIMESTAMP_FIELDS[status]] = now
    if payment_status is not None:
        changes["payment_status"] = payment_status
    changes["updated_at"] = now
    entry = {
        "status": status or order.get("status"),
        "payment_status": payment_status or order.get("payment_status"),
        "updated_by": actor_id,
        "notes": notes or "",
        "timestamp": now,
    }
    collection("order").update_one({"_id": order["_id"]}, {"$set": changes, "$push": {"status_history": entry}})
    logger.info("Order %s status -> %s / payment %s by %s", order.get("order_number"), entry["status"], entry["payment_status"], actor_id)
    return serialize_doc(collection("order").find_one({"_id": order["_id"]}))


def tracking_info(order: dict) -> dict:
    eta = as_utc(order.get("estimated_delivery_time"))
    remaining = 0
    if eta is not None:
        seconds = (eta - utcnow()).total_seconds()
        remaining = max(0, int(-(-seconds // 60)))
    return {
        "order_number": order["order_number"],
        "status": order.get("status"),
        "payment_status": order.get("payment_status"),
        "estimated_delivery_time": eta,
        "time_remaining_minutes": remaining,
        "order_date": order.get("created_at"),
    }
