"""
Cart persistence shared by the customer cart and the guest cart.

Carts are keyed by the owning user's id (one cart per user). Pricing rules
live in `pricing`; this module loads the menu items they need, persists the
result and shapes the summary returned to clients.
"""
import logging
from typing import List

from fastapi import HTTPException
from pymongo import ReturnDocument

import pricing
from database import collection, find_raw, serialize_doc, to_object_id, utcnow
from schemas import Cart, CartItemAdd

logger = logging.getLogger(__name__)


def get_or_create_cart(user_id: str) -> dict:
    now = utcnow()
    return collection("cart").find_one_and_update(
        {"user": user_id},
        {"$setOnInsert": {**Cart(user=user_id).model_dump(), "created_at": now, "updated_at": now}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def save_cart(cart: dict) -> dict:
    cart["updated_at"] = utcnow()
    collection("cart").update_one(
        {"_id": cart["_id"]},
        {"$set": {"items": cart["items"], "coupon": cart.get("coupon"), "updated_at": cart["updated_at"]}},
    )
    return cart


def _load_sellable_item(menu_item_id: str) -> dict:
    menu_item = find_raw("menuitem", menu_item_id)
    if not menu_item:
        raise HTTPException(status_code=404, detail="Menu item not found")
    if not menu_item.get("is_active", True) or not menu_item.get("is_available", True):
        raise HTTPException(status_code=400, detail="Menu item is not available")
    return menu_item


def _resolve_addons(menu_item: dict, addon_ids: List[str]) -> List[dict]:
    available = {str(a.get("id")): a for a in menu_item.get("addons", [])}
    chosen = []
    for addon_id in addon_ids:
        addon = available.get(str(addon_id))
        if addon is None:
            raise HTTPException(status_code=400, detail="Selected add-on is not available for this item")
        chosen.append({"name": addon["name"], "price": float(addon["price"])})
    return chosen


def _preparation_times(items: List[dict]) -> List[int]:
    ids = [oid for oid in (to_object_id(line.get("menu")) for line in items) if oid]
    if not ids:
        return []
    cursor = collection("menuitem").find({"_id": {"$in": ids}}, {"preparation_time": 1})
    return [doc.get("preparation_time") for doc in cursor]


def cart_summary(cart: dict) -> dict:
    data = serialize_doc(cart)
    data.update(pricing.cart_totals(cart.get("items", []), cart.get("coupon")))
    data["estimated_delivery_time"] = pricing.estimated_delivery_minutes(_preparation_times(cart.get("items", [])))
    return data


def add_item(user_id: str, payload: CartItemAdd) -> dict:
    menu_item = _load_sellable_item(payload.menu_item_id)
    if payload.size not in menu_item.get("sizes", ["Medium"]):
        raise HTTPException(status_code=400, detail=f"Size {payload.size} is not offered for this item")
    addons = _resolve_addons(menu_item, payload.addons)

    cart = get_or_create_cart(user_id)
    pricing.add_line_item(
        cart["items"],
        menu_item,
        payload.quantity,
        payload.size,
        addons,
        payload.special_instructions,
    )
    save_cart(cart)
    logger.info("User %s added %s x %s to cart", user_id, payload.quantity, menu_item.get("name"))
    return cart_summary(cart)


def update_item(user_id: str, item_id: str, quantity: int) -> dict:
    cart = get_or_create_cart(user_id)
    index = pricing.find_line(cart["items"], item_id)
    if index == -1:
        raise pricing.CartItemNotFound("Item not found in cart")
    menu_item = find_raw("menuitem", cart["items"][index]["menu"])
    stock = int(menu_item.get("quantity", 0)) if menu_item else 0
    pricing.update_line_quantity(cart["items"], item_id, quantity, stock)
    save_cart(cart)
    return cart_summary(cart)


def remove_item(user_id: str, item_id: str) -> dict:
    cart = get_or_create_cart(user_id)
    pricing.remove_line(cart["items"], item_id)
    save_cart(cart)
    return cart_summary(cart)


def clear_cart(user_id: str) -> dict:
    cart = get_or_create_cart(user_id)
    cart["items"] = []
    cart["coupon"] = None
    save_cart(cart)
    return cart_summary(cart)


def apply_coupon(user_id: str, code: str) -> dict:
    cart = get_or_create_cart(user_id)
    if not cart["items"]:
        raise pricing.CartError("Cart is empty")
    coupon = pricing.get_coupon(code)
    if coupon is None:
        raise pricing.CartError("Invalid coupon code")
    subtotal = pricing.cart_totals(cart["items"])["subtotal"]
    if subtotal < coupon["min_order"]:
        raise pricing.CartError(f"Minimum order amount of ${coupon['min_order']:.2f} required for this coupon")
    cart["coupon"] = coupon
    save_cart(cart)
    logger.info("User %s applied coupon %s", user_id, coupon["code"])
    return cart_summary(cart)


def remove_coupon(user_id: str) -> dict:
    cart = get_or_create_cart(user_id)
    cart["coupon"] = None
    save_cart(cart)
    return cart_summary(cart)