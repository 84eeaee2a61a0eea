"""
Cart pricing.

Line items are plain dicts, the same shape that is stored on the cart
document. A line's `price_at_time` and `item_total` are fixed when the line
is added or its quantity changes; later catalogue price changes never touch
an existing cart.
"""

import json
from typing import List, Optional

from bson import ObjectId

from config import settings

MIN_LINE_QUANTITY = 1
MAX_LINE_QUANTITY = 10
DEFAULT_DELIVERY_MINUTES = 30
DELIVERY_BUFFER_MINUTES = 15
DEFAULT_PREPARATION_MINUTES = 20

COUPONS = {
    "SAVE10": {"type": "percentage", "value": 10, "min_order": 30, "max_discount": 50},
    "FLAT20": {"type": "fixed", "value": 20, "min_order": 200, "max_discount": 20},
    "WELCOME15": {"type": "percentage", "value": 15, "min_order": 150, "max_discount": 75},
}


class CartError(ValueError):
    """A cart operation broke a business rule (rendered as 400)."""


class CartItemNotFound(CartError):
    pass


def get_coupon(code: Optional[str]) -> Optional[dict]:
    if not code:
        return None
    coupon = COUPONS.get(code.strip().upper())
    if coupon is None:
        return None
    return {"code": code.strip().upper(), **coupon}


def addon_total(addons: Optional[list]) -> float:
    return sum(float(a.get("price", 0)) for a in (addons or []))


def compute_item_total(price_at_time: float, addons: Optional[list], quantity: int) -> float:
    return round((float(price_at_time) + addon_total(addons)) * int(quantity), 2)


def addon_signature(addons: Optional[list]) -> str:
    """Order-independent key for an addon set."""
    normalized = sorted((a.get("name", ""), float(a.get("price", 0))) for a in (addons or []))
    return json.dumps(normalized)


def find_matching_line(items: List[dict], menu_id, size: str, addons: Optional[list]) -> int:
    signature = addon_signature(addons)
    for index, line in enumerate(items):
        if (
            str(line.get("menu")) == str(menu_id)
            and line.get("size") == size
            and addon_signature(line.get("addons")) == signature
        ):
            return index
    return -1


def _check_quantity(quantity: int):
    if quantity < MIN_LINE_QUANTITY:
        raise CartError(f"Quantity must be at least {MIN_LINE_QUANTITY}")
    if quantity > MAX_LINE_QUANTITY:
        raise CartError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}")


def unit_price(menu_item: dict) -> float:
    """Selling price of a catalogue item: the discounted price, else the MRP."""
    return float(menu_item.get("discounted_price") or menu_item.get("mrp") or 0)


def add_line_item(items: List[dict], menu_item: dict, quantity: int, size: str, addons: Optional[list] = None, special_instructions: Optional[str] = None) -> dict:
    """Add `quantity` of `menu_item` to `items` in place and return the touched line.

    A line with the same item, size and addon set is merged by bumping its
    quantity. The combined quantity is capped by the item's live stock.
    """
    addons = list(addons or [])
    stock = int(menu_item.get("quantity", 0))
    index = find_matching_line(items, menu_item["_id"], size, addons)

    if index > -1:
        line = items[index]
        new_quantity = int(line["quantity"]) + int(quantity)
        if new_quantity > stock:
            raise CartError(f"Cannot add more items. Maximum available: {stock}")
        _check_quantity(new_quantity)
        line["quantity"] = new_quantity
        line["item_total"] = compute_item_total(line["price_at_time"], line.get("addons"), new_quantity)
        return line

    if int(quantity) > stock:
        raise CartError(f"Only {stock} items available in stock")
    _check_quantity(int(quantity))
    price = unit_price(menu_item)
    line = {
        "id": str(ObjectId()),
        "menu": str(menu_item["_id"]),
        "name": menu_item.get("name"),
        "quantity": int(quantity),
        "size": size,
        "addons": addons,
        "special_instructions": special_instructions,
        "price_at_time": price,
        "item_total": compute_item_total(price, addons, quantity),
    }
    items.append(line)
    return line


def find_line(items: List[dict], item_id) -> int:
    for index, line in enumerate(items):
        if str(line.get("id")) == str(item_id):
            return index
    return -1


def update_line_quantity(items: List[dict], item_id, quantity: int, stock: int) -> Optional[dict]:
    """Set a line's quantity, re-validating stock. Zero or less removes the line."""
    index = find_line(items, item_id)
    if index == -1:
        raise CartItemNotFound("Item not found in cart")
    if quantity <= 0:
        items.pop(index)
        return None
    if quantity > stock:
        raise CartError(f"Only {stock} items available in stock")
    _check_quantity(quantity)
    line = items[index]
    line["quantity"] = int(quantity)
    line["item_total"] = compute_item_total(line["price_at_time"], line.get("addons"), quantity)
    return line


def remove_line(items: List[dict], item_id) -> dict:
    index = find_line(items, item_id)
    if index == -1:
        raise CartItemNotFound("Item not found in cart")
    return items.pop(index)


def compute_discount(subtotal: float, coupon: Optional[dict]) -> float:
    if not coupon or subtotal < coupon.get("min_order", 0):
        return 0.0
    if coupon["type"] == "percentage":
        discount = subtotal * coupon["value"] / 100
    else:
        discount = float(coupon["value"])
    max_discount = coupon.get("max_discount")
    if max_discount is not None:
        discount = min(discount, max_discount)
    return round(discount, 2)


def cart_totals(items: List[dict], coupon: Optional[dict] = None) -> dict:
    subtotal = round(sum(float(line.get("item_total", 0)) for line in items), 2)
    discount = compute_discount(subtotal, coupon)
    return {
        "subtotal": subtotal,
        "discount": discount,
        "total": round(max(0.0, subtotal - discount), 2),
        "total_items": sum(int(line.get("quantity", 0)) for line in items),
    }


def estimated_delivery_minutes(preparation_times: List[int]) -> int:
    if not preparation_times:
        return DEFAULT_DELIVERY_MINUTES
    return max(t or DEFAULT_PREPARATION_MINUTES for t in preparation_times) + DELIVERY_BUFFER_MINUTES


def checkout_totals(subtotal: float, discount: float, order_type: str = "delivery") -> dict:
    """Order totals: free delivery above the threshold, tax on the subtotal."""
    if order_type == "delivery":
        delivery_fee = 0.0 if subtotal >= settings.FREE_DELIVERY_THRESHOLD else settings.DELIVERY_FEE
    else:
        delivery_fee = 0.0
    tax = round(subtotal * settings.TAX_RATE, 2)
    total = max(0.0, subtotal + delivery_fee + tax - discount)
    return {
        "subtotal": round(subtotal, 2),
        "delivery_fee": round(delivery_fee, 2),
        "tax": tax,
        "discount": round(discount, 2),
        "total_price": round(total, 2),
    }
