from fastapi import APIRouter, Depends

import cart_service
from auth import get_current_user
from http_utils import ok
from schemas import CartItemAdd, CartItemUpdate, CouponApply

router = APIRouter()


@router.get("")
def get_cart(user: dict = Depends(get_current_user)):
    cart = cart_service.get_or_create_cart(str(user["_id"]))
    return ok("Cart retrieved successfully", cart_service.cart_summary(cart))


@router.post("/items")
def add_to_cart(payload: CartItemAdd, user: dict = Depends(get_current_user)):
    return ok("Item added to cart successfully", cart_service.add_item(str(user["_id"]), payload))


@router.put("/items/{item_id}")
def update_cart_item(item_id: str, payload: CartItemUpdate, user: dict = Depends(get_current_user)):
    return ok("Cart item updated successfully", cart_service.update_item(str(user["_id"]), item_id, payload.quantity))


@router.delete("/items/{item_id}")
def remove_cart_item(item_id: str, user: dict = Depends(get_current_user)):
    return ok("Item removed from cart successfully", cart_service.remove_item(str(user["_id"]), item_id))


@router.delete("")
def clear_cart(user: dict = Depends(get_current_user)):
    return ok("Cart cleared successfully", cart_service.clear_cart(str(user["_id"])))


@router.post("/coupon")
def apply_coupon(payload: CouponApply, user: dict = Depends(get_current_user)):
    return ok("Coupon applied successfully", cart_service.apply_coupon(str(user["_id"]), payload.coupon_code))


@router.delete("/coupon")
def remove_coupon(user: dict = Depends(get_current_user)):
    return ok("Coupon removed successfully", cart_service.remove_coupon(str(user["_id"])))
