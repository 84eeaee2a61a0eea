import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from auth import clear_token_cookies, get_current_user, hash_password, public_user, verify_password
from database import as_utc, collection, find_raw, utcnow
from http_utils import ok
from schemas import ACTIVE_ORDER_STATUSES, PasswordChange, ProfileUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def get_profile(user: dict = Depends(get_current_user)):
    return ok("Profile retrieved successfully", {"user": public_user(user)})


@router.put("")
def update_profile(payload: ProfileUpdate, user: dict = Depends(get_current_user)):
    changes = payload.model_dump(exclude_unset=True)
    changes["updated_at"] = utcnow()
    collection("user").update_one({"_id": user["_id"]}, {"$set": changes})
    logger.info("%s updated their profile", user["email"])
    return ok("Profile updated successfully", {"user": public_user(find_raw("user", user["_id"]))})


@router.put("/password")
def change_password(payload: PasswordChange, user: dict = Depends(get_current_user)):
    if not verify_password(payload.current_password, user.get("password_hash")):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if payload.current_password == payload.new_password:
        raise HTTPException(status_code=400, detail="New password must be different from the current password")
    collection("user").update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": hash_password(payload.new_password), "updated_at": utcnow()}},
    )
    logger.info("%s changed their password", user["email"])
    return ok("Password changed successfully")


@router.get("/stats")
def profile_stats(user: dict = Depends(get_current_user)):
    user_id = str(user["_id"])
    orders = collection("order")
    totals = list(orders.aggregate([
        {"$match": {"user": user_id}},
        {"$group": {
            "_id": None,
            "total_orders": {"$sum": 1},
            "total_spent": {"$sum": "$total_price"},
            "average_order_value": {"$avg": "$total_price"},
        }},
    ]))
    favourites = orders.aggregate([
        {"$match": {"user": user_id}},
        {"$unwind": "$items"},
        {"$group": {"_id": "$items.menu", "name": {"$first": "$items.name"}, "quantity": {"$sum": "$items.quantity"}}},
        {"$sort": {"quantity": -1}},
        {"$limit": 5},
    ])
    last = orders.find_one({"user": user_id}, sort=[("created_at", -1)])
    summary = totals[0] if totals else {}
    return ok("User statistics retrieved successfully", {
        "total_orders": summary.get("total_orders", 0),
        "total_spent": round(summary.get("total_spent") or 0, 2),
        "average_order_value": round(summary.get("average_order_value") or 0, 2),
        "favorite_items": [{"menu": f["_id"], "name": f["name"], "quantity": f["quantity"]} for f in favourites],
        "last_order_status": last.get("status") if last else None,
        "last_order_date": as_utc(last["created_at"]).isoformat() if last else None,
    })


@router.delete("")
def delete_account(response: Response, user: dict = Depends(get_current_user)):
    active_orders = collection("order").count_documents({"user": str(user["_id"]), "status": {"$in": ACTIVE_ORDER_STATUSES}})
    if active_orders:
        raise HTTPException(status_code=400, detail="Cannot delete an account with active orders")
    now = utcnow()
    collection("user").update_one(
        {"_id": user["_id"]},
        {"$set": {"status": "deactivated", "deactivated_at": now, "deactivated_by": str(user["_id"]), "updated_at": now}},
    )
    clear_token_cookies(response)
    logger.info("%s deleted their account", user["email"])
    return ok("Account deleted successfully")
