import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

import guest_service
import roles
from auth import public_user, require_permission
from database import collection, find_raw, paginate, utcnow
from http_utils import date_range_filter, ok, search_regex
from schemas import ACTIVE_ORDER_STATUSES, UserRoleUpdate, UserStatusUpdate, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _order_stats(user_id: str) -> dict:
    spent = list(collection("order").aggregate([
        {"$match": {"user": user_id, "payment_status": "paid"}},
        {"$group": {"_id": None, "total": {"$sum": "$total_price"}}},
    ]))
    return {
        "order_count": collection("order").count_documents({"user": user_id}),
        "total_spent": round(spent[0]["total"], 2) if spent else 0,
    }


def _with_stats(user: dict) -> dict:
    data = public_user(user)
    data["stats"] = _order_stats(data["_id"])
    return data


def _load_target(user_id: str) -> dict:
    target = find_raw("user", user_id)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    return target


def _ensure_email_free(email: str, exclude_id):
    clash = collection("user").find_one({
        "email": email.lower(),
        "status": "active",
        "role": {"$ne": roles.GUEST},
        "_id": {"$ne": exclude_id},
    })
    if clash:
        raise HTTPException(status_code=409, detail="Email is already taken")


def _guard_super_admin(target: dict, actor: dict):
    if target.get("role") == roles.SUPER_ADMIN and actor.get("role") != roles.SUPER_ADMIN:
        raise HTTPException(status_code=403, detail="Only super-admin can modify super-admin accounts")


@router.get("")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    user: dict = Depends(require_permission(roles.VIEW_ALL_USERS)),
):
    query = {}
    if search:
        pattern = search_regex(search)
        query["$or"] = [{"name": pattern}, {"email": pattern}, {"phone_number": pattern}]
    if role:
        query["role"] = role
    if status:
        query["status"] = status
    result = paginate("user", query, page, limit, sort_by, sort_order)
    users = [_with_stats(u) for u in result["items"]]
    return ok("Users retrieved successfully", {"users": users, "pagination": result["pagination"]})


@router.get("/stats")
def user_stats(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user: dict = Depends(require_permission(roles.VIEW_ALL_USERS)),
):
    match = date_range_filter(start_date, end_date)
    overview = list(collection("user").aggregate([
        {"$match": match},
        {"$group": {
            "_id": None,
            "total_users": {"$sum": 1},
            "active_users": {"$sum": {"$cond": [{"$eq": ["$status", "active"]}, 1, 0]}},
            "deactivated_users": {"$sum": {"$cond": [{"$eq": ["$status", "deactivated"]}, 1, 0]}},
            "customers": {"$sum": {"$cond": [{"$eq": ["$role", roles.CUSTOMER]}, 1, 0]}},
            "guests": {"$sum": {"$cond": [{"$eq": ["$role", roles.GUEST]}, 1, 0]}},
            "admins": {"$sum": {"$cond": [{"$in": ["$role", roles.ADMIN_ROLES]}, 1, 0]}},
        }},
    ]))
    summary = overview[0] if overview else {
        "total_users": 0, "active_users": 0, "deactivated_users": 0,
        "customers": 0, "guests": 0, "admins": 0,
    }
    summary.pop("_id", None)

    registration_trend = list(collection("user").aggregate([
        {"$match": {"created_at": {"$gte": utcnow() - timedelta(days=30)}, "role": {"$ne": roles.GUEST}}},
        {"$group": {"_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$created_at"}}, "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ]))
    top_customers = list(collection("order").aggregate([
        {"$match": {"payment_status": "paid"}},
        {"$group": {"_id": "$user", "total_spent": {"$sum": "$total_price"}, "order_count": {"$sum": 1}}},
        {"$sort": {"total_spent": -1}},
        {"$limit": 5},
    ]))
    return ok("User statistics retrieved successfully", {
        "overview": summary,
        "guests": guest_service.get_guest_stats(),
        "registration_trend": [{"date": r["_id"], "count": r["count"]} for r in registration_trend],
        "top_customers": [
            {"user": c["_id"], "total_spent": round(c["total_spent"], 2), "order_count": c["order_count"]}
            for c in top_customers
        ],
    })


@router.post("/cleanup-guests")
def cleanup_guests(days: Optional[int] = Query(None, ge=1), user: dict = Depends(require_permission(roles.UPDATE_USER_ROLES))):
    result = guest_service.cleanup_old_guest_users(days)
    return ok("Guest users cleaned up successfully", result)


@router.get("/roles")
def list_roles(user: dict = Depends(require_permission(roles.VIEW_ALL_USERS))):
    return ok("Roles retrieved successfully", {"roles": roles.get_all_roles()})


@router.get("/{user_id}")
def get_user(user_id: str, user: dict = Depends(require_permission(roles.VIEW_ALL_USERS))):
    target = _load_target(user_id)
    data = _with_stats(target)
    recent = collection("order").find({"user": data["_id"]}).sort([("created_at", -1)]).limit(5)
    data["recent_orders"] = [
        {"_id": str(o["_id"]), "order_number": o["order_number"], "status": o.get("status"), "total_price": o.get("total_price")}
        for o in recent
    ]
    return ok("User retrieved successfully", {"user": data})


@router.put("/{user_id}")
def update_user(user_id: str, payload: UserUpdate, user: dict = Depends(require_permission(roles.UPDATE_USER_ROLES))):
    target = _load_target(user_id)
    _guard_super_admin(target, user)
    changes = payload.model_dump(exclude_unset=True)
    if payload.email is not None:
        changes["email"] = payload.email.lower()
        if changes["email"] != target.get("email") and target.get("status") == "active":
            _ensure_email_free(changes["email"], target["_id"])
    changes["updated_at"] = utcnow()
    collection("user").update_one({"_id": target["_id"]}, {"$set": changes})
    logger.info("%s updated user %s", user["email"], user_id)
    return ok("User updated successfully", {"user": public_user(find_raw("user", user_id))})


@router.put("/{user_id}/status")
def update_user_status(user_id: str, payload: UserStatusUpdate, user: dict = Depends(require_permission(roles.UPDATE_USER_ROLES))):
    target = _load_target(user_id)
    _guard_super_admin(target, user)
    if str(target["_id"]) == str(user["_id"]) and payload.status != "active":
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    changes = {"status": payload.status, "updated_at": utcnow()}
    if payload.status == "active":
        if target.get("role") != roles.GUEST:
            _ensure_email_free(target["email"], target["_id"])
        update = {"$set": changes, "$unset": {"deactivated_at": "", "deactivated_by": ""}}
    else:
        changes.update(deactivated_at=utcnow(), deactivated_by=str(user["_id"]))
        update = {"$set": changes}
    collection("user").update_one({"_id": target["_id"]}, update)
    logger.info("%s set user %s status to %s", user["email"], user_id, payload.status)
    verb = "activated" if payload.status == "active" else "deactivated"
    return ok(f"User {verb} successfully", {"user": public_user(find_raw("user", user_id))})


@router.put("/{user_id}/role")
def update_user_role(user_id: str, payload: UserRoleUpdate, user: dict = Depends(require_permission(roles.UPDATE_USER_ROLES))):
    target = _load_target(user_id)
    _guard_super_admin(target, user)
    if target.get("role") == roles.GUEST:
        raise HTTPException(status_code=400, detail="Guest accounts cannot be assigned a role")
    collection("user").update_one({"_id": target["_id"]}, {"$set": {"role": payload.role, "updated_at": utcnow()}})
    logger.info("%s changed role of user %s from %s to %s", user["email"], user_id, target.get("role"), payload.role)
    return ok("User role updated successfully", {"user": public_user(find_raw("user", user_id))})


@router.delete("/{user_id}")
def delete_user(user_id: str, user: dict = Depends(require_permission(roles.UPDATE_USER_ROLES))):
    if user_id == str(user["_id"]):
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    target = _load_target(user_id)
    _guard_super_admin(target, user)

    active_orders = collection("order").count_documents({"user": user_id, "status": {"$in": ACTIVE_ORDER_STATUSES}})
    if active_orders:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete user with active orders. Please complete or cancel all active orders first.",
        )

    # soft delete: the account keeps its email and simply stops authenticating
    collection("user").update_one(
        {"_id": target["_id"]},
        {"$set": {"status": "deactivated", "deactivated_at": utcnow(), "deactivated_by": str(user["_id"]), "updated_at": utcnow()}},
    )
    logger.info("%s deactivated user %s", user["email"], user_id)
    return ok("User deleted successfully")
