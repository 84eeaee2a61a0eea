"""
Guest sessions.

A guest is a temporary `user` document with role `guest`, keyed by a
generated session token. It owns a cart and orders exactly like a customer
and can later be converted into a customer at registration.
"""
import logging
import secrets
import time
from datetime import timedelta
from typing import Optional


import roles
from config import settings
from database import collection, create_document, utcnow
from schemas import User

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    return f"guest_{int(time.time() * 1000)}_{secrets.token_hex(16)}"


def get_guest_by_session(session_id: str) -> Optional[dict]:
    return collection("user").find_one({"role": roles.GUEST, "session_id": session_id})


def get_or_create_guest_user(session_id: str, customer: Optional[dict] = None) -> dict:
    """Find the guest behind `session_id`, creating it on first use.

    When `customer` info is supplied (checkout) it overwrites the
    placeholder name, email and phone.
    """
    customer = customer or {}
    guest = get_guest_by_session(session_id)
    if guest is None:
        stamp = int(time.time() * 1000)
        user = User(
            name=customer.get("name") or f"Guest_{stamp}",
            email=(customer.get("email") or f"guest_{stamp}@temp.com").lower(),
            phone_number=customer.get("phone"),
            role=roles.GUEST,
            session_id=session_id,
        )
        user_id = create_document("user", user)
        logger.info("Created guest user %s for session %s", user_id, session_id)
        return collection("user").find_one({"role": roles.GUEST, "session_id": session_id})

    changes = {}
    if customer.get("name"):
        changes["name"] = customer["name"]
    if customer.get("email"):
        changes["email"] = customer["email"].lower()
    if customer.get("phone"):
        changes["phone_number"] = customer["phone"]
    # every touch refreshes updated_at, which drives the idle cleanup
    changes["updated_at"] = utcnow()
    collection("user").update_one({"_id": guest["_id"]}, {"$set": changes})
    guest.update(changes)
    return guest


def delete_guest_session(session_id: str) -> bool:
    guest = get_guest_by_session(session_id)
    if not guest:
        return False
    collection("cart").delete_one({"user": str(guest["_id"])})
    collection("user").delete_one({"_id": guest["_id"]})
    logger.info("Destroyed guest session %s", session_id)
    return True


def cleanup_old_guest_users(days: Optional[int] = None) -> dict:
    """Delete guests (and their carts) idle for longer than `days`. Orders are kept."""
    days = settings.GUEST_SESSION_TTL_DAYS if days is None else days
    cutoff = utcnow() - timedelta(days=days)
    ids = [doc["_id"] for doc in collection("user").find({"role": roles.GUEST, "updated_at": {"$lt": cutoff}}, {"_id": 1})]
    if not ids:
        return {"deleted_users": 0, "deleted_carts": 0}
    carts = collection("cart").delete_many({"user": {"$in": [str(i) for i in ids]}})
    users = collection("user").delete_many({"_id": {"$in": ids}})
    logger.info("Guest cleanup removed %s users and %s carts", users.deleted_count, carts.deleted_count)
    return {"deleted_users": users.deleted_count, "deleted_carts": carts.deleted_count}


def get_guest_stats() -> dict:
    now = utcnow()
    users = collection("user")
    return {
        "total_guest_users": users.count_documents({"role": roles.GUEST}),
        "active_today": users.count_documents({"role": roles.GUEST, "updated_at": {"$gte": now - timedelta(days=1)}}),
        "active_this_week": users.count_documents({"role": roles.GUEST, "updated_at": {"$gte": now - timedelta(days=7)}}),
    }


def convert_guest_to_customer(session_id: str, name: str, email: str, password_hash: str, phone_number: Optional[str] = None) -> Optional[dict]:
    """Turn a guest into a registered customer, keeping its cart and orders."""
    guest = get_guest_by_session(session_id)
    if not guest:
        return None
    changes = {
        "name": name,
        "email": email.lower(),
        "password_hash": password_hash,
        "role": roles.CUSTOMER,
        "status": "active",
        "updated_at": utcnow(),
    }
    if phone_number:
        changes["phone_number"] = phone_number
    collection("user").update_one({"_id": guest["_id"]}, {"$set": changes, "$unset": {"session_id": ""}})
    logger.info("Converted guest %s into customer %s", guest["_id"], email)
    return collection("user").find_one({"_id": guest["_id"]})
