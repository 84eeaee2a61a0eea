import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

import email_service
import roles
from auth import require_permission
from database import collection, delete_document, find_raw, paginate, serialize_doc, utcnow
from http_utils import ok, search_regex
from schemas import ContactReply, ContactUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _load(contact_id: str) -> dict:
    contact = find_raw("contact", contact_id)
    if not contact:
        raise HTTPException(status_code=404, detail="Contact message not found")
    return contact


@router.get("")
def list_contacts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[str] = None,
    type: Optional[str] = None,
    priority: Optional[str] = None,
    is_read: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    user: dict = Depends(require_permission(roles.MANAGE_MARKETING)),
):
    query = {}
    if search:
        pattern = search_regex(search)
        query["$or"] = [{"name": pattern}, {"email": pattern}, {"subject": pattern}, {"message": pattern}]
    if status:
        query["status"] = status
    if type:
        query["type"] = type
    if priority:
        query["priority"] = priority
    if is_read is not None:
        query["is_read"] = is_read
    result = paginate("contact", query, page, limit, sort_by, sort_order)
    return ok("Contact messages retrieved successfully", {"contacts": result["items"], "pagination": result["pagination"]})


@router.get("/stats")
def contact_stats(user: dict = Depends(require_permission(roles.MANAGE_MARKETING))):
    contacts = collection("contact")
    by_type = contacts.aggregate([
        {"$group": {"_id": "$type", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ])
    return ok("Contact statistics retrieved successfully", {
        "total": contacts.count_documents({}),
        "unread": contacts.count_documents({"is_read": False}),
        "new": contacts.count_documents({"status": "new"}),
        "in_progress": contacts.count_documents({"status": "in_progress"}),
        "resolved": contacts.count_documents({"status": "resolved"}),
        "this_week": contacts.count_documents({"created_at": {"$gte": utcnow() - timedelta(days=7)}}),
        "by_type": [{"type": row["_id"], "count": row["count"]} for row in by_type],
    })


@router.get("/{contact_id}")
def get_contact(contact_id: str, user: dict = Depends(require_permission(roles.MANAGE_MARKETING))):
    contact = _load(contact_id)
    if not contact.get("is_read"):
        collection("contact").update_one({"_id": contact["_id"]}, {"$set": {"is_read": True, "updated_at": utcnow()}})
        contact["is_read"] = True
    return ok("Contact message retrieved successfully", {"contact": serialize_doc(contact)})


@router.put("/{contact_id}")
def update_contact(contact_id: str, payload: ContactUpdate, user: dict = Depends(require_permission(roles.MANAGE_MARKETING))):
    contact = _load(contact_id)
    changes = payload.model_dump(exclude_none=True)
    changes["updated_at"] = utcnow()
    collection("contact").update_one({"_id": contact["_id"]}, {"$set": changes})
    logger.info("%s updated contact %s", user["email"], contact_id)
    return ok("Contact message updated successfully", {"contact": serialize_doc(find_raw("contact", contact_id))})


@router.post("/{contact_id}/reply")
def reply_to_contact(contact_id: str, payload: ContactReply, user: dict = Depends(require_permission(roles.MANAGE_MARKETING))):
    contact = _load(contact_id)
    sent = email_service.send_contact_reply(contact, payload.message)
    now = utcnow()
    collection("contact").update_one({"_id": contact["_id"]}, {"$set": {
        "status": "resolved",
        "is_read": True,
        "response": {"message": payload.message, "responded_by": str(user["_id"]), "responded_at": now},
        "updated_at": now,
    }})
    logger.info("%s replied to contact %s (email sent: %s)", user["email"], contact_id, sent)
    return ok("Reply sent successfully", {
        "contact": serialize_doc(find_raw("contact", contact_id)),
        "email_sent": sent,
    })


@router.delete("/{contact_id}")
def delete_contact(contact_id: str, user: dict = Depends(require_permission(roles.MANAGE_MARKETING))):
    if not delete_document("contact", contact_id):
        raise HTTPException(status_code=404, detail="Contact message not found")
    logger.info("%s deleted contact %s", user["email"], contact_id)
    return ok("Contact message deleted successfully")
