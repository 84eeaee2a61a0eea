import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

import email_service
import roles
from auth import require_permission
from database import collection, delete_document, paginate, utcnow
from http_utils import csv_response, ok, search_regex
from schemas import NewsletterSend

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def list_subscribers(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    source: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    user: dict = Depends(require_permission(roles.MANAGE_MARKETING)),
):
    query = {}
    if search:
        query["$or"] = [{"email": search_regex(search)}, {"name": search_regex(search)}]
    if is_active is not None:
        query["is_active"] = is_active
    if source:
        query["source"] = source
    result = paginate("newsletter", query, page, limit, sort_by, sort_order)
    return ok("Subscribers retrieved successfully", {"subscribers": result["items"], "pagination": result["pagination"]})


@router.get("/stats")
def newsletter_stats(user: dict = Depends(require_permission(roles.MANAGE_MARKETING))):
    subscribers = collection("newsletter")
    since = utcnow() - timedelta(days=30)
    by_source = subscribers.aggregate([
        {"$match": {"is_active": True}},
        {"$group": {"_id": "$source", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ])
    return ok("Newsletter statistics retrieved successfully", {
        "total_subscribers": subscribers.count_documents({}),
        "active_subscribers": subscribers.count_documents({"is_active": True}),
        "unsubscribed": subscribers.count_documents({"is_active": False}),
        "new_this_month": subscribers.count_documents({"created_at": {"$gte": since}}),
        "by_source": [{"source": row["_id"], "count": row["count"]} for row in by_source],
    })


@router.get("/export")
def export_subscribers(
    is_active: Optional[bool] = None,
    user: dict = Depends(require_permission(roles.MANAGE_MARKETING)),
):
    query = {} if is_active is None else {"is_active": is_active}
    rows = []
    for sub in collection("newsletter").find(query).sort([("created_at", -1)]):
        created = sub.get("created_at")
        rows.append([
            sub["email"],
            sub.get("name") or "",
            "Active" if sub.get("is_active") else "Unsubscribed",
            sub.get("source", ""),
            created.strftime("%Y-%m-%d") if created else "",
        ])
    logger.info("%s exported %s newsletter subscribers", user["email"], len(rows))
    return csv_response(
        f"newsletter-subscribers-{utcnow().strftime('%Y-%m-%d')}.csv",
        ["Email", "Name", "Status", "Source", "Subscribed At"],
        rows,
    )


@router.post("/send")
def send_newsletter(payload: NewsletterSend, user: dict = Depends(require_permission(roles.MANAGE_MARKETING))):
    recipients = [sub["email"] for sub in collection("newsletter").find({"is_active": True}, {"email": 1})]
    if not recipients:
        raise HTTPException(status_code=400, detail="No active subscribers found")
    result = email_service.send_newsletter(recipients, payload.subject, payload.content)
    logger.info("%s sent newsletter '%s': %s sent, %s failed", user["email"], payload.subject, result["sent"], result["failed"])
    return ok("Newsletter sent successfully", {
        "total_subscribers": len(recipients),
        "sent_count": result["sent"],
        "failed_count": result["failed"],
    })


@router.delete("/{subscriber_id}")
def delete_subscriber(subscriber_id: str, user: dict = Depends(require_permission(roles.MANAGE_MARKETING))):
    if not delete_document("newsletter", subscriber_id):
        raise HTTPException(status_code=404, detail="Subscriber not found")
    logger.info("%s deleted newsletter subscriber %s", user["email"], subscriber_id)
    return ok("Subscriber deleted successfully")
