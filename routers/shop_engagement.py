import logging

from fastapi import APIRouter, HTTPException

from database import collection, create_document, utcnow
from http_utils import ok
from schemas import Contact, ContactCreate, Newsletter, NewsletterSubscribe, NewsletterUnsubscribe

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/newsletter/subscribe", status_code=201)
def subscribe(payload: NewsletterSubscribe):
    email = payload.email.lower()
    existing = collection("newsletter").find_one({"email": email})
    if existing and existing.get("is_active"):
        raise HTTPException(status_code=400, detail="Email is already subscribed")
    if existing:
        collection("newsletter").update_one({"_id": existing["_id"]}, {
            "$set": {"is_active": True, "updated_at": utcnow(), "name": payload.name or existing.get("name")},
            "$unset": {"unsubscribed_at": "", "unsubscribe_reason": ""},
        })
        return ok("Welcome back! Your subscription has been reactivated")

    subscriber = Newsletter(email=email, name=payload.name, source=payload.source)
    if payload.preferences:
        subscriber.preferences.update(payload.preferences)
    create_document("newsletter", subscriber)
    logger.info("New newsletter subscriber %s", email)
    return ok("Subscribed to newsletter successfully")


@router.post("/newsletter/unsubscribe")
def unsubscribe(payload: NewsletterUnsubscribe):
    result = collection("newsletter").update_one(
        {"email": payload.email.lower(), "is_active": True},
        {"$set": {
            "is_active": False,
            "unsubscribed_at": utcnow(),
            "unsubscribe_reason": payload.reason,
            "updated_at": utcnow(),
        }},
    )
    if not result.matched_count:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return ok("Unsubscribed from newsletter successfully")


@router.post("/contact", status_code=201)
def submit_contact(payload: ContactCreate):
    contact = Contact(**payload.model_dump())
    if contact.type == "complaint":
        contact.priority = "high"
    contact_id = create_document("contact", contact)
    logger.info("Contact message %s received from %s", contact_id, payload.email)
    return ok("Thank you for contacting us. We will get back to you soon.", {"_id": contact_id})
