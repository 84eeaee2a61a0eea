"""
Saved delivery addresses of the signed-in customer.

A user has at most one default address. The first address saved becomes the
default, and deleting the default promotes the most recent remaining one.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from auth import get_current_user
from database import collection, create_document, get_documents, serialize_doc, to_object_id, utcnow
from http_utils import ok
from schemas import Address, AddressCreate, AddressUpdate

logger = logging.getLogger(__name__)

router = APIRouter()

NEWEST_FIRST = [("is_default", -1), ("created_at", -1)]


def _load_own(address_id: str, user: dict) -> dict:
    oid = to_object_id(address_id)
    address = collection("address").find_one({"_id": oid, "user": str(user["_id"])}) if oid else None
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")
    return address


def _clear_default(user_id: str, keep=None):
    query = {"user": user_id, "is_default": True}
    if keep is not None:
        query["_id"] = {"$ne": keep}
    collection("address").update_many(query, {"$set": {"is_default": False, "updated_at": utcnow()}})


@router.get("")
def list_addresses(user: dict = Depends(get_current_user)):
    addresses = get_documents("address", {"user": str(user["_id"])}, sort=NEWEST_FIRST)
    return ok("Addresses retrieved successfully", {"addresses": addresses})


@router.get("/default")
def get_default_address(user: dict = Depends(get_current_user)):
    address = collection("address").find_one({"user": str(user["_id"]), "is_default": True})
    if not address:
        raise HTTPException(status_code=404, detail="No default address found")
    return ok("Default address retrieved successfully", {"address": serialize_doc(address)})


@router.post("", status_code=201)
def create_address(payload: AddressCreate, user: dict = Depends(get_current_user)):
    user_id = str(user["_id"])
    is_default = payload.is_default or collection("address").count_documents({"user": user_id}) == 0
    if is_default:
        _clear_default(user_id)
    address = Address(**payload.model_dump(exclude={"is_default"}), user=user_id, is_default=is_default)
    address_id = create_document("address", address)
    logger.info("%s saved address %s", user["email"], address_id)
    return ok("Address created successfully", {"address": serialize_doc(_load_own(address_id, user))})


@router.get("/{address_id}")
def get_address(address_id: str, user: dict = Depends(get_current_user)):
    return ok("Address retrieved successfully", {"address": serialize_doc(_load_own(address_id, user))})


@router.put("/{address_id}")
def update_address(address_id: str, payload: AddressUpdate, user: dict = Depends(get_current_user)):
    address = _load_own(address_id, user)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("is_default") is False and address.get("is_default"):
        raise HTTPException(status_code=400, detail="Set another address as default instead")
    if changes.get("is_default"):
        _clear_default(address["user"], keep=address["_id"])
    changes["updated_at"] = utcnow()
    collection("address").update_one({"_id": address["_id"]}, {"$set": changes})
    logger.info("%s updated address %s", user["email"], address_id)
    return ok("Address updated successfully", {"address": serialize_doc(_load_own(address_id, user))})


@router.put("/{address_id}/default")
def set_default_address(address_id: str, user: dict = Depends(get_current_user)):
    address = _load_own(address_id, user)
    _clear_default(address["user"], keep=address["_id"])
    collection("address").update_one({"_id": address["_id"]}, {"$set": {"is_default": True, "updated_at": utcnow()}})
    return ok("Default address updated successfully", {"address": serialize_doc(_load_own(address_id, user))})


@router.delete("/{address_id}")
def delete_address(address_id: str, user: dict = Depends(get_current_user)):
    address = _load_own(address_id, user)
    collection("address").delete_one({"_id": address["_id"]})
    if address.get("is_default"):
        successor = collection("address").find_one({"user": address["user"]}, sort=[("created_at", -1)])
        if successor:
            collection("address").update_one({"_id": successor["_id"]}, {"$set": {"is_default": True, "updated_at": utcnow()}})
    logger.info("%s deleted address %s", user["email"], address_id)
    return ok("Address deleted successfully")
