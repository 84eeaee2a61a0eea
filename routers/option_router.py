"""
Admin endpoints for the per-parent-category options (spicy levels and
preparations).

An option belongs to one parent category and takes its vegetarian side
from it, so partition admins only see and edit the options of their side.
"""
import logging
from typing import Optional, Type

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

import roles
from auth import require_permission
from catalog_service import OPTION_KINDS, ensure_allowed, load_or_404, resolve_parent
from database import collection, create_document, find_raw, get_documents, paginate, serialize_doc, utcnow
from http_utils import ok, search_regex

logger = logging.getLogger(__name__)


def build_router(
    collection_name: str,
    model: Type[BaseModel],
    create_model: Type[BaseModel],
    update_model: Type[BaseModel],
    sort_by: str,
) -> APIRouter:
    router = APIRouter()
    noun, items_key = OPTION_KINDS[collection_name]
    label = noun.capitalize()
    plural = noun + "s"
    ordering = [(sort_by, 1)] + [(field, 1) for field in ("sort_order", "name") if field != sort_by]

    def ensure_unique_name(name: str, parent_id: str, exclude_id=None):
        query = {
            "name": {"$regex": f"^{search_regex(name)['$regex']}$", "$options": "i"},
            "parent_category": parent_id,
        }
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if collection(collection_name).find_one(query):
            raise HTTPException(status_code=400, detail=f"{label} with this name already exists for this category")

    @router.get("")
    def list_options(
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=100),
        search: Optional[str] = None,
        parent_category: Optional[str] = None,
        is_active: Optional[bool] = None,
        user: dict = Depends(require_permission(roles.VIEW_CATALOG)),
    ):
        query = dict(roles.get_role_based_filter(user["role"]))
        if search:
            query["name"] = search_regex(search)
        if parent_category:
            query["parent_category"] = parent_category
        if is_active is not None:
            query["is_active"] = is_active
        result = paginate(collection_name, query, page, limit, sort_by, "asc")
        return ok(f"{label}s retrieved successfully", {items_key: result["items"], "pagination": result["pagination"]})

    @router.get("/by-category/{parent_id}")
    def options_by_category(parent_id: str, user: dict = Depends(require_permission(roles.VIEW_CATALOG))):
        parent = load_or_404("category", parent_id, "category")
        ensure_allowed(user, "view", bool(parent.get("is_vegetarian")), plural)
        items = get_documents(collection_name, {"parent_category": parent_id, "is_active": True}, sort=ordering)
        return ok(f"{label}s retrieved successfully", {items_key: items})

    @router.get("/{option_id}")
    def get_option(option_id: str, user: dict = Depends(require_permission(roles.VIEW_CATALOG))):
        option = load_or_404(collection_name, option_id, noun)
        ensure_allowed(user, "view", option.get("is_vegetarian"), plural)
        return ok(f"{label} retrieved successfully", serialize_doc(option))

    @router.post("", status_code=201)
    def create_option(payload: create_model, user: dict = Depends(require_permission(roles.MANAGE_CATALOG))):
        parent = resolve_parent(payload.parent_category)
        is_vegetarian = bool(parent.get("is_vegetarian"))
        ensure_allowed(user, "create", is_vegetarian, plural)
        ensure_unique_name(payload.name, payload.parent_category)

        option = model(**payload.model_dump(), is_vegetarian=is_vegetarian, created_by=str(user["_id"]))
        option_id = create_document(collection_name, option)
        logger.info("%s created %s %s (%s)", user["email"], noun, option_id, payload.name)
        return ok(f"{label} created successfully", serialize_doc(find_raw(collection_name, option_id)))

    @router.put("/{option_id}")
    def update_option(option_id: str, payload: update_model, user: dict = Depends(require_permission(roles.MANAGE_CATALOG))):
        option = load_or_404(collection_name, option_id, noun)
        ensure_allowed(user, "update", option.get("is_vegetarian"), plural)

        changes = payload.model_dump(exclude_unset=True)
        parent_id = changes.get("parent_category", option["parent_category"])
        if parent_id != option["parent_category"]:
            parent = resolve_parent(parent_id)
            changes["is_vegetarian"] = bool(parent.get("is_vegetarian"))
            ensure_allowed(user, "update", changes["is_vegetarian"], plural)
        name = changes.get("name", option["name"])
        if name != option["name"] or parent_id != option["parent_category"]:
            ensure_unique_name(name, parent_id, exclude_id=option["_id"])

        changes["updated_at"] = utcnow()
        collection(collection_name).update_one({"_id": option["_id"]}, {"$set": changes})
        logger.info("%s updated %s %s", user["email"], noun, option_id)
        return ok(f"{label} updated successfully", serialize_doc(find_raw(collection_name, option_id)))

    @router.delete("/{option_id}")
    def delete_option(option_id: str, user: dict = Depends(require_permission(roles.MANAGE_CATALOG))):
        option = load_or_404(collection_name, option_id, noun)
        ensure_allowed(user, "delete", option.get("is_vegetarian"), plural)
        collection(collection_name).delete_one({"_id": option["_id"]})
        logger.info("%s deleted %s %s", user["email"], noun, option_id)
        return ok(f"{label} deleted successfully")

    return router
