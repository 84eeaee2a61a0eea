"""
Admin endpoints for the two catalogue collections (menu items and products).

Both share one set of rules, so the router is built per collection.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

import roles
import catalog_service
from auth import require_permission
from database import paginate, serialize_doc
from http_utils import ok, parse_form_model, read_images
from schemas import BulkStatusRequest, CatalogItemCreate, CatalogItemUpdate


def build_router(collection_name: str, items_key: str, label: str, with_stats: bool = False) -> APIRouter:
    router = APIRouter()
    noun, _ = catalog_service.CATALOG_KINDS[collection_name]

    @router.get("")
    def list_items(
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        search: Optional[str] = None,
        category: Optional[str] = None,
        is_vegetarian: Optional[bool] = None,
        is_active: Optional[bool] = None,
        featured: Optional[bool] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        user: dict = Depends(require_permission(roles.VIEW_CATALOG)),
    ):
        query = catalog_service.list_filter(user, search, is_vegetarian, is_active, category)
        if featured is not None:
            query["featured"] = featured
        result = paginate(collection_name, query, page, limit, sort_by, sort_order)
        return ok(f"{label}s retrieved successfully", {items_key: result["items"], "pagination": result["pagination"]})

    if with_stats:
        @router.get("/stats")
        def item_stats(user: dict = Depends(require_permission(roles.VIEW_CATALOG))):
            return ok(f"{label} statistics retrieved successfully", catalog_service.item_stats(collection_name, user))

    @router.put("/bulk-status")
    def bulk_update_status(payload: BulkStatusRequest, user: dict = Depends(require_permission(roles.MANAGE_CATALOG))):
        result = catalog_service.bulk_status(collection_name, user, payload.ids, payload.is_active)
        return ok(f"{result['modified_count']} {noun}s updated successfully", result)

    @router.get("/{item_id}")
    def get_item(item_id: str, user: dict = Depends(require_permission(roles.VIEW_CATALOG))):
        item = catalog_service.load_or_404(collection_name, item_id, noun)
        catalog_service.ensure_allowed(user, "view", item.get("is_vegetarian"), noun + "s")
        return ok(f"{label} retrieved successfully", serialize_doc(item))

    @router.post("", status_code=201)
    def create_item(
        data: str = Form(...),
        images: Optional[List[UploadFile]] = File(None),
        user: dict = Depends(require_permission(roles.MANAGE_CATALOG)),
    ):
        payload = parse_form_model(CatalogItemCreate, data)
        created = catalog_service.create_item(collection_name, user, payload, read_images(images))
        return ok(f"{label} created successfully", created)

    @router.put("/{item_id}")
    def update_item(
        item_id: str,
        data: str = Form("{}"),
        images: Optional[List[UploadFile]] = File(None),
        user: dict = Depends(require_permission(roles.MANAGE_CATALOG)),
    ):
        item = catalog_service.load_or_404(collection_name, item_id, noun)
        payload = parse_form_model(CatalogItemUpdate, data)
        updated = catalog_service.update_item(collection_name, item, user, payload, read_images(images))
        return ok(f"{label} updated successfully", updated)

    @router.delete("/{item_id}")
    def delete_item(item_id: str, user: dict = Depends(require_permission(roles.MANAGE_CATALOG))):
        item = catalog_service.load_or_404(collection_name, item_id, noun)
        catalog_service.delete_item(collection_name, item, user)
        return ok(f"{label} deleted successfully")

    @router.delete("/{item_id}/images/{image_id}")
    def delete_item_image(item_id: str, image_id: str, user: dict = Depends(require_permission(roles.MANAGE_CATALOG))):
        item = catalog_service.load_or_404(collection_name, item_id, noun)
        updated = catalog_service.delete_item_image(collection_name, item, user, image_id)
        return ok("Image deleted successfully", updated)

    return router
