"""
Shared HTTP plumbing: the response envelope, exception handlers, security
headers, query sanitization, multipart parsing and CSV export.
"""
import csv
import io
import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, List, Optional, Type, TypeVar

from fastapi import FastAPI, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from database import DatabaseUnavailable
from pricing import CartError, CartItemNotFound
from storage import ImageUploadError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
ALLOWED_IMAGE_EXTENSIONS = (".jpeg", ".jpg", ".png", ".gif", ".webp")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


def ok(message: str, data: Any = None) -> dict:
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return body


def _field_errors(errors: list) -> List[dict]:
    out = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        message = str(err.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        out.append({"field": ".".join(loc) or "body", "message": message})
    return out


# ===================== Exception handlers =====================

def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation failed", "errors": _field_errors(exc.errors())},
    )


def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    logger.info("Duplicate key on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=409, content={"success": False, "message": "Resource already exists"})


def cart_error_handler(request: Request, exc: CartError):
    status_code = 404 if isinstance(exc, CartItemNotFound) else 400
    return JSONResponse(status_code=status_code, content={"success": False, "message": str(exc)})


def image_upload_handler(request: Request, exc: ImageUploadError):
    return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})


def database_unavailable_handler(request: Request, exc: DatabaseUnavailable):
    logger.error("Database unavailable: %s", exc)
    return JSONResponse(status_code=503, content={"success": False, "message": "Database not available"})


def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "error": str(exc)},
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(CartError, cart_error_handler)
    app.add_exception_handler(ImageUploadError, image_upload_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(DatabaseUnavailable, database_unavailable_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers[header] = value
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
    return response


# ===================== Request helpers =====================

def search_regex(term: str) -> dict:
    """Case-insensitive literal match; user input never reaches the regex engine unescaped."""
    return {"$regex": re.escape(term.strip()), "$options": "i"}


def date_range_filter(start_date: Optional[date], end_date: Optional[date]) -> dict:
    """`created_at` bounds covering whole days, end date inclusive."""
    bounds = {}
    if start_date:
        bounds["$gte"] = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
    if end_date:
        bounds["$lt"] = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return {"created_at": bounds} if bounds else {}


def parse_form_model(model: Type[T], raw: Optional[str]) -> T:
    """Validate the JSON `data` field of a multipart form against `model`."""
    try:
        return model.model_validate_json(raw or "{}")
    except ValidationError as exc:
        raise RequestValidationError(exc.errors())


def read_images(files: Optional[List[UploadFile]]) -> List[bytes]:
    """Read and validate uploaded image files (type, size, count)."""
    files = [f for f in (files or []) if f is not None and f.filename]
    if len(files) > settings.MAX_IMAGES_PER_REQUEST:
        raise HTTPException(status_code=400, detail=f"At most {settings.MAX_IMAGES_PER_REQUEST} images are allowed")
    payloads = []
    for upload in files:
        name = upload.filename.lower()
        if upload.content_type not in ALLOWED_IMAGE_TYPES or not name.endswith(ALLOWED_IMAGE_EXTENSIONS):
            raise HTTPException(status_code=400, detail="Only image files (jpeg, jpg, png, gif, webp) are allowed")
        content = upload.file.read()
        if len(content) > settings.MAX_IMAGE_BYTES:
            raise HTTPException(status_code=400, detail="Image exceeds the 5MB size limit")
        payloads.append(content)
    return payloads


def csv_response(filename: str, headers: List[str], rows: List[list]) -> Response:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)
    writer.writerow(headers)
    writer.writerows(rows)
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
