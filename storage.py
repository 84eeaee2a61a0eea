"""
Image storage on Cloudinary.

Uploads raise `ImageUploadError` so the owning create/update can abort with
a 400. Deletes used while cascading a resource removal go through
`delete_images_quietly`, which logs failures and carries on.
"""
import base64
import logging
from typing import Iterable, List

import cloudinary
import cloudinary.uploader

from config import settings

logger = logging.getLogger(__name__)

cloudinary.config(
    cloud_name=settings.CLOUDINARY_CLOUD_NAME,
    api_key=settings.CLOUDINARY_API_KEY,
    api_secret=settings.CLOUDINARY_API_SECRET,
    secure=True,
)

TRANSFORMATION = [
    {"width": 800, "height": 600, "crop": "limit"},
    {"quality": "auto"},
    {"fetch_format": "auto"},
]


class ImageUploadError(Exception):
    pass


class ImageDeleteError(Exception):
    pass


def upload_image(content: bytes, folder: str) -> dict:
    data_uri = "data:image/jpeg;base64," + base64.b64encode(content).decode("ascii")
    try:
        result = cloudinary.uploader.upload(
            data_uri,
            folder=folder,
            resource_type="auto",
            transformation=TRANSFORMATION,
        )
    except Exception as exc:
        logger.error("Cloudinary upload to %s failed: %s", folder, exc)
        raise ImageUploadError("Failed to upload image") from exc
    return {
        "public_id": result["public_id"],
        "url": result["secure_url"],
        "width": result.get("width"),
        "height": result.get("height"),
    }


def upload_images(contents: Iterable[bytes], folder: str) -> List[dict]:
    uploaded = []
    for content in contents:
        uploaded.append(upload_image(content, folder))
    return uploaded


def delete_image(public_id: str):
    try:
        return cloudinary.uploader.destroy(public_id)
    except Exception as exc:
        raise ImageDeleteError(f"Failed to delete image {public_id}") from exc


def delete_images_quietly(images: Iterable[dict]) -> int:
    """Best-effort removal; returns how many deletes failed."""
    failures = 0
    for image in images or []:
        public_id = (image or {}).get("public_id")
        if not public_id:
            continue
        try:
            delete_image(public_id)
        except ImageDeleteError as exc:
            failures += 1
            logger.warning("%s; continuing", exc)
    return failures
