"""
Authentication helpers: password hashing, JWT access/refresh tokens, and the
FastAPI dependencies that resolve the calling user.

Tokens are read from the `Authorization: Bearer` header first and the
`accessToken` cookie second.
"""
import logging
from datetime import timedelta
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, Response
from passlib.context import CryptContext

import roles
from config import settings
from database import collection, serialize_doc, to_object_id, utcnow

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_access_token(user: dict) -> str:
    now = utcnow()
    payload = {
        "sub": str(user["_id"]),
        "email": user.get("email"),
        "role": user.get("role"),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(user: dict) -> str:
    now = utcnow()
    payload = {
        "sub": str(user["_id"]),
        "type": "refresh",
        "iat": now,
        "exp": now + timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS),
    }
    return jwt.encode(payload, settings.JWT_REFRESH_SECRET, algorithm=settings.JWT_ALGORITHM)


def generate_tokens(user: dict) -> dict:
    return {
        "access_token": create_access_token(user),
        "refresh_token": create_refresh_token(user),
    }


def _decode(token: str, secret: str, expected_type: str) -> dict:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("type") != expected_type:
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


def decode_access_token(token: str) -> dict:
    return _decode(token, settings.JWT_SECRET, "access")


def decode_refresh_token(token: str) -> dict:
    return _decode(token, settings.JWT_REFRESH_SECRET, "refresh")


def set_token_cookies(response: Response, tokens: dict):
    cookie_args = {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "none" if settings.is_production else "lax",
    }
    response.set_cookie(ACCESS_COOKIE, tokens["access_token"], max_age=settings.JWT_EXPIRE_MINUTES * 60, **cookie_args)
    response.set_cookie(REFRESH_COOKIE, tokens["refresh_token"], max_age=settings.JWT_REFRESH_EXPIRE_DAYS * 86400, **cookie_args)


def clear_token_cookies(response: Response):
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE)


def public_user(user: dict) -> dict:
    """Serialize a user document without credentials."""
    data = serialize_doc(user)
    data.pop("password_hash", None)
    return data


def extract_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[7:].strip() or None
    return request.cookies.get(ACCESS_COOKIE)


def load_active_user(user_id: str) -> dict:
    oid = to_object_id(user_id)
    user = collection("user").find_one({"_id": oid}) if oid else None
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if user.get("status") != "active":
        raise HTTPException(status_code=401, detail="Account is deactivated")
    return user


# ===================== Dependencies =====================

def get_current_user(request: Request) -> dict:
    token = extract_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Access token required")
    payload = decode_access_token(token)
    return load_active_user(payload["sub"])


def get_optional_user(request: Request) -> Optional[dict]:
    token = extract_token(request)
    if not token:
        return None
    try:
        payload = decode_access_token(token)
        return load_active_user(payload["sub"])
    except HTTPException:
        return None


def require_permission(permission: str):
    def dependency(user: dict = Depends(get_current_user)) -> dict:
        if not roles.has_permission(user.get("role"), permission):
            raise HTTPException(status_code=403, detail="Insufficient permissions for this action")
        return user
    return dependency
