import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response

import guest_service
import roles
from auth import (
    REFRESH_COOKIE,
    clear_token_cookies,
    decode_refresh_token,
    generate_tokens,
    get_current_user,
    get_optional_user,
    hash_password,
    load_active_user,
    public_user,
    set_token_cookies,
    verify_password,
)
from database import collection, create_document, find_raw, utcnow
from http_utils import ok
from schemas import LoginRequest, RefreshRequest, RegisterRequest, User

logger = logging.getLogger(__name__)

router = APIRouter()


def _active_account(email: str):
    return collection("user").find_one({"email": email.lower(), "status": "active", "role": {"$ne": roles.GUEST}})


def _issue(response: Response, user: dict, message: str) -> dict:
    tokens = generate_tokens(user)
    set_token_cookies(response, tokens)
    return ok(message, {"user": public_user(user), **tokens})


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, response: Response):
    email = payload.email.lower()
    if _active_account(email):
        raise HTTPException(status_code=400, detail="User with this email already exists")

    password_hash = hash_password(payload.password)
    user = None
    if payload.session_id:
        user = guest_service.convert_guest_to_customer(
            payload.session_id, payload.name, email, password_hash, payload.phone_number
        )
    if user is None:
        user_id = create_document("user", User(
            name=payload.name,
            email=email,
            password_hash=password_hash,
            phone_number=payload.phone_number,
            role=roles.CUSTOMER,
        ))
        user = find_raw("user", user_id)
    logger.info("Registered user %s", email)
    return _issue(response, user, "User registered successfully")


@router.post("/login")
def login(payload: LoginRequest, response: Response):
    user = _active_account(payload.email)
    if not user or not verify_password(payload.password, user.get("password_hash")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    now = utcnow()
    collection("user").update_one({"_id": user["_id"]}, {"$set": {"last_login": now}})
    user["last_login"] = now
    logger.info("User %s logged in", user["email"])
    return _issue(response, user, "Login successful")


@router.post("/refresh")
def refresh(request: Request, response: Response, payload: Optional[RefreshRequest] = None):
    token = (payload.refresh_token if payload else None) or request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Refresh token required")
    claims = decode_refresh_token(token)
    user = load_active_user(claims["sub"])
    return _issue(response, user, "Token refreshed successfully")


@router.post("/logout")
def logout(response: Response, user: dict = Depends(get_optional_user)):
    clear_token_cookies(response)
    if user:
        logger.info("User %s logged out", user["email"])
    return ok("Logout successful")


@router.get("/profile")
def profile(user: dict = Depends(get_current_user)):
    return ok("Profile retrieved successfully", {"user": public_user(user)})
