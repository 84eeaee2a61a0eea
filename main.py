import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

import database
from config import settings
from http_utils import register_exception_handlers, security_headers_middleware
from routers import (
    admin_categories,
    admin_contacts,
    admin_dashboard,
    admin_menu,
    admin_newsletter,
    admin_orders,
    admin_preparations,
    admin_products,
    admin_reports,
    admin_spicy_levels,
    admin_users,
    auth_routes,
    guest,
    shop_addresses,
    shop_cart,
    shop_engagement,
    shop_menu,
    shop_orders,
    shop_products,
    shop_profile,
)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is None:
        logger.warning("DATABASE_URL / DATABASE_NAME not set; running without a database")
    else:
        database.ensure_indexes()
    yield


app = FastAPI(title=settings.PROJECT_NAME, version="1.0.0", lifespan=lifespan)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)

app.add_middleware(SlowAPIMiddleware)
app.middleware("http")(security_headers_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-API-Key"],
    expose_headers=["X-Total-Count", "X-Page-Count"],
)

app.include_router(auth_routes.router, prefix="/api/auth", tags=["auth"])
app.include_router(admin_categories.router, prefix="/api/admin/categories", tags=["admin: categories"])
app.include_router(admin_menu.router, prefix="/api/admin/menu", tags=["admin: menu"])
app.include_router(admin_products.router, prefix="/api/admin/products", tags=["admin: products"])
app.include_router(admin_orders.router, prefix="/api/admin/orders", tags=["admin: orders"])
app.include_router(admin_users.router, prefix="/api/admin/users", tags=["admin: users"])
app.include_router(admin_newsletter.router, prefix="/api/admin/newsletter", tags=["admin: newsletter"])
app.include_router(admin_contacts.router, prefix="/api/admin/contacts", tags=["admin: contacts"])
app.include_router(admin_dashboard.router, prefix="/api/admin/dashboard", tags=["admin: dashboard"])
app.include_router(admin_reports.router, prefix="/api/admin/reports", tags=["admin: reports"])
app.include_router(admin_spicy_levels.router, prefix="/api/admin/spicy-levels", tags=["admin: spicy levels"])
app.include_router(admin_preparations.router, prefix="/api/admin/preparations", tags=["admin: preparations"])
app.include_router(guest.router, prefix="/api/shop/guest", tags=["shop: guest"])
app.include_router(shop_menu.router, prefix="/api/shop", tags=["shop: menu"])
app.include_router(shop_products.router, prefix="/api/shop", tags=["shop: products"])
app.include_router(shop_cart.router, prefix="/api/shop/cart", tags=["shop: cart"])
app.include_router(shop_orders.router, prefix="/api/shop/orders", tags=["shop: orders"])
app.include_router(shop_addresses.router, prefix="/api/shop/addresses", tags=["shop: addresses"])
app.include_router(shop_profile.router, prefix="/api/shop/profile", tags=["shop: profile"])
app.include_router(shop_engagement.router, prefix="/api/shop", tags=["shop: newsletter & contact"])


# ===================== Public Endpoints =====================
@app.get("/")
def root():
    return {"message": f"{settings.PROJECT_NAME} running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            response["collections"] = database.db.list_collection_names()
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    response["database_url"] = "✅ Set" if settings.DATABASE_URL else "❌ Not Set"
    response["database_name"] = "✅ Set" if settings.DATABASE_NAME else "❌ Not Set"
    return response


# ===================== Schema Export for Docs =====================
@app.get("/schema")
def get_schema():
    return {
        "collections": [
            "user",
            "category",
            "menuitem",
            "product",
            "cart",
            "order",
            "newsletter",
            "contact",
            "spicylevel",
            "preparation",
            "address"
        ],
        "notes": "Each collection model in schemas.py maps to a MongoDB collection (lowercase)."
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
