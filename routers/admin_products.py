from routers.catalog_router import build_router

router = build_router("product", "products", "Product", with_stats=True)
