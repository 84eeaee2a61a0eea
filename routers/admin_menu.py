from routers.catalog_router import build_router

router = build_router("menuitem", "menu_items", "Menu item")
