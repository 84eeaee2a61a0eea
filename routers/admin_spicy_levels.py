from routers.option_router import build_router
from schemas import SpicyLevelCreate, SpicyLevelUpdate, Spicylevel

router = build_router("spicylevel", Spicylevel, SpicyLevelCreate, SpicyLevelUpdate, sort_by="level")
