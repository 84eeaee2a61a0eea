from routers.option_router import build_router
from schemas import Preparation, PreparationCreate, PreparationUpdate

router = build_router("preparation", Preparation, PreparationCreate, PreparationUpdate, sort_by="sort_order")
