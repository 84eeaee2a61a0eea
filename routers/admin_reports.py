import logging
import math
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

import report_service
import roles
from auth import require_permission
from database import collection, utcnow
from http_utils import csv_response, ok

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/data")
def report_data(
    type: str,
    period: str = Query("30d", pattern="^(7d|30d|90d|1y)$"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category: str = Query("all", pattern="^(all|veg|non-veg)$"),
    search: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    user: dict = Depends(require_permission(roles.VIEW_ANALYTICS)),
):
    collection_name, query = report_service.build_query(type, user, period, start_date, end_date, category, search, status)
    total = collection(collection_name).count_documents(query)
    items = report_service.fetch_rows(type, collection_name, query, skip=(page - 1) * limit, limit=limit)
    return ok("Report data retrieved successfully", {
        "items": items,
        "pagination": {
            "current_page": page,
            "total_pages": math.ceil(total / limit) if total else 0,
            "total_items": total,
            "items_per_page": limit,
        },
        "filters": {
            "type": type,
            "period": period,
            "category": category,
            "search": search,
            "status": status,
            "start_date": start_date.isoformat() if start_date else None,
            "end_date": end_date.isoformat() if end_date else None,
        },
    })


@router.get("/export")
def export_report(
    type: str,
    format: str = Query("csv", pattern="^(csv|json)$"),
    period: str = Query("30d", pattern="^(7d|30d|90d|1y)$"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category: str = Query("all", pattern="^(all|veg|non-veg)$"),
    search: Optional[str] = None,
    status: Optional[str] = None,
    user: dict = Depends(require_permission(roles.EXPORT_REPORTS)),
):
    collection_name, query = report_service.build_query(type, user, period, start_date, end_date, category, search, status)
    rows = report_service.fetch_rows(type, collection_name, query)
    logger.info("%s exported %s %s report rows as %s", user["email"], len(rows), type, format)

    if format == "json":
        return ok("Report exported successfully", {"type": type, "generated_at": utcnow().isoformat(), "items": rows})
    headers, table = report_service.export_table(type, rows)
    return csv_response(f"{type}-report-{utcnow().strftime('%Y-%m-%d')}.csv", headers, table)
