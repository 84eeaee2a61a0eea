"""
Tabular reports over orders, menu items and customers.

A report is a query plus a column layout. The same rows back the paged JSON
view and the CSV / JSON export. Partition admins only get rows from their
side of the vegetarian split; for orders that means orders containing at
least one of their menu items.
"""
from datetime import date, timedelta
from typing import List, Optional, Tuple

from fastapi import HTTPException

import roles
from database import as_utc, collection, to_object_id, utcnow
from http_utils import date_range_filter, search_regex

PERIODS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}

REPORT_TYPES = ("sales", "orders", "menu", "customers")

ORDER_COLUMNS = [
    ("order_number", "Order Number"),
    ("customer_name", "Customer"),
    ("customer_email", "Email"),
    ("status", "Status"),
    ("payment_status", "Payment Status"),
    ("item_count", "Items"),
    ("total_price", "Total"),
    ("date", "Date"),
]
COLUMNS = {
    "sales": ORDER_COLUMNS,
    "orders": ORDER_COLUMNS,
    "menu": [
        ("name", "Name"),
        ("category", "Category"),
        ("is_vegetarian", "Vegetarian"),
        ("mrp", "MRP"),
        ("discounted_price", "Price"),
        ("quantity", "Stock"),
        ("total_sales", "Sold"),
        ("status", "Status"),
        ("date", "Created"),
    ],
    "customers": [
        ("name", "Name"),
        ("email", "Email"),
        ("phone_number", "Phone"),
        ("status", "Status"),
        ("last_login", "Last Login"),
        ("date", "Joined"),
    ],
}


def _iso(value) -> Optional[str]:
    return as_utc(value).isoformat() if value else None


def report_side(user: dict, category: str = "all") -> Optional[bool]:
    """Vegetarian side the caller's report is limited to, or None for both."""
    scoped = roles.get_role_based_filter(user.get("role"))
    if scoped:
        return scoped["is_vegetarian"]
    return {"veg": True, "non-veg": False}.get(category)


def period_filter(period: str, start_date: Optional[date], end_date: Optional[date]) -> dict:
    if start_date or end_date:
        return date_range_filter(start_date, end_date)
    return {"created_at": {"$gte": utcnow() - timedelta(days=PERIODS.get(period, 30))}}


def build_query(
    report_type: str,
    user: dict,
    period: str = "30d",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category: str = "all",
    search: Optional[str] = None,
    status: Optional[str] = None,
) -> Tuple[str, dict]:
    """Return the collection and filter backing a report."""
    if report_type not in REPORT_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid report type. Supported types: {', '.join(REPORT_TYPES)}")
    side = report_side(user, category)

    if report_type in ("sales", "orders"):
        query = period_filter(period, start_date, end_date)
        if report_type == "sales":
            query["payment_status"] = "paid"
        if status:
            query["status"] = status
        if search:
            query["$or"] = [
                {"order_number": search_regex(search)},
                {"customer.name": search_regex(search)},
                {"customer.email": search_regex(search)},
            ]
        if side is not None:
            ids = [str(doc["_id"]) for doc in collection("menuitem").find({"is_vegetarian": side}, {"_id": 1})]
            query["items.menu"] = {"$in": ids}
        return "order", query

    if report_type == "menu":
        query = {} if side is None else {"is_vegetarian": side}
        if status:
            query["is_active"] = status == "active"
        if search:
            query["$or"] = [{"name": search_regex(search)}, {"description": search_regex(search)}]
        return "menuitem", query

    if not roles.has_permission(user.get("role"), roles.VIEW_ALL_USERS):
        raise HTTPException(status_code=403, detail="Insufficient permissions for this action")
    query = {**period_filter(period, start_date, end_date), "role": roles.CUSTOMER}
    if status:
        query["status"] = status
    if search:
        query["$or"] = [
            {"name": search_regex(search)},
            {"email": search_regex(search)},
            {"phone_number": search_regex(search)},
        ]
    return "user", query


def to_row(report_type: str, doc: dict, names: Optional[dict] = None) -> dict:
    """Flatten a stored document into the report's columns."""
    row = {"_id": str(doc["_id"]), "type": report_type, "date": _iso(doc.get("created_at"))}
    if report_type in ("sales", "orders"):
        customer = doc.get("customer") or {}
        row.update(
            order_number=doc.get("order_number"),
            customer_name=customer.get("name"),
            customer_email=customer.get("email"),
            status=doc.get("status"),
            payment_status=doc.get("payment_status"),
            item_count=sum(line.get("quantity", 0) for line in doc.get("items", [])),
            total_price=doc.get("total_price"),
        )
    elif report_type == "menu":
        row.update(
            name=doc.get("name"),
            category=(names or {}).get(doc.get("category"), doc.get("category")),
            is_vegetarian=doc.get("is_vegetarian"),
            mrp=doc.get("mrp"),
            discounted_price=doc.get("discounted_price"),
            quantity=doc.get("quantity"),
            total_sales=doc.get("total_sales", 0),
            status="active" if doc.get("is_active", True) else "inactive",
        )
    else:
        row.update(
            name=doc.get("name"),
            email=doc.get("email"),
            phone_number=doc.get("phone_number"),
            status=doc.get("status"),
            last_login=_iso(doc.get("last_login")),
        )
    return row


def category_names(docs: List[dict]) -> dict:
    ids = {to_object_id(d.get("category")) for d in docs if d.get("category")}
    return {str(c["_id"]): c["name"] for c in collection("category").find({"_id": {"$in": [i for i in ids if i]}})}


def fetch_rows(report_type: str, collection_name: str, query: dict, skip: int = 0, limit: Optional[int] = None) -> List[dict]:
    cursor = collection(collection_name).find(query).sort([("created_at", -1)]).skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    docs = list(cursor)
    names = category_names(docs) if report_type == "menu" else None
    return [to_row(report_type, doc, names) for doc in docs]


def export_table(report_type: str, rows: List[dict]) -> Tuple[List[str], List[list]]:
    columns = COLUMNS[report_type]
    return [title for _, title in columns], [[row.get(key) for key, _ in columns] for row in rows]
