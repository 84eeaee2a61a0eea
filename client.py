"""
HTTP client for the admin API.

The client owns no global state: the HTTP session is passed in (a
`requests.Session` by default) and the auth token lives on the instance.

    client = AdminClient("http://localhost:8000")
    client.login("admin@example.com", "secret")
    orders = client.list_orders(status="pending")
"""
import json
from typing import Any, Iterable, List, Optional, Tuple

import requests

DEFAULT_TIMEOUT = 10.0

# (filename, content, content type)
ImageFile = Tuple[str, bytes, str]


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, errors: Optional[list] = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


class AdminClient:
    def __init__(self, base_url: str, session=None, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.token: Optional[str] = None
        self.user: Optional[dict] = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def _request(self, method: str, path: str, raw: bool = False, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if "params" in kwargs:
            kwargs["params"] = {k: v for k, v in kwargs["params"].items() if v is not None}
        response = self.session.request(
            method,
            f"{self.base_url}{path}",
            headers=headers,
            timeout=self.timeout,
            **kwargs,
        )
        if raw and response.status_code < 400:
            return response.content

        try:
            body = response.json()
        except ValueError:
            body = {"success": False, "message": response.text or "Unexpected response"}
        if response.status_code >= 400 or not body.get("success", False):
            raise ApiError(response.status_code, body.get("message", "Request failed"), body.get("errors"))
        return body.get("data")

    def _multipart(self, method: str, path: str, data: dict, field: str, images: Iterable[ImageFile]) -> Any:
        files = [(field, image) for image in images]
        return self._request(method, path, data={"data": json.dumps(data)}, files=files or None)

    # ---- auth ----

    def login(self, email: str, password: str) -> dict:
        data = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        self.token = data["access_token"]
        self.user = data["user"]
        return self.user

    def logout(self):
        try:
            self._request("POST", "/api/auth/logout")
        finally:
            self.token = None
            self.user = None

    def profile(self) -> dict:
        return self._request("GET", "/api/auth/profile")["user"]

    # ---- categories ----

    def list_categories(self, **params) -> dict:
        return self._request("GET", "/api/admin/categories", params=params)

    def category_stats(self) -> dict:
        return self._request("GET", "/api/admin/categories/stats")

    def get_category(self, category_id: str) -> dict:
        return self._request("GET", f"/api/admin/categories/{category_id}")["category"]

    def create_category(self, data: dict, image: ImageFile) -> dict:
        return self._multipart("POST", "/api/admin/categories", data, "image", [image])["category"]

    def update_category(self, category_id: str, data: dict, image: Optional[ImageFile] = None) -> dict:
        images = [image] if image else []
        return self._multipart("PUT", f"/api/admin/categories/{category_id}", data, "image", images)["category"]

    def delete_category(self, category_id: str):
        self._request("DELETE", f"/api/admin/categories/{category_id}")

    def bulk_category_status(self, ids: List[str], is_active: bool) -> dict:
        return self._request("PUT", "/api/admin/categories/bulk-status", json={"ids": ids, "is_active": is_active})

    # ---- menu items ----

    def list_menu_items(self, **params) -> dict:
        return self._request("GET", "/api/admin/menu", params=params)

    def get_menu_item(self, item_id: str) -> dict:
        return self._request("GET", f"/api/admin/menu/{item_id}")

    def create_menu_item(self, data: dict, images: Iterable[ImageFile] = ()) -> dict:
        return self._multipart("POST", "/api/admin/menu", data, "images", images)

    def update_menu_item(self, item_id: str, data: dict, images: Iterable[ImageFile] = ()) -> dict:
        return self._multipart("PUT", f"/api/admin/menu/{item_id}", data, "images", images)

    def delete_menu_item(self, item_id: str):
        self._request("DELETE", f"/api/admin/menu/{item_id}")

    def delete_menu_image(self, item_id: str, image_id: str) -> dict:
        return self._request("DELETE", f"/api/admin/menu/{item_id}/images/{image_id}")

    def bulk_menu_status(self, ids: List[str], is_active: bool) -> dict:
        return self._request("PUT", "/api/admin/menu/bulk-status", json={"ids": ids, "is_active": is_active})

    # ---- orders ----

    def list_orders(self, **params) -> dict:
        return self._request("GET", "/api/admin/orders", params=params)

    def get_order(self, order_id: str) -> dict:
        return self._request("GET", f"/api/admin/orders/{order_id}")["order"]

    def update_order_status(self, order_id: str, status: Optional[str] = None, payment_status: Optional[str] = None, notes: Optional[str] = None) -> dict:
        body = {k: v for k, v in {"status": status, "payment_status": payment_status, "notes": notes}.items() if v is not None}
        return self._request("PUT", f"/api/admin/orders/{order_id}/status", json=body)["order"]

    def order_stats(self, **params) -> dict:
        return self._request("GET", "/api/admin/orders/stats", params=params)

    def export_orders_csv(self, **params) -> bytes:
        return self._request("GET", "/api/admin/orders/export", raw=True, params={**params, "format": "csv"})

    # ---- users ----

    def list_users(self, **params) -> dict:
        return self._request("GET", "/api/admin/users", params=params)

    def get_user(self, user_id: str) -> dict:
        return self._request("GET", f"/api/admin/users/{user_id}")["user"]

    def update_user_role(self, user_id: str, role: str) -> dict:
        return self._request("PUT", f"/api/admin/users/{user_id}/role", json={"role": role})["user"]

    def update_user_status(self, user_id: str, status: str) -> dict:
        return self._request("PUT", f"/api/admin/users/{user_id}/status", json={"status": status})["user"]

    def delete_user(self, user_id: str):
        self._request("DELETE", f"/api/admin/users/{user_id}")

    def user_stats(self) -> dict:
        return self._request("GET", "/api/admin/users/stats")

    # ---- dashboard ----

    def dashboard(self, period: str = "30d") -> dict:
        return self._request("GET", "/api/admin/dashboard/analytics", params={"period": period})

    # ---- reports ----

    def report_data(self, report_type: str, **params) -> dict:
        return self._request("GET", "/api/admin/reports/data", params={**params, "type": report_type})

    def export_report_csv(self, report_type: str, **params) -> bytes:
        return self._request("GET", "/api/admin/reports/export", raw=True, params={**params, "type": report_type, "format": "csv"})

    # ---- spicy levels & preparations ----

    def list_spicy_levels(self, **params) -> dict:
        return self._request("GET", "/api/admin/spicy-levels", params=params)

    def create_spicy_level(self, data: dict) -> dict:
        return self._request("POST", "/api/admin/spicy-levels", json=data)

    def list_preparations(self, **params) -> dict:
        return self._request("GET", "/api/admin/preparations", params=params)

    def create_preparation(self, data: dict) -> dict:
        return self._request("POST", "/api/admin/preparations", json=data)
