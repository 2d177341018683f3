"""
HTTP client for the Stockroom API.

Wraps the same endpoints the dashboard calls. Every helper returns the
decoded JSON body and raises ApiError on a non-2xx response, using the
server's {"error": ...} message when there is one.

USAGE:
    client = StockroomClient("http://127.0.0.1:5000", token=session_token)
    for row in client.low_stock():
        print(row["product_sku"], row["quantity"])
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, message: str, response: Optional[httpx.Response] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.response = response


class StockroomClient:
    """
    HTTP client wrapper with bearer authentication and one method per endpoint.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(self, method: str, path: str, *, fallback: str, **kwargs) -> httpx.Response:
        response = self.client.request(method, path, headers=self._headers(), **kwargs)
        if response.is_success:
            return response
        try:
            message = (response.json() or {}).get("error") or fallback
        except ValueError:
            message = fallback
        raise ApiError(response.status_code, message, response)

    def _json(self, method: str, path: str, *, fallback: str, **kwargs) -> Any:
        return self.request(method, path, fallback=fallback, **kwargs).json()

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "StockroomClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # Warehouses

    def list_warehouses(self, status: Optional[str] = None) -> List[dict]:
        params = {"status": status} if status else None
        return self._json("GET", "/api/warehouses", params=params, fallback="Failed to fetch warehouses")

    def get_warehouse(self, warehouse_id: str) -> dict:
        return self._json("GET", f"/api/warehouses/{warehouse_id}", fallback="Failed to fetch warehouse")

    def create_warehouse(self, data: dict) -> dict:
        return self._json("POST", "/api/warehouses", json=data, fallback="Failed to create warehouse")

    def update_warehouse(self, warehouse_id: str, data: dict) -> dict:
        return self._json("PUT", f"/api/warehouses/{warehouse_id}", json=data, fallback="Failed to update warehouse")

    def delete_warehouse(self, warehouse_id: str) -> dict:
        return self._json("DELETE", f"/api/warehouses/{warehouse_id}", fallback="Failed to delete warehouse")

    # Categories

    def list_categories(self) -> List[dict]:
        return self._json("GET", "/api/categories", fallback="Failed to fetch categories")

    def create_category(self, data: dict) -> dict:
        return self._json("POST", "/api/categories", json=data, fallback="Failed to create category")

    def list_subcategories(self, category_id: Optional[str] = None) -> List[dict]:
        params = {"category_id": category_id} if category_id else None
        return self._json("GET", "/api/subcategories", params=params, fallback="Failed to fetch subcategories")

    def list_feature_definitions(
        self, *, category_id: Optional[str] = None, subcategory_id: Optional[str] = None,
    ) -> List[dict]:
        params = {k: v for k, v in (("category_id", category_id), ("subcategory_id", subcategory_id)) if v}
        return self._json("GET", "/api/feature-definitions", params=params, fallback="Failed to fetch features")

    # Products

    def list_products(self, **filters) -> dict:
        params = {k: v for k, v in filters.items() if v is not None}
        return self._json("GET", "/api/products", params=params, fallback="Failed to fetch products")

    def get_product(self, product_id: str) -> dict:
        return self._json("GET", f"/api/products/{product_id}", fallback="Failed to fetch product")

    def create_product(self, data: dict) -> dict:
        return self._json("POST", "/api/products", json=data, fallback="Failed to create product")

    def update_product(self, product_id: str, data: dict) -> dict:
        return self._json("PUT", f"/api/products/{product_id}", json=data, fallback="Failed to update product")

    def delete_product(self, product_id: str) -> dict:
        return self._json("DELETE", f"/api/products/{product_id}", fallback="Failed to delete product")

    # Inventory

    def list_inventory(self, *, warehouse_id: Optional[str] = None, product_id: Optional[str] = None) -> List[dict]:
        params = {k: v for k, v in (("warehouse_id", warehouse_id), ("product_id", product_id)) if v}
        return self._json("GET", "/api/inventory", params=params, fallback="Failed to fetch inventory")

    def product_inventory(self, product_id: str) -> dict:
        return self._json("GET", f"/api/inventory/summary/{product_id}", fallback="Failed to fetch inventory")

    def low_stock(self, limit: Optional[int] = None) -> List[dict]:
        params = {"limit": limit} if limit else None
        return self._json("GET", "/api/inventory/low-stock", params=params, fallback="Failed to fetch low stock")

    def adjust_stock(
        self,
        product_id: str,
        warehouse_id: str,
        quantity: int,
        *,
        movement_type: str = "adjustment",
        reason: Optional[str] = None,
        **extra,
    ) -> dict:
        body = {
            "productId": product_id,
            "warehouseId": warehouse_id,
            "quantity": quantity,
            "movementType": movement_type,
            "reason": reason,
            **extra,
        }
        body = {k: v for k, v in body.items() if v is not None}
        return self._json("POST", "/api/inventory/adjust", json=body, fallback="Failed to adjust inventory")["data"]

    def transfer_stock(
        self,
        product_id: str,
        from_warehouse_id: str,
        to_warehouse_id: str,
        quantity: int,
        *,
        reason: Optional[str] = None,
    ) -> dict:
        body = {
            "productId": product_id,
            "fromWarehouseId": from_warehouse_id,
            "toWarehouseId": to_warehouse_id,
            "quantity": quantity,
        }
        if reason:
            body["reason"] = reason
        return self._json("POST", "/api/inventory/transfer", json=body, fallback="Failed to transfer inventory")["data"]

    # Stock movements

    def stock_movements(self, **filters) -> List[dict]:
        params = {k: v for k, v in filters.items() if v is not None}
        return self._json("GET", "/api/stock-movements", params=params, fallback="Failed to fetch stock movements")

    def recent_movements(self, limit: int = 10) -> List[dict]:
        return self._json(
            "GET", "/api/stock-movements/recent", params={"limit": limit}, fallback="Failed to fetch stock movements",
        )

    def export(self, resource: str, fmt: str = "csv", **filters) -> bytes:
        """Raw export body for resource 'inventory' or 'stock-movements'."""
        params = {"format": fmt, **{k: v for k, v in filters.items() if v is not None}}
        return self.request("GET", f"/api/{resource}/export", params=params, fallback="Export failed").content

    # Clients and companies

    def list_clients(self, **filters) -> dict:
        params = {k: v for k, v in filters.items() if v is not None}
        return self._json("GET", "/api/clients", params=params, fallback="Failed to fetch clients")

    def get_client(self, client_id: str) -> dict:
        return self._json("GET", f"/api/clients/{client_id}", fallback="Failed to fetch client")

    def create_client(self, data: dict) -> dict:
        return self._json("POST", "/api/clients", json=data, fallback="Failed to create client")

    def update_client(self, client_id: str, data: dict) -> dict:
        return self._json("PUT", f"/api/clients/{client_id}", json=data, fallback="Failed to update client")

    def delete_client(self, client_id: str) -> dict:
        return self._json("DELETE", f"/api/clients/{client_id}", fallback="Failed to delete client")

    def list_companies(self, *, with_contacts: bool = False, **filters) -> dict:
        params = {k: v for k, v in filters.items() if v is not None}
        if with_contacts:
            params["withContacts"] = "true"
        return self._json("GET", "/api/companies", params=params, fallback="Failed to fetch companies")

    def create_company(self, data: dict, primary_contact: Optional[dict] = None) -> dict:
        body = {**data, "primaryContact": primary_contact} if primary_contact else data
        return self._json("POST", "/api/companies", json=body, fallback="Failed to create company")

    def list_contacts(self, company_id: str) -> List[dict]:
        return self._json("GET", f"/api/companies/{company_id}/contacts", fallback="Failed to fetch contacts")

    def create_contact(self, company_id: str, data: dict) -> dict:
        return self._json(
            "POST", f"/api/companies/{company_id}/contacts", json=data, fallback="Failed to create contact",
        )

    # Services

    def list_services(self, **filters) -> dict:
        params = {k: v for k, v in filters.items() if v is not None}
        return self._json("GET", "/api/services", params=params, fallback="Failed to fetch services")

    def create_service(self, data: dict) -> dict:
        return self._json("POST", "/api/services", json=data, fallback="Failed to create service")

    def list_service_categories(self, active_only: bool = False) -> List[dict]:
        params = {"active": "true"} if active_only else None
        return self._json(
            "GET", "/api/service-categories", params=params, fallback="Failed to fetch service categories",
        )

    def create_service_category(self, data: dict) -> dict:
        return self._json(
            "POST", "/api/service-categories", json=data, fallback="Failed to create service category",
        )

    # Quotes

    def list_quotes(self, **filters) -> dict:
        params = {k: v for k, v in filters.items() if v is not None}
        return self._json("GET", "/api/quotes", params=params, fallback="Failed to fetch quotes")

    def get_quote(self, quote_id: str) -> dict:
        return self._json("GET", f"/api/quotes/{quote_id}", fallback="Failed to fetch quote")

    def create_quote(self, data: dict) -> dict:
        return self._json("POST", "/api/quotes", json=data, fallback="Failed to create quote")

    def update_quote(self, quote_id: str, data: dict) -> dict:
        return self._json("PATCH", f"/api/quotes/{quote_id}", json=data, fallback="Failed to update quote")

    def delete_quote(self, quote_id: str) -> dict:
        return self._json("DELETE", f"/api/quotes/{quote_id}", fallback="Failed to delete quote")

    def add_quote_item(self, quote_id: str, data: dict) -> dict:
        return self._json("POST", f"/api/quotes/{quote_id}/items", json=data, fallback="Failed to add quote item")

    def add_quote_comment(self, quote_id: str, comment: str, *, internal: bool = True) -> dict:
        body = {"comment": comment, "is_internal": internal}
        return self._json("POST", f"/api/quotes/{quote_id}/comments", json=body, fallback="Failed to add comment")

    def send_quote(self, quote_id: str) -> dict:
        return self._json("POST", f"/api/quotes/{quote_id}/send", fallback="Failed to send quote")

    # Category templates

    def list_templates(self) -> dict:
        return self._json("GET", "/api/category-templates", fallback="Failed to fetch templates")

    def get_template(self, template_id: str) -> dict:
        return self._json("GET", f"/api/category-templates/{template_id}", fallback="Failed to fetch template")

    def import_template(self, template_id: str, selections: dict, mode: str = "merge") -> dict:
        body = {"importMode": mode, "selections": selections}
        return self._json(
            "POST", f"/api/category-templates/{template_id}/import", json=body, fallback="Failed to import template",
        )

    def import_progress(self, job_id: str) -> dict:
        return self._json(
            "GET", f"/api/category-templates/import-progress/{job_id}", fallback="Failed to fetch import progress",
        )

    # Search and user

    def search(self, query: str, limit: int = 20, kind: Optional[str] = None) -> dict:
        params = {"q": query, "limit": limit}
        if kind:
            params["type"] = kind
        return self._json("GET", "/api/search", params=params, fallback="Search failed")

    def role(self) -> dict:
        return self._json("GET", "/api/user/role", fallback="Failed to fetch role")

    def preferences(self) -> dict:
        return self._json("GET", "/api/user/preferences", fallback="Failed to fetch preferences")

    def update_preferences(self, data: dict) -> dict:
        return self._json("PATCH", "/api/user/preferences", json=data, fallback="Failed to update preferences")

    def table_preferences(self, table_key: str) -> dict:
        return self._json("GET", f"/api/user/preferences/table/{table_key}", fallback="Failed to fetch preferences")

    def update_table_preferences(self, table_key: str, data: dict) -> dict:
        return self._json(
            "PATCH", f"/api/user/preferences/table/{table_key}", json=data, fallback="Failed to update preferences",
        )

    def reset_table_preferences(self, table_key: str) -> dict:
        return self._json(
            "DELETE", f"/api/user/preferences/table/{table_key}", fallback="Failed to reset preferences",
        )
