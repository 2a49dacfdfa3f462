"""
Real ERPNext HTTP Client.

Talks to the Frappe REST API (`/api/resource/<DocType>`) with token auth.
Settings are re-read on every request so that a save on the settings screen
takes effect without restarting the app.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import httpx

from deliverypay.integrations.contracts.erp import (
    DELIVERABLE_STATUSES,
    MPESA_MODE_OF_PAYMENT,
    Address,
    Customer,
    ERPBackend,
    PaymentEntry,
    SalesOrder,
    billing_address_name,
    shipping_address_name,
)
from deliverypay.integrations.policy.response_wrappers import (
    IntegrationResponseError,
    unwrap_resource,
    unwrap_resource_list,
)
from deliverypay.utils.config_loader import ERPSettings

logger = logging.getLogger(__name__)

_ORDER_LIST_FIELDS = ["name", "customer", "customer_name", "delivery_date", "grand_total", "status"]
_CUSTOMER_FIELDS = ["customer_name", "mobile_no", "email_id", "territory"]
_ADDRESS_FIELDS = ["name", "address_line1", "address_line2", "city", "state", "pincode"]
_PAYMENT_FIELDS = ["name", "party", "party_name", "paid_amount", "posting_date", "reference_no", "mode_of_payment"]


class ERPNextError(Exception):
    def __init__(self, message: str, *, status_code: Optional[int] = None, endpoint: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class ERPNextClient(ERPBackend):
    def __init__(
        self,
        get_settings: Callable[[], ERPSettings],
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.get_settings = get_settings
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    @staticmethod
    def resource_url(settings: ERPSettings, endpoint: str) -> str:
        base_url = settings.base_url.rstrip("/")
        if settings.use_proxy:
            return f"{settings.proxy_url.rstrip('/')}/{base_url}{endpoint}"
        return f"{base_url}{endpoint}"

    @staticmethod
    def headers(settings: ERPSettings) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if settings.has_credentials:
            headers["Authorization"] = f"token {settings.api_key}:{settings.api_secret}"
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
        settings: Optional[ERPSettings] = None,
    ) -> Any:
        settings = settings or self.get_settings()
        url = self.resource_url(settings, endpoint)
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.request(method, url, params=params, json=payload, headers=self.headers(settings))
                response.raise_for_status()
                return response.json() if response.content else {}
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            logger.error("ERPNext API Error: %s %s -> %s", method, endpoint, status_code)
            raise ERPNextError(f"HTTP error! status: {status_code}", status_code=status_code, endpoint=endpoint) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("ERPNext API Error: %s %s: %s", method, endpoint, exc)
            raise ERPNextError(str(exc) or type(exc).__name__, endpoint=endpoint) from exc

    # ------------------------------------------------------------------
    # Sales orders
    # ------------------------------------------------------------------

    async def fetch_orders(self) -> List[SalesOrder]:
        params = {
            "fields": json.dumps(_ORDER_LIST_FIELDS),
            "filters": json.dumps([["status", "in", list(DELIVERABLE_STATUSES)]]),
            "limit_page_length": 50,
            "order_by": "creation desc",
        }
        try:
            raw = await self.request("GET", "/api/resource/Sales Order", params=params)
            return unwrap_resource_list(raw, SalesOrder)
        except (ERPNextError, IntegrationResponseError) as exc:
            logger.error("Error fetching sales orders: %s", exc)
            return []

    async def fetch_order_detail(self, order_name: str) -> SalesOrder:
        raw = await self.request("GET", f"/api/resource/Sales Order/{order_name}")
        return unwrap_resource(raw, SalesOrder)

    async def update_order_status(self, order_name: str, status: str) -> SalesOrder:
        raw = await self.request("PUT", f"/api/resource/Sales Order/{order_name}", payload={"status": status})
        return unwrap_resource(raw, SalesOrder)

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def fetch_customer(self, customer: str) -> Optional[Customer]:
        try:
            raw = await self.request(
                "GET",
                f"/api/resource/Customer/{customer}",
                params={"fields": json.dumps(_CUSTOMER_FIELDS)},
            )
            return unwrap_resource(raw, Customer)
        except (ERPNextError, IntegrationResponseError) as exc:
            logger.error("Error fetching customer details for %s: %s", customer, exc)
            return None

    async def fetch_address(self, customer: str) -> Optional[Address]:
        # Billing address is the usual delivery address; shipping is the fallback.
        errors = []
        for address_name in (billing_address_name(customer), shipping_address_name(customer)):
            try:
                raw = await self.request(
                    "GET",
                    f"/api/resource/Address/{address_name}",
                    params={"fields": json.dumps(_ADDRESS_FIELDS)},
                )
                return unwrap_resource(raw, Address)
            except (ERPNextError, IntegrationResponseError) as exc:
                errors.append(exc)

        logger.warning("Neither billing nor shipping address found for %s: %s", customer, errors)
        return None

    # ------------------------------------------------------------------
    # Payment entries
    # ------------------------------------------------------------------

    async def fetch_todays_payments(self, today: Optional[date] = None) -> List[PaymentEntry]:
        posting_date = (today or date.today()).isoformat()
        params = {
            "fields": json.dumps(_PAYMENT_FIELDS),
            "filters": json.dumps([
                ["mode_of_payment", "=", MPESA_MODE_OF_PAYMENT],
                ["posting_date", "=", posting_date],
            ]),
            "order_by": "posting_date desc",
            "limit_page_length": 50,
        }
        try:
            raw = await self.request("GET", "/api/resource/Payment Entry", params=params)
            return unwrap_resource_list(raw, PaymentEntry)
        except (ERPNextError, IntegrationResponseError) as exc:
            logger.error("Error fetching today's payments: %s", exc)
            return []

    async def fetch_payment_detail(self, payment_name: str) -> PaymentEntry:
        raw = await self.request("GET", f"/api/resource/Payment Entry/{payment_name}")
        return unwrap_resource(raw, PaymentEntry)

    # ------------------------------------------------------------------
    # Settings screen
    # ------------------------------------------------------------------

    async def test_connection(self, settings: Optional[ERPSettings] = None) -> Dict[str, Any]:
        try:
            await self.request(
                "GET",
                "/api/resource/Sales Order",
                params={"limit_page_length": 1},
                settings=settings,
            )
        except ERPNextError as exc:
            return {"ok": False, "message": f"Connection failed: {exc}"}
        return {"ok": True, "message": "Connection successful! ERPNext API is accessible."}
