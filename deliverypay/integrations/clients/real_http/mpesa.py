"""
Real M-Pesa HTTP Client.

Used when gateway credentials are configured. Speaks to a payments bridge
(e.g. frappe-mpsa-payments) that triggers the STK push and reports the
subscriber's authorization out of band.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import httpx

from deliverypay.integrations.contracts.interfaces import (
    AuthorizationProvider,
    AuthorizationResult,
    PaymentStatus,
    Provider,
)
from deliverypay.integrations.contracts.payments import (
    AuthorizationError,
    STKPushRequest,
    validate_stk_push_request,
)
from deliverypay.integrations.policy.response_wrappers import (
    IntegrationResponseError,
    normalize_payment_status_response,
    normalize_stk_push_response,
)

logger = logging.getLogger(__name__)


class RealMpesaClient(AuthorizationProvider):
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        stk_push_path: Optional[str] = None,
        status_path: Optional[str] = None,
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("MPESA_API_URL", "")).rstrip("/")
        self.api_key = api_key or os.getenv("MPESA_API_KEY", "")
        self.stk_push_path = stk_push_path or os.getenv("MPESA_STK_PUSH_PATH", "/payments/stk-push")
        self.status_path = status_path or os.getenv("MPESA_STATUS_PATH", "/payments/status")
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        # transaction id -> checkout request id, for confirm()
        self._checkouts: Dict[str, str] = {}

    @property
    def provider(self) -> Provider:
        return Provider.MPESA

    async def authorize(self, phone_number: str, amount: float, transaction_id: str) -> AuthorizationResult:
        request = STKPushRequest(phone_number=phone_number, amount=amount, reference=transaction_id)
        errors = validate_stk_push_request(request)
        if errors:
            raise AuthorizationError("; ".join(errors), code="invalid_request")

        payload: Dict[str, Any] = {
            "phone_number": request.phone_number,
            "amount": request.amount,
            "reference": request.reference,
        }
        data = await self._call("POST", self.stk_push_path, json=payload)

        try:
            response = normalize_stk_push_response(data, fallback_transaction_id=transaction_id)
        except IntegrationResponseError as exc:
            raise AuthorizationError(f"Unexpected gateway response: {exc}", code="bad_response") from exc

        if not response.accepted:
            raise AuthorizationError(response.response_description or "Payment request rejected.",
                                     code=response.response_code)
        if not response.checkout_request_id:
            raise AuthorizationError("Unexpected gateway response: no CheckoutRequestID.", code="bad_response")

        self._checkouts[transaction_id] = response.checkout_request_id
        logger.info("STK push accepted txn=%s checkout=%s", transaction_id, response.checkout_request_id)
        return AuthorizationResult(
            status=PaymentStatus.PROCESSING,
            checkout_reference=response.checkout_request_id,
            message=response.customer_message or response.response_description,
        )

    async def confirm(self, transaction_id: str) -> AuthorizationResult:
        checkout = self._checkouts.get(transaction_id, transaction_id)
        data = await self._call("GET", f"{self.status_path}/{checkout}")

        try:
            result = normalize_payment_status_response(data)
        except IntegrationResponseError as exc:
            raise AuthorizationError(f"Unexpected gateway response: {exc}", code="bad_response") from exc

        if result.status is PaymentStatus.FAILED:
            raise AuthorizationError(result.message or "Payment failed", code="declined")
        return result

    async def _call(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.base_url:
            raise AuthorizationError("MPESA_API_URL is not configured.", code="not_configured")

        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.request(method, url, json=json, headers=headers)
                response.raise_for_status()
                return response.json() if response.content else {}
        except httpx.HTTPStatusError as exc:
            raise AuthorizationError(f"Gateway error: HTTP {exc.response.status_code}",
                                     code=str(exc.response.status_code)) from exc
        except httpx.HTTPError as exc:
            raise AuthorizationError(f"Gateway unreachable: {exc}", code="network") from exc
