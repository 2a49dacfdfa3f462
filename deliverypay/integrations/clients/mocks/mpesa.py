"""
M-Pesa STK push — MOCK client.

⚠️  This is a mock implementation for development and testing.
    Replace with RealMpesaClient once gateway credentials are available.
    Outcomes are deterministic, keyed on the last digit of the normalized
    phone number:

        0-2  -> AuthorizationError (customer cancelled / insufficient funds)
        3-6  -> SUCCESS with a fresh receipt number
        7-9  -> PROCESSING; confirm() later resolves it to SUCCESS
"""

import logging
from typing import Dict, Optional

from deliverypay.integrations.contracts.interfaces import (
    AuthorizationProvider,
    AuthorizationResult,
    PaymentStatus,
    Provider,
)
from deliverypay.integrations.contracts.payments import AuthorizationError
from deliverypay.payments.clock import Clock, IdGenerator, PaymentTimings
from deliverypay.payments.phone import is_valid_phone, normalize_phone

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "Payment failed. Customer cancelled or insufficient funds."


class MpesaMockClient(AuthorizationProvider):
    """
    Mock M-Pesa gateway.

    Parameters
    ----------
    clock : Clock, optional
        Used for the simulated gateway latency and the receipt timestamps.
    ids : IdGenerator, optional
        Source of receipt numbers.
    latency : float, optional
        Seconds the gateway takes to answer a push. Defaults to
        PaymentTimings().provider_delay.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        ids: Optional[IdGenerator] = None,
        latency: Optional[float] = None,
    ):
        self._clock = clock or Clock()
        self._ids = ids or IdGenerator()
        self._latency = PaymentTimings().provider_delay if latency is None else latency

        # In-memory store (reset on restart)
        self._payments: Dict[str, AuthorizationResult] = {}

        logger.info("[MPESA MOCK] Client initialised (latency=%.1fs)", self._latency)

    # ------------------------------------------------------------------
    # Provider identity
    # ------------------------------------------------------------------

    @property
    def provider(self) -> Provider:
        return Provider.MPESA

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def authorize(self, phone_number: str, amount: float, transaction_id: str) -> AuthorizationResult:
        logger.info("[MPESA MOCK] STK push txn=%s phone=%s amount=%s", transaction_id, phone_number, amount)
        if self._latency:
            await self._clock.sleep(self._latency)

        if not is_valid_phone(phone_number):
            raise AuthorizationError(f"Invalid phone number '{phone_number}'.", code="invalid_msisdn")

        last_digit = int(normalize_phone(phone_number)[-1])

        if last_digit < 3:
            logger.info("[MPESA MOCK] Payment %s → failed", transaction_id)
            raise AuthorizationError(FAILURE_MESSAGE, code="declined")

        if last_digit < 7:
            result = self._success(transaction_id)
        else:
            result = AuthorizationResult(
                status=PaymentStatus.PROCESSING,
                checkout_reference=f"CHK{transaction_id}",
                message="Success. Request accepted for processing",
            )

        self._payments[transaction_id] = result
        logger.info("[MPESA MOCK] Payment %s → %s", transaction_id, result.status.value)
        return result

    async def confirm(self, transaction_id: str) -> AuthorizationResult:
        # The pending push is always authorized on the first confirmation.
        result = self._success(transaction_id)
        self._payments[transaction_id] = result
        logger.info("[MPESA MOCK] Payment %s confirmed receipt=%s", transaction_id, result.receipt_id)
        return result

    def get_payment(self, transaction_id: str) -> Optional[AuthorizationResult]:
        return self._payments.get(transaction_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _success(self, transaction_id: str) -> AuthorizationResult:
        return AuthorizationResult(
            status=PaymentStatus.SUCCESS,
            receipt_id=self._ids.receipt_id(),
            timestamp=self._clock.now(),
            checkout_reference=f"CHK{transaction_id}",
            message="The service request is processed successfully.",
        )
