"""
Per-order bookkeeping of payment sessions.

At most one session is active per order. A session is discarded when the
caller closes it or once its completion callback has fired; the order is then
remembered as paid for the lifetime of the process.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from deliverypay.integrations.contracts.erp import COMPLETED_STATUS, ERPBackend
from deliverypay.integrations.contracts.interfaces import AuthorizationProvider, PaymentResult, SessionPhase
from deliverypay.integrations.contracts.payments import IllegalTransitionError, PaymentError
from deliverypay.payments.clock import Clock, IdGenerator, PaymentTimings
from deliverypay.payments.session import PaymentSession
from deliverypay.utils.config_loader import ERPSettings

logger = logging.getLogger(__name__)


class OrderAlreadyPaidError(PaymentError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} has already been paid.")
        self.order_id = order_id


class SessionNotFoundError(PaymentError, LookupError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"No payment session for order {order_id}.")
        self.order_id = order_id


class PaymentSessionRegistry:
    def __init__(
        self,
        provider: AuthorizationProvider,
        erp: Optional[ERPBackend] = None,
        get_settings: Optional[Callable[[], ERPSettings]] = None,
        *,
        clock: Optional[Clock] = None,
        ids: Optional[IdGenerator] = None,
        timings: Optional[PaymentTimings] = None,
    ) -> None:
        self._provider = provider
        self._erp = erp
        self._get_settings = get_settings or ERPSettings
        self._clock = clock or Clock()
        self._ids = ids or IdGenerator()
        self._timings = timings or PaymentTimings()

        self._sessions: Dict[str, PaymentSession] = {}
        self._paid: Dict[str, PaymentResult] = {}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, order_id: str) -> Optional[PaymentSession]:
        return self._sessions.get(order_id)

    def require(self, order_id: str) -> PaymentSession:
        session = self._sessions.get(order_id)
        if session is None:
            raise SessionNotFoundError(order_id)
        return session

    def paid_result(self, order_id: str) -> Optional[PaymentResult]:
        return self._paid.get(order_id)

    def is_paid(self, order_id: str) -> bool:
        return order_id in self._paid

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, order_id: str) -> PaymentSession:
        """Open the payment panel: a fresh IDLE session replacing any previous one."""
        if self.is_paid(order_id):
            raise OrderAlreadyPaidError(order_id)
        self.close(order_id)
        session = PaymentSession(
            order_id,
            self._provider,
            on_complete=lambda result: self._on_complete(order_id, session, result),
            clock=self._clock,
            ids=self._ids,
            timings=self._timings,
        )
        self._sessions[order_id] = session
        return session

    def start(self, order_id: str, phone_number: str, amount: float) -> PaymentSession:
        """Start collection, reusing an IDLE session for the order when present."""
        session = self._sessions.get(order_id)
        if session is None:
            session = self.open(order_id)
        session.start(phone_number, amount)
        return session

    def reset(self, order_id: str) -> PaymentSession:
        session = self.require(order_id)
        session.reset()
        return session

    def retry(self, order_id: str) -> PaymentSession:
        """Try Again: a fresh session with the failed attempt's phone and amount."""
        previous = self.require(order_id)
        if previous.phase is not SessionPhase.FAILED:
            raise IllegalTransitionError(previous.phase, SessionPhase.INITIATING)
        session = self.open(order_id)
        session.start(previous.phone_number, previous.amount)
        return session

    def close(self, order_id: str) -> None:
        session = self._sessions.pop(order_id, None)
        if session is not None:
            session.abandon()

    def close_all(self) -> None:
        for order_id in list(self._sessions):
            self.close(order_id)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def _on_complete(self, order_id: str, session: PaymentSession, result: PaymentResult) -> None:
        self._paid[order_id] = result
        if self._sessions.get(order_id) is session:
            del self._sessions[order_id]
        logger.info("Order %s paid: receipt=%s amount=%s", order_id, result.receipt_id, result.amount)

        if self._erp is None or not self._get_settings().push_order_status:
            return
        try:
            await self._erp.update_order_status(order_id, COMPLETED_STATUS)
        except Exception as exc:
            logger.error("Payment received for %s but status update failed: %s", order_id, exc)
