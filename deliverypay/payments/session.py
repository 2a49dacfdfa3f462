"""
Payment session: the per-order M-Pesa collection state machine.

    idle -> initiating -> processing -> completed
                      \\            \\-> failed -> idle (reset)
                       \\-> failed

One session drives one attempt at a time on the running asyncio loop. Every
wait goes through the injected Clock, and every continuation checks that the
session is still live (not abandoned, same generation) before touching state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Optional, Union

from deliverypay.integrations.contracts.interfaces import (
    AuthorizationProvider,
    AuthorizationResult,
    PaymentResult,
    PaymentStatus,
    SessionPhase,
)
from deliverypay.integrations.contracts.payments import (
    AuthorizationError,
    DoubleStartError,
    IllegalTransitionError,
    PaymentError,
    PhoneValidationError,
    is_terminal_phase,
    is_terminal_status,
)
from deliverypay.payments.clock import Clock, IdGenerator, PaymentTimings
from deliverypay.payments.phone import is_valid_phone, normalize_phone

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Payment failed"

CompletionCallback = Callable[[PaymentResult], Union[None, Awaitable[None]]]

_TRANSITIONS: Dict[SessionPhase, FrozenSet[SessionPhase]] = {
    SessionPhase.IDLE: frozenset({SessionPhase.INITIATING}),
    SessionPhase.INITIATING: frozenset({SessionPhase.PROCESSING, SessionPhase.FAILED}),
    SessionPhase.PROCESSING: frozenset({SessionPhase.PROCESSING, SessionPhase.COMPLETED, SessionPhase.FAILED}),
    SessionPhase.COMPLETED: frozenset(),
    SessionPhase.FAILED: frozenset({SessionPhase.IDLE}),
}


def can_transition(current: SessionPhase, target: SessionPhase) -> bool:
    return target in _TRANSITIONS[current]


class PaymentSession:
    """
    Single-use collection attempt for one order.

    Parameters
    ----------
    order_id : str
        ERPNext Sales Order name the payment belongs to.
    provider : AuthorizationProvider
        Gateway client (mock or real) that receives the STK push.
    on_complete : callable, optional
        Called once with the final PaymentResult after a successful payment.
        May be a plain function or a coroutine function.
    clock, ids, timings
        Time source, identifier source and fixed delays.
    """

    def __init__(
        self,
        order_id: str,
        provider: AuthorizationProvider,
        on_complete: Optional[CompletionCallback] = None,
        *,
        clock: Optional[Clock] = None,
        ids: Optional[IdGenerator] = None,
        timings: Optional[PaymentTimings] = None,
    ) -> None:
        self.order_id = order_id
        self.phase = SessionPhase.IDLE
        self.transaction_id: Optional[str] = None
        self.phone_number: Optional[str] = None
        self.amount: Optional[float] = None
        self.last_error: Optional[str] = None
        self.result: Optional[PaymentResult] = None

        self._provider = provider
        self._on_complete = on_complete
        self._clock = clock or Clock()
        self._ids = ids or IdGenerator()
        self._timings = timings or PaymentTimings()

        self._generation = 0
        self._abandoned = False
        self._notified = False
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def abandoned(self) -> bool:
        return self._abandoned

    @property
    def notified(self) -> bool:
        return self._notified

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "phase": self.phase.value,
            "transaction_id": self.transaction_id,
            "phone_number": self.phone_number,
            "amount": self.amount,
            "last_error": self.last_error,
            "terminal": is_terminal_phase(self.phase),
            "abandoned": self._abandoned,
            "result": self.result.to_dict() if self.result else None,
        }

    # ------------------------------------------------------------------
    # Caller actions
    # ------------------------------------------------------------------

    def start(self, phone_number: str, amount: float) -> str:
        """Validate the phone, enter INITIATING and schedule the push.

        Returns the new transaction id. Must be called from a running loop.
        """
        if self._abandoned:
            raise PaymentError("Payment session was abandoned.")
        if self.phase is not SessionPhase.IDLE:
            raise DoubleStartError(self.phase)
        if not is_valid_phone(phone_number):
            error = PhoneValidationError(phone_number)
            self.last_error = error.message
            raise error

        loop = asyncio.get_running_loop()

        self.phone_number = normalize_phone(phone_number)
        self.amount = amount
        self.transaction_id = self._ids.transaction_id()
        self.last_error = None
        self.result = None
        self._generation += 1
        self._transition(SessionPhase.INITIATING)

        self._task = loop.create_task(self._run(self._generation))
        return self.transaction_id

    def reset(self) -> None:
        """Try Again: FAILED -> IDLE. Phone and amount are kept for the next start."""
        self._transition(SessionPhase.IDLE)
        self.last_error = None
        self.result = None

    def abandon(self) -> None:
        """Drop the session; nothing scheduled may fire afterwards."""
        if self._abandoned:
            return
        self._abandoned = True
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.info("Payment session for order %s abandoned in phase %s (txn=%s)",
                    self.order_id, self.phase.value, self.transaction_id)

    async def wait(self) -> SessionPhase:
        """Wait for the scheduled work of the current attempt to finish."""
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                if not (task.cancelled() and self._abandoned):
                    raise
        return self.phase

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_live(self, generation: int) -> bool:
        return not self._abandoned and generation == self._generation

    def _transition(self, target: SessionPhase) -> None:
        if not can_transition(self.phase, target):
            raise IllegalTransitionError(self.phase, target)
        logger.info("Payment %s (order %s): %s -> %s",
                    self.transaction_id, self.order_id, self.phase.value, target.value)
        self.phase = target

    async def _run(self, generation: int) -> None:
        await self._clock.sleep(self._timings.initiation_delay)
        if not self._is_live(generation):
            return
        self._transition(SessionPhase.PROCESSING)

        try:
            outcome = await self._provider.authorize(self.phone_number, self.amount, self.transaction_id)
            if not self._is_live(generation):
                return

            if outcome.status is PaymentStatus.PROCESSING:
                outcome = await self._follow_up(generation, outcome)
                if outcome is None:
                    return
        except AuthorizationError as exc:
            if self._is_live(generation):
                self._fail(exc.message)
            return
        except Exception:
            logger.exception("Provider error for payment %s", self.transaction_id)
            if self._is_live(generation):
                self._fail(GENERIC_FAILURE_MESSAGE)
            return

        if outcome.status is PaymentStatus.FAILED:
            self._fail(outcome.message or GENERIC_FAILURE_MESSAGE)
            return

        self._complete(outcome)

        await self._clock.sleep(self._timings.display_delay)
        if not self._is_live(generation):
            return
        await self._notify()

    async def _follow_up(self, generation: int, pending: AuthorizationResult) -> Optional[AuthorizationResult]:
        # Gateway accepted the push but the subscriber has not authorized yet:
        # one confirmation round-trip, no further chaining.
        self._transition(SessionPhase.PROCESSING)
        self.result = self._build_result(PaymentStatus.PROCESSING)
        if pending.checkout_reference:
            logger.info("Payment %s awaiting confirmation (checkout=%s)",
                        self.transaction_id, pending.checkout_reference)

        await self._clock.sleep(self._timings.confirmation_delay)
        if not self._is_live(generation):
            return None

        outcome = await self._provider.confirm(self.transaction_id)
        if not self._is_live(generation):
            return None
        if not is_terminal_status(outcome.status):
            logger.warning("Payment %s still processing after confirmation; waiting on caller",
                           self.transaction_id)
            return None
        return outcome

    def _build_result(self, status: PaymentStatus, **extra: Any) -> PaymentResult:
        return PaymentResult(
            transaction_id=self.transaction_id,
            status=status,
            amount=self.amount,
            phone_number=self.phone_number,
            **extra,
        )

    def _complete(self, outcome: AuthorizationResult) -> None:
        self.result = self._build_result(
            PaymentStatus.SUCCESS,
            receipt_id=outcome.receipt_id or self._ids.receipt_id(),
            completed_at=outcome.timestamp or self._clock.now(),
        )
        self._transition(SessionPhase.COMPLETED)

    def _fail(self, message: str) -> None:
        self.last_error = message
        self.result = self._build_result(PaymentStatus.FAILED, error_message=message)
        self._transition(SessionPhase.FAILED)

    async def _notify(self) -> None:
        if self._notified or self._on_complete is None:
            return
        self._notified = True
        try:
            outcome = self._on_complete(self.result)
            if hasattr(outcome, "__await__"):
                await outcome
        except Exception:
            logger.exception("Completion callback failed for payment %s (order %s)",
                             self.transaction_id, self.order_id)
