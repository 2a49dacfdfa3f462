"""
Payment contract — STK push wire shapes, the payment error taxonomy and
small helpers shared by the session and the provider clients.
"""

from dataclasses import dataclass
from typing import List, Optional

from .interfaces import PaymentStatus, SessionPhase

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class PaymentError(Exception):
    """Base class for every error raised by the payment core."""


class PhoneValidationError(PaymentError, ValueError):
    def __init__(self, phone_number: str, message: str = "Please enter a valid Kenyan phone number") -> None:
        super().__init__(message)
        self.phone_number = phone_number
        self.message = message


class AuthorizationError(PaymentError):
    """Gateway-level rejection: insufficient funds, user cancellation, gateway error."""

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class DoubleStartError(PaymentError):
    def __init__(self, phase: SessionPhase) -> None:
        super().__init__(f"Payment already started (phase={phase.value}).")
        self.phase = phase


class IllegalTransitionError(PaymentError):
    def __init__(self, current: SessionPhase, target: SessionPhase) -> None:
        super().__init__(f"Illegal payment transition {current.value} -> {target.value}.")
        self.current = current
        self.target = target


# ---------------------------------------------------------------------------
# STK push wire models
# ---------------------------------------------------------------------------


@dataclass
class STKPushRequest:
    phone_number: str
    amount: float
    reference: str


@dataclass
class STKPushResponse:
    transaction_id: str
    checkout_request_id: str
    response_code: str
    response_description: str
    customer_message: str = ""

    @property
    def accepted(self) -> bool:
        return self.response_code == "0"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def validate_stk_push_request(request: STKPushRequest) -> List[str]:
    """
    Return a list of validation errors.
    Empty list means the request is valid.
    """
    from deliverypay.payments.phone import is_valid_phone

    errors: List[str] = []

    if not request.reference:
        errors.append("reference is required")
    if not request.phone_number:
        errors.append("phone_number is required")
    elif not is_valid_phone(request.phone_number):
        errors.append(f"phone_number '{request.phone_number}' does not look valid")
    if request.amount <= 0:
        errors.append("amount must be greater than zero")

    return errors


def is_terminal_status(status: PaymentStatus) -> bool:
    """Return True if the payment has reached a final, non-changeable state."""
    return status in {PaymentStatus.SUCCESS, PaymentStatus.FAILED}


def is_terminal_phase(phase: SessionPhase) -> bool:
    return phase in {SessionPhase.COMPLETED, SessionPhase.FAILED}
