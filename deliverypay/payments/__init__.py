"""
M-Pesa collection core: phone normalization and the per-order payment session.
"""

from .clock import Clock, IdGenerator, PaymentTimings
from .phone import is_valid_phone, normalize_phone
from .registry import OrderAlreadyPaidError, PaymentSessionRegistry, SessionNotFoundError
from .session import PaymentSession, can_transition

__all__ = [
    "Clock", "IdGenerator", "PaymentTimings",
    "is_valid_phone", "normalize_phone",
    "OrderAlreadyPaidError", "PaymentSessionRegistry", "SessionNotFoundError",
    "PaymentSession", "can_transition",
]
