"""
Integrations layer.
This package contains all code used to communicate with external systems such as:
- ERPNext (sales orders, customers, addresses, payment entries)
- M-Pesa STK push gateways

Key rule:
- The payment session and the API MUST NOT call external APIs directly.
- They go through the clients under deliverypay/integrations/clients.
- We use MOCK clients during development and swap to REAL_HTTP clients when configured.
"""

from .contracts.erp import (
    Address,
    Customer,
    ERPBackend,
    OrderItem,
    PaymentEntry,
    SalesOrder,
    total_paid,
)
from .contracts.interfaces import (
    AuthorizationProvider,
    AuthorizationResult,
    PaymentResult,
    PaymentStatus,
    Provider,
    SessionPhase,
)
from .contracts.payments import (
    AuthorizationError,
    DoubleStartError,
    IllegalTransitionError,
    PaymentError,
    PhoneValidationError,
    STKPushRequest,
    STKPushResponse,
    is_terminal_phase,
    is_terminal_status,
    validate_stk_push_request,
)

__all__ = [
    # erp
    "Address", "Customer", "ERPBackend", "OrderItem", "PaymentEntry", "SalesOrder", "total_paid",
    # interfaces
    "AuthorizationProvider", "AuthorizationResult", "PaymentResult", "PaymentStatus",
    "Provider", "SessionPhase",
    # payments
    "AuthorizationError", "DoubleStartError", "IllegalTransitionError", "PaymentError",
    "PhoneValidationError", "STKPushRequest", "STKPushResponse",
    "is_terminal_phase", "is_terminal_status", "validate_stk_push_request",
]
