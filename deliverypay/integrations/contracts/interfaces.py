from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PaymentStatus(str, Enum):
    SUCCESS = "success"
    PROCESSING = "processing"
    FAILED = "failed"


class SessionPhase(str, Enum):
    IDLE = "idle"
    INITIATING = "initiating"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Provider(str, Enum):
    MPESA = "MPESA"


# ---------------------------------------------------------------------------
# Shared data models
# ---------------------------------------------------------------------------

@dataclass
class AuthorizationResult:
    """What a provider answers for one authorize/confirm call."""
    status: PaymentStatus
    receipt_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    checkout_reference: Optional[str] = None
    message: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentResult:
    transaction_id: str
    status: PaymentStatus
    amount: float
    phone_number: str                    # normalized, 254XXXXXXXXX
    receipt_id: Optional[str] = None     # success only
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None  # failed only

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "status": self.status.value,
            "amount": self.amount,
            "phone_number": self.phone_number,
            "receipt_id": self.receipt_id,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error_message": self.error_message,
        }


# ---------------------------------------------------------------------------
# Abstract provider interface
# ---------------------------------------------------------------------------

class AuthorizationProvider(ABC):
    """Every mobile money gateway client must implement this interface."""

    @property
    @abstractmethod
    def provider(self) -> Provider:
        """Return the provider enum value."""

    @abstractmethod
    async def authorize(self, phone_number: str, amount: float, transaction_id: str) -> AuthorizationResult:
        """Push an authorization prompt to the subscriber.

        Returns a SUCCESS or PROCESSING result; raises AuthorizationError when
        the gateway or the subscriber rejects the request.
        """

    @abstractmethod
    async def confirm(self, transaction_id: str) -> AuthorizationResult:
        """Resolve a request that was left PROCESSING by authorize()."""
