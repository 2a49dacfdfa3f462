"""
Time and identifier sources for the payment session.

Both are injected so that tests can drive the session without real
wall-clock delays or random tokens.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone


class Clock:
    """Wall clock backed by asyncio."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class IdGenerator:
    """Random transaction and receipt identifiers."""

    def transaction_id(self) -> str:
        return f"TXN{uuid.uuid4().hex[:12].upper()}"

    def receipt_id(self) -> str:
        return f"MPE{uuid.uuid4().hex[:8].upper()}"


@dataclass(frozen=True)
class PaymentTimings:
    """Fixed delays of the collection flow, in seconds."""

    initiation_delay: float = 1.0     # round-trip to the gateway before the push
    provider_delay: float = 2.0       # mock gateway answering the push
    confirmation_delay: float = 5.0   # webhook/poll for a PROCESSING push
    display_delay: float = 2.0        # result shown before notifying the caller
