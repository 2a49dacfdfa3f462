"""Pytest fixtures for the payment session and integration clients."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

import pytest

from deliverypay.integrations.clients.mocks.mpesa import MpesaMockClient
from deliverypay.payments.clock import Clock, IdGenerator


async def settle(rounds: int = 20) -> None:
    """Let every ready task run until it blocks again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ManualClock(Clock):
    """Clock whose sleeps only end when the test advances time."""

    def __init__(self, start: datetime = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)) -> None:
        self._start = start
        self.elapsed = 0.0
        self.sleeps: List[float] = []
        self._waiters: List[Tuple[float, int, asyncio.Future]] = []
        self._seq = 0

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self.elapsed)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        future = asyncio.get_running_loop().create_future()
        self._seq += 1
        self._waiters.append((self.elapsed + seconds, self._seq, future))
        await future

    @property
    def pending(self) -> int:
        return sum(1 for _, _, future in self._waiters if not future.done())

    async def advance(self, seconds: float) -> None:
        target = self.elapsed + seconds
        await settle()
        while True:
            due = sorted(
                (w for w in self._waiters if w[0] <= target and not w[2].done()),
                key=lambda w: (w[0], w[1]),
            )
            if not due:
                break
            waiter = due[0]
            self._waiters.remove(waiter)
            self.elapsed = max(self.elapsed, waiter[0])
            waiter[2].set_result(None)
            await settle()
        self.elapsed = target
        self._waiters = [w for w in self._waiters if not w[2].done()]


class SequentialIds(IdGenerator):
    def __init__(self) -> None:
        self.transactions = 0
        self.receipts = 0

    def transaction_id(self) -> str:
        self.transactions += 1
        return f"TXN{self.transactions:04d}"

    def receipt_id(self) -> str:
        self.receipts += 1
        return f"MPE{self.receipts:04d}"


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def ids():
    return SequentialIds()


@pytest.fixture
def provider(clock, ids):
    return MpesaMockClient(clock=clock, ids=ids)
