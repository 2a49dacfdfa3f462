#!/usr/bin/env python3
"""
Run the mock M-Pesa collection flow for a few phone numbers and print each
stage to the terminal.

The mock gateway decides by the last digit of the phone number:
  0-2 fail, 3-6 succeed at once, 7-9 go through a processing confirmation.

Usage (from repo root):
  python scripts/run_payment_demo.py
  python scripts/run_payment_demo.py --phones 0712345671 0712345675 --fast
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from deliverypay.integrations.clients.mocks.mpesa import MpesaMockClient
from deliverypay.integrations.contracts.payments import PhoneValidationError
from deliverypay.payments.clock import PaymentTimings
from deliverypay.payments.session import PaymentSession


def setup_logging():
    """Log to terminal at INFO so every transition is visible."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
    )


def print_stage(title: str, data: dict | str):
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60)
    if isinstance(data, dict):
        print(json.dumps(data, indent=2, default=str))
    else:
        print(data)
    print()


async def collect(phone: str, amount: float, timings: PaymentTimings) -> None:
    provider = MpesaMockClient(latency=timings.provider_delay)
    session = PaymentSession(
        f"DEMO-{phone}",
        provider,
        on_complete=lambda result: print_stage(f"COMPLETED {phone}", result.to_dict()),
        timings=timings,
    )
    try:
        session.start(phone, amount)
    except PhoneValidationError as e:
        print_stage(f"REJECTED {phone}", e.message)
        return

    await session.wait()
    print_stage(f"FINAL STATE {phone}", session.snapshot())


async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--phones", nargs="+", default=["0712345671", "0712345675", "0712345678", "12345"])
    parser.add_argument("--amount", type=float, default=1500.0)
    parser.add_argument("--fast", action="store_true", help="Use 0.1s delays instead of the real ones")
    args = parser.parse_args(argv)

    setup_logging()
    timings = PaymentTimings(0.1, 0.1, 0.1, 0.1) if args.fast else PaymentTimings()

    await asyncio.gather(*(collect(phone, args.amount, timings) for phone in args.phones))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
