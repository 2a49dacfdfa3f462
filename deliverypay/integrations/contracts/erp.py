"""
ERP contracts.

Record shapes returned by ERPNext's `/api/resource/...` endpoints, as consumed
by the order and payment screens. Both clients/mocks/erpnext.py and
clients/real_http/erpnext.py return these models.

Unknown fields sent by ERPNext are ignored.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Sales Order statuses shown on the delivery list
DELIVERABLE_STATUSES = ("To Deliver and Bill", "To Deliver")
COMPLETED_STATUS = "Completed"

# Mode of payment used for M-Pesa collections in ERPNext
MPESA_MODE_OF_PAYMENT = "Mpesa-WELLCREEK COFFEE"


class OrderItem(BaseModel):
    item_code: str
    item_name: str
    qty: float
    rate: float
    amount: float
    description: Optional[str] = None


class SalesOrder(BaseModel):
    name: str
    customer: str
    customer_name: str
    delivery_date: Optional[str] = None
    grand_total: float
    status: str
    items: List[OrderItem] = Field(default_factory=list)
    customer_address: Optional[str] = None
    contact_mobile: Optional[str] = None
    contact_email: Optional[str] = None
    territory: Optional[str] = None
    payment_terms_template: Optional[str] = None


class Customer(BaseModel):
    customer_name: str
    mobile_no: Optional[str] = None
    email_id: Optional[str] = None
    territory: Optional[str] = None


class Address(BaseModel):
    name: str
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None


class PaymentEntry(BaseModel):
    name: str
    party: str
    party_name: str
    paid_amount: float
    posting_date: str
    reference_no: Optional[str] = None
    mode_of_payment: str


def billing_address_name(customer: str) -> str:
    return f"{customer}-Billing-Billing"


def shipping_address_name(customer: str) -> str:
    return f"{customer}-Shipping-Shipping"


def total_paid(entries: Iterable[PaymentEntry]) -> float:
    """Sum of `paid_amount` across the given payment entries."""
    return sum(entry.paid_amount for entry in entries)


# ---------------------------------------------------------------------------
# Abstract ERP interface
# ---------------------------------------------------------------------------

class ERPBackend(ABC):
    """Read side of ERPNext used by the delivery screens, plus the status push."""

    @abstractmethod
    async def fetch_orders(self) -> List[SalesOrder]:
        """Deliverable Sales Orders, newest first. Failures yield an empty list."""

    @abstractmethod
    async def fetch_order_detail(self, order_name: str) -> SalesOrder:
        """Full Sales Order including items. Failures propagate."""

    @abstractmethod
    async def fetch_customer(self, customer: str) -> Optional[Customer]:
        """Customer contact details, or None when unavailable."""

    @abstractmethod
    async def fetch_address(self, customer: str) -> Optional[Address]:
        """Billing address, else shipping address, else None."""

    @abstractmethod
    async def update_order_status(self, order_name: str, status: str) -> SalesOrder:
        """Write a new status onto the Sales Order. Failures propagate."""

    @abstractmethod
    async def fetch_todays_payments(self) -> List[PaymentEntry]:
        """Today's M-Pesa Payment Entries. Failures yield an empty list."""

    @abstractmethod
    async def fetch_payment_detail(self, payment_name: str) -> PaymentEntry:
        """A single Payment Entry. Failures propagate."""

    @abstractmethod
    async def test_connection(self, settings=None) -> Dict[str, Any]:
        """Probe the API with the given (or current) settings: {"ok": bool, "message": str}."""

    async def fetch_orders_with_items(self) -> List[SalesOrder]:
        """Deliverable orders enriched with their items.

        An order whose detail cannot be fetched is kept with no items.
        """
        orders = await self.fetch_orders()
        return list(await asyncio.gather(*(self._with_items(order) for order in orders)))

    async def _with_items(self, order: SalesOrder) -> SalesOrder:
        try:
            detail = await self.fetch_order_detail(order.name)
        except Exception as exc:
            logger.error("Error fetching details for order %s: %s", order.name, exc)
            return order.model_copy(update={"items": []})
        return order.model_copy(update={"items": detail.items})
