"""
ERPNext — MOCK client.

⚠️  In-memory stand-in for the ERPNext REST API, used for development and
    tests. Mirrors ERPNextClient's surface, including its graceful
    degradation for missing customers and addresses.
"""

import copy
import logging
from datetime import date
from typing import Dict, List, Optional

from deliverypay.integrations.contracts.erp import (
    DELIVERABLE_STATUSES,
    MPESA_MODE_OF_PAYMENT,
    Address,
    Customer,
    ERPBackend,
    OrderItem,
    PaymentEntry,
    SalesOrder,
    billing_address_name,
    shipping_address_name,
)

logger = logging.getLogger(__name__)


class ERPRecordNotFound(LookupError):
    pass


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

def _seed_orders() -> List[SalesOrder]:
    return [
        SalesOrder(
            name="SAL-ORD-2026-00012",
            customer="Java House Kilimani",
            customer_name="Java House Kilimani",
            delivery_date="2026-10-18",
            grand_total=12_500.0,
            status="To Deliver and Bill",
            contact_mobile="0712345675",
            territory="Nairobi",
            items=[
                OrderItem(item_code="WC-AA-1KG", item_name="Wellcreek AA Roast 1kg", qty=5, rate=2_100.0, amount=10_500.0),
                OrderItem(item_code="WC-FILTER", item_name="Paper Filters (100)", qty=4, rate=500.0, amount=2_000.0),
            ],
        ),
        SalesOrder(
            name="SAL-ORD-2026-00011",
            customer="Kahawa Corner",
            customer_name="Kahawa Corner",
            delivery_date="2026-10-18",
            grand_total=4_200.0,
            status="To Deliver",
            contact_mobile="0722000118",
            territory="Nairobi",
            items=[
                OrderItem(item_code="WC-PB-500G", item_name="Wellcreek Peaberry 500g", qty=3, rate=1_400.0, amount=4_200.0),
            ],
        ),
        SalesOrder(
            name="SAL-ORD-2026-00010",
            customer="Mama Njeri Kiosk",
            customer_name="Mama Njeri Kiosk",
            delivery_date="2026-10-17",
            grand_total=1_800.0,
            status="To Deliver and Bill",
            contact_mobile="0733111221",
            items=[
                OrderItem(item_code="WC-HOUSE-250G", item_name="House Blend 250g", qty=3, rate=600.0, amount=1_800.0),
            ],
        ),
    ]


_MOCK_CUSTOMERS: Dict[str, Customer] = {
    "Java House Kilimani": Customer(
        customer_name="Java House Kilimani", mobile_no="0712345675", email_id="kilimani@javahouse.test", territory="Nairobi",
    ),
    "Kahawa Corner": Customer(customer_name="Kahawa Corner", mobile_no="0722000118", territory="Nairobi"),
}

_MOCK_ADDRESSES: Dict[str, Address] = {
    billing_address_name("Java House Kilimani"): Address(
        name=billing_address_name("Java House Kilimani"),
        address_line1="Argwings Kodhek Rd",
        city="Nairobi",
        state="Nairobi",
        pincode="00100",
    ),
    shipping_address_name("Kahawa Corner"): Address(
        name=shipping_address_name("Kahawa Corner"),
        address_line1="Moi Avenue, Shop 14",
        city="Nairobi",
    ),
}


def _seed_payments(today: date) -> List[PaymentEntry]:
    return [
        PaymentEntry(
            name="ACC-PAY-2026-00031",
            party="Kahawa Corner",
            party_name="Kahawa Corner",
            paid_amount=3_000.0,
            posting_date=today.isoformat(),
            reference_no="MPEQ7H2K9LA",
            mode_of_payment=MPESA_MODE_OF_PAYMENT,
        ),
        PaymentEntry(
            name="ACC-PAY-2026-00030",
            party="Java House Kilimani",
            party_name="Java House Kilimani",
            paid_amount=8_750.0,
            posting_date=today.isoformat(),
            reference_no="MPEX1B4ZT0C",
            mode_of_payment=MPESA_MODE_OF_PAYMENT,
        ),
    ]


# ---------------------------------------------------------------------------
# Mock client
# ---------------------------------------------------------------------------

class ERPNextMockClient(ERPBackend):
    def __init__(self, today: Optional[date] = None):
        self._today = today or date.today()

        # In-memory stores (reset on restart)
        self._orders: Dict[str, SalesOrder] = {o.name: o for o in _seed_orders()}
        self._customers: Dict[str, Customer] = dict(_MOCK_CUSTOMERS)
        self._addresses: Dict[str, Address] = dict(_MOCK_ADDRESSES)
        self._payments: Dict[str, PaymentEntry] = {p.name: p for p in _seed_payments(self._today)}

        logger.info("[ERPNEXT MOCK] Client initialised with %d orders", len(self._orders))

    def add_order(self, order: SalesOrder) -> None:
        self._orders[order.name] = order

    async def fetch_orders(self) -> List[SalesOrder]:
        return [
            order.model_copy(update={"items": []})
            for order in self._orders.values()
            if order.status in DELIVERABLE_STATUSES
        ]

    async def fetch_order_detail(self, order_name: str) -> SalesOrder:
        order = self._orders.get(order_name)
        if order is None:
            raise ERPRecordNotFound(f"[ERPNEXT MOCK] Sales Order '{order_name}' not found.")
        return copy.deepcopy(order)

    async def update_order_status(self, order_name: str, status: str) -> SalesOrder:
        order = self._orders.get(order_name)
        if order is None:
            raise ERPRecordNotFound(f"[ERPNEXT MOCK] Sales Order '{order_name}' not found.")
        order.status = status
        logger.info("[ERPNEXT MOCK] Sales Order %s status → %s", order_name, status)
        return copy.deepcopy(order)

    async def fetch_customer(self, customer: str) -> Optional[Customer]:
        found = self._customers.get(customer)
        if not found:
            logger.warning("[ERPNEXT MOCK] Customer not found id=%s", customer)
        return found

    async def fetch_address(self, customer: str) -> Optional[Address]:
        return (
            self._addresses.get(billing_address_name(customer))
            or self._addresses.get(shipping_address_name(customer))
        )

    async def fetch_todays_payments(self) -> List[PaymentEntry]:
        today = self._today.isoformat()
        return [
            p for p in self._payments.values()
            if p.posting_date == today and p.mode_of_payment == MPESA_MODE_OF_PAYMENT
        ]

    async def fetch_payment_detail(self, payment_name: str) -> PaymentEntry:
        payment = self._payments.get(payment_name)
        if payment is None:
            raise ERPRecordNotFound(f"[ERPNEXT MOCK] Payment Entry '{payment_name}' not found.")
        return payment

    async def test_connection(self, settings=None) -> Dict[str, object]:
        return {"ok": True, "message": "Connection successful! (mock ERPNext)"}
