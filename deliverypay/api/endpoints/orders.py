"""
Order and payment-entry listings read from ERPNext.

Customer and address lookups degrade to null instead of failing the request.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Depends, HTTPException

from deliverypay.api.dependencies import get_erp, get_registry
from deliverypay.integrations.clients.mocks.erpnext import ERPRecordNotFound
from deliverypay.integrations.clients.real_http.erpnext import ERPNextError
from deliverypay.integrations.contracts.erp import COMPLETED_STATUS, ERPBackend, PaymentEntry, SalesOrder, total_paid
from deliverypay.integrations.policy.response_wrappers import IntegrationResponseError
from deliverypay.payments.registry import PaymentSessionRegistry

api = APIRouter()
orders_api = api


async def _load_record(fetch: Callable[[str], Awaitable[Any]], name: str, doctype: str) -> Any:
    try:
        return await fetch(name)
    except ERPRecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ERPNextError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail=f"{doctype} {name} not found") from e
        raise HTTPException(status_code=502, detail={"message": str(e), "stage": "erpnext"}) from e
    except IntegrationResponseError as e:
        raise HTTPException(
            status_code=502,
            detail={"message": str(e), "stage": "erpnext_response_validation", "payload": e.payload},
        ) from e


async def load_order(erp: ERPBackend, order_id: str) -> SalesOrder:
    return await _load_record(erp.fetch_order_detail, order_id, "Sales Order")


def _with_local_status(order: SalesOrder, registry: PaymentSessionRegistry) -> Dict[str, Any]:
    body = order.model_dump()
    if registry.is_paid(order.name):
        body["status"] = COMPLETED_STATUS
    return body


@api.get("/orders", tags=["Orders"])
async def list_orders(
    erp: ERPBackend = Depends(get_erp),
    registry: PaymentSessionRegistry = Depends(get_registry),
):
    orders = await erp.fetch_orders_with_items()
    return {"orders": [_with_local_status(o, registry) for o in orders], "count": len(orders)}


@api.get("/orders/{order_id}", tags=["Orders"])
async def get_order(
    order_id: str,
    erp: ERPBackend = Depends(get_erp),
    registry: PaymentSessionRegistry = Depends(get_registry),
):
    order = await load_order(erp, order_id)
    customer, address = await asyncio.gather(
        erp.fetch_customer(order.customer),
        erp.fetch_address(order.customer),
    )
    paid = registry.paid_result(order_id)
    return {
        "order": _with_local_status(order, registry),
        "customer": customer.model_dump() if customer else None,
        "address": address.model_dump() if address else None,
        "payment": paid.to_dict() if paid else None,
    }


@api.get("/payments/today", tags=["Orders"])
async def todays_payments(erp: ERPBackend = Depends(get_erp)):
    entries = await erp.fetch_todays_payments()
    return {
        "payments": [e.model_dump() for e in entries],
        "count": len(entries),
        "total": total_paid(entries),
    }


@api.get("/payments/{payment_name}", tags=["Orders"])
async def get_payment_entry(payment_name: str, erp: ERPBackend = Depends(get_erp)):
    entry: PaymentEntry = await _load_record(erp.fetch_payment_detail, payment_name, "Payment Entry")
    return entry.model_dump()
