from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from deliverypay.api.endpoints.orders import load_order
from deliverypay.api.dependencies import get_erp, get_registry
from deliverypay.integrations.contracts.erp import ERPBackend
from deliverypay.integrations.contracts.payments import (
    DoubleStartError,
    IllegalTransitionError,
    PhoneValidationError,
)
from deliverypay.payments.registry import (
    OrderAlreadyPaidError,
    PaymentSessionRegistry,
    SessionNotFoundError,
)

api = APIRouter()
payments_api = api


class StartPaymentRequest(BaseModel):
    phone_number: Optional[str] = Field(
        default=None,
        description="Subscriber to receive the STK push; defaults to the order's contact mobile",
    )


def _session_or_404(registry: PaymentSessionRegistry, order_id: str):
    try:
        return registry.require(order_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@api.post("/orders/{order_id}/payment", status_code=status.HTTP_202_ACCEPTED, tags=["Payments"])
async def start_payment(
    order_id: str,
    request: StartPaymentRequest,
    erp: ERPBackend = Depends(get_erp),
    registry: PaymentSessionRegistry = Depends(get_registry),
):
    # The amount collected is always the order total, never client supplied.
    order = await load_order(erp, order_id)
    phone_number = request.phone_number or order.contact_mobile or ""

    try:
        session = registry.start(order_id, phone_number, order.grand_total)
    except PhoneValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": e.message, "phone_number": e.phone_number},
        ) from e
    except (DoubleStartError, OrderAlreadyPaidError) as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    return session.snapshot()


@api.get("/orders/{order_id}/payment", tags=["Payments"])
async def get_payment(order_id: str, registry: PaymentSessionRegistry = Depends(get_registry)) -> Dict[str, Any]:
    session = registry.get(order_id)
    if session is not None:
        return session.snapshot()

    paid = registry.paid_result(order_id)
    if paid is not None:
        return {"order_id": order_id, "phase": "completed", "terminal": True, "result": paid.to_dict()}

    raise HTTPException(status_code=404, detail=f"No payment session for order {order_id}.")


@api.post("/orders/{order_id}/payment/reset", tags=["Payments"])
async def reset_payment(order_id: str, registry: PaymentSessionRegistry = Depends(get_registry)):
    session = _session_or_404(registry, order_id)
    try:
        session.reset()
    except IllegalTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return session.snapshot()


@api.post("/orders/{order_id}/payment/retry", status_code=status.HTTP_202_ACCEPTED, tags=["Payments"])
async def retry_payment(order_id: str, registry: PaymentSessionRegistry = Depends(get_registry)):
    _session_or_404(registry, order_id)
    try:
        session = registry.retry(order_id)
    except (IllegalTransitionError, OrderAlreadyPaidError) as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return session.snapshot()


@api.delete("/orders/{order_id}/payment", tags=["Payments"])
async def cancel_payment(order_id: str, registry: PaymentSessionRegistry = Depends(get_registry)):
    _session_or_404(registry, order_id)
    registry.close(order_id)
    return {"success": True, "order_id": order_id}
