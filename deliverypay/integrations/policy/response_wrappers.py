from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from deliverypay.integrations.contracts.interfaces import AuthorizationResult, PaymentStatus
from deliverypay.integrations.contracts.payments import STKPushResponse

ModelT = TypeVar("ModelT", bound=BaseModel)


class IntegrationResponseError(ValueError):
    def __init__(self, message: str, *, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.payload = payload or {}


class STKPushResponseModel(BaseModel):
    transaction_id: str
    checkout_request_id: str = ""
    response_code: str
    response_description: str
    customer_message: str = ""


# ---------------------------------------------------------------------------
# ERPNext resources
# ---------------------------------------------------------------------------

def unwrap_resource(raw: Any, model_type: Type[ModelT]) -> ModelT:
    """Validate a single `{"data": {...}}` ERPNext resource payload."""
    data = _data_field(raw)
    if not isinstance(data, dict):
        raise IntegrationResponseError(f"Expected a {model_type.__name__} object.", payload=_as_payload(raw))
    return _build_model(model_type, data, data)


def unwrap_resource_list(raw: Any, model_type: Type[ModelT]) -> List[ModelT]:
    """Validate a `{"data": [...]}` ERPNext listing; a missing list is empty."""
    data = _data_field(raw)
    if data is None:
        return []
    if not isinstance(data, list):
        raise IntegrationResponseError(f"Expected a list of {model_type.__name__}.", payload=_as_payload(raw))
    return [_build_model(model_type, item, item) for item in data]


# ---------------------------------------------------------------------------
# M-Pesa gateway
# ---------------------------------------------------------------------------

def normalize_stk_push_response(raw: Dict[str, Any], *, fallback_transaction_id: str) -> STKPushResponse:
    model = _build_model(
        STKPushResponseModel,
        {
            "transaction_id": str(_first_non_empty(raw, "transaction_id", "TransactionID", default=fallback_transaction_id)),
            "checkout_request_id": str(_first_non_empty(raw, "checkout_request_id", "CheckoutRequestID", default="") or ""),
            "response_code": str(_first_non_empty(raw, "response_code", "ResponseCode")),
            "response_description": str(
                _first_non_empty(raw, "response_description", "ResponseDescription", default="")
                or ""
            ),
            "customer_message": str(_first_non_empty(raw, "customer_message", "CustomerMessage", default="") or ""),
        },
        raw,
    )
    return STKPushResponse(**model.model_dump())


def normalize_payment_status_response(raw: Dict[str, Any]) -> AuthorizationResult:
    status = _map_payment_status(_first_non_empty(raw, "status", "payment_status", default="processing"))
    timestamp = _parse_timestamp(_first_non_empty(raw, "transaction_date", "timestamp", default=""))
    return AuthorizationResult(
        status=status,
        receipt_id=_optional_str(raw, "mpesa_receipt_number", "receipt_id", "MpesaReceiptNumber"),
        timestamp=timestamp,
        checkout_reference=_optional_str(raw, "checkout_request_id", "CheckoutRequestID"),
        message=str(_first_non_empty(raw, "error_message", "result_desc", "message", default="") or ""),
        metadata={"gateway_raw": raw},
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _data_field(raw: Any) -> Any:
    if not isinstance(raw, dict):
        raise IntegrationResponseError("ERPNext response is not a JSON object.")
    return raw.get("data")


def _as_payload(raw: Any) -> Dict[str, Any]:
    return raw if isinstance(raw, dict) else {"raw": raw}


def _first_non_empty(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    if default is not None:
        return default
    raise IntegrationResponseError(f"Missing required field. Checked keys: {', '.join(keys)}", payload=data)


def _optional_str(data: Dict[str, Any], *keys: str) -> Optional[str]:
    value = _first_non_empty(data, *keys, default="")
    return str(value) if value else None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise IntegrationResponseError(f"Invalid transaction timestamp: {value!r}") from exc


def _map_payment_status(raw_status: Any) -> PaymentStatus:
    value = str(raw_status or "").strip().upper()
    mapping = {
        "PENDING": PaymentStatus.PROCESSING,
        "PROCESSING": PaymentStatus.PROCESSING,
        "SUCCESS": PaymentStatus.SUCCESS,
        "COMPLETED": PaymentStatus.SUCCESS,
        "FAILED": PaymentStatus.FAILED,
        "ERROR": PaymentStatus.FAILED,
        "CANCELLED": PaymentStatus.FAILED,
    }
    if value not in mapping:
        raise IntegrationResponseError(f"Unsupported payment status '{value}'.")
    return mapping[value]


def _build_model(model_type, payload: Dict[str, Any], raw: Dict[str, Any]):
    try:
        return model_type(**payload)
    except ValidationError as exc:
        raise IntegrationResponseError(f"Response validation failed: {exc}", payload=raw) from exc
