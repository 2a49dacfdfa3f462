import json

import httpx
import pytest

from deliverypay.integrations.clients.real_http.mpesa import RealMpesaClient
from deliverypay.integrations.contracts.interfaces import PaymentStatus
from deliverypay.integrations.contracts.payments import AuthorizationError


def _client(handler, **kwargs):
    return RealMpesaClient(
        base_url="https://mpesa.bridge.test/",
        api_key="bridge-key",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_authorize_sends_push_and_returns_processing():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "CheckoutRequestID": "ws_CO_181020260900",
            "ResponseCode": "0",
            "ResponseDescription": "Success. Request accepted for processing",
            "CustomerMessage": "Success. Request accepted for processing",
        })

    client = _client(handler)
    result = await client.authorize("254712345678", 1500.0, "TXN0001")

    assert result.status is PaymentStatus.PROCESSING
    assert result.checkout_reference == "ws_CO_181020260900"
    request = seen[0]
    assert str(request.url) == "https://mpesa.bridge.test/payments/stk-push"
    assert request.headers["Authorization"] == "Bearer bridge-key"
    assert json.loads(request.content) == {
        "phone_number": "254712345678",
        "amount": 1500.0,
        "reference": "TXN0001",
    }


@pytest.mark.asyncio
async def test_rejected_push_raises_authorization_error():
    def handler(request):
        return httpx.Response(200, json={
            "CheckoutRequestID": "ws_CO_1",
            "ResponseCode": "1",
            "ResponseDescription": "The balance is insufficient for the transaction",
        })

    with pytest.raises(AuthorizationError) as exc_info:
        await _client(handler).authorize("254712345678", 1500.0, "TXN0001")

    assert exc_info.value.message == "The balance is insufficient for the transaction"
    assert exc_info.value.code == "1"


@pytest.mark.asyncio
async def test_rejection_without_checkout_id_keeps_gateway_message():
    def handler(request):
        return httpx.Response(200, json={"ResponseCode": "1032", "ResponseDescription": "Request cancelled by user"})

    with pytest.raises(AuthorizationError) as exc_info:
        await _client(handler).authorize("254712345678", 1500.0, "TXN0001")

    assert exc_info.value.message == "Request cancelled by user"
    assert exc_info.value.code == "1032"


@pytest.mark.asyncio
async def test_accepted_push_without_checkout_id_is_bad_response():
    def handler(request):
        return httpx.Response(200, json={"ResponseCode": "0", "ResponseDescription": "Accepted"})

    with pytest.raises(AuthorizationError) as exc_info:
        await _client(handler).authorize("254712345678", 1500.0, "TXN0001")

    assert exc_info.value.code == "bad_response"


@pytest.mark.asyncio
async def test_invalid_request_never_reaches_gateway():
    def handler(request):
        raise AssertionError("gateway should not be called")

    with pytest.raises(AuthorizationError) as exc_info:
        await _client(handler).authorize("12345", 0, "TXN0001")

    assert exc_info.value.code == "invalid_request"


@pytest.mark.asyncio
async def test_confirm_uses_checkout_reference():
    seen = []

    def handler(request):
        seen.append(request)
        if request.method == "POST":
            return httpx.Response(200, json={"CheckoutRequestID": "ws_CO_42", "ResponseCode": "0"})
        return httpx.Response(200, json={
            "status": "Completed",
            "mpesa_receipt_number": "QJT7ABC123",
            "transaction_date": "2026-10-18T09:00:05Z",
        })

    client = _client(handler)
    await client.authorize("254712345678", 1500.0, "TXN0001")
    result = await client.confirm("TXN0001")

    assert seen[1].url.path == "/payments/status/ws_CO_42"
    assert result.status is PaymentStatus.SUCCESS
    assert result.receipt_id == "QJT7ABC123"
    assert result.timestamp.year == 2026


@pytest.mark.asyncio
async def test_confirm_failed_status_raises():
    def handler(request):
        return httpx.Response(200, json={"status": "CANCELLED", "result_desc": "Request cancelled by user"})

    with pytest.raises(AuthorizationError) as exc_info:
        await _client(handler).confirm("TXN0009")

    assert exc_info.value.message == "Request cancelled by user"


@pytest.mark.asyncio
async def test_http_errors_become_authorization_errors():
    def handler(request):
        return httpx.Response(503, json={})

    with pytest.raises(AuthorizationError) as exc_info:
        await _client(handler).authorize("254712345678", 1500.0, "TXN0001")

    assert exc_info.value.code == "503"


@pytest.mark.asyncio
async def test_missing_base_url_is_reported(monkeypatch):
    monkeypatch.delenv("MPESA_API_URL", raising=False)
    client = RealMpesaClient(base_url="")

    with pytest.raises(AuthorizationError) as exc_info:
        await client.confirm("TXN0001")

    assert exc_info.value.code == "not_configured"
