import json
from datetime import date

import httpx
import pytest

from deliverypay.integrations.clients.real_http.erpnext import ERPNextClient, ERPNextError
from deliverypay.utils.config_loader import ERPSettings

SETTINGS = ERPSettings(base_url="https://erp.test/", api_key="key123", api_secret="secret456")

ORDER_PAYLOAD = {
    "name": "SAL-ORD-2026-00012",
    "customer": "Java House Kilimani",
    "customer_name": "Java House Kilimani",
    "delivery_date": "2026-10-18",
    "grand_total": 12500,
    "status": "To Deliver and Bill",
    "docstatus": 1,
    "items": [
        {"item_code": "WC-AA-1KG", "item_name": "AA Roast 1kg", "qty": 5, "rate": 2100, "amount": 10500},
    ],
}


class Recorder:
    """Routes requests by path and remembers what was sent."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"exc_type": "DoesNotExistError"})
        status, body = route
        return httpx.Response(status, json=body)


def _client(routes, settings=SETTINGS):
    recorder = Recorder(routes)
    client = ERPNextClient(get_settings=lambda: settings, transport=httpx.MockTransport(recorder))
    return client, recorder


def test_resource_url_with_and_without_proxy():
    direct = ERPNextClient.resource_url(SETTINGS, "/api/resource/Customer/X")
    assert direct == "https://erp.test/api/resource/Customer/X"

    proxied = SETTINGS.model_copy(update={"use_proxy": True, "proxy_url": "https://cors.proxy.test/"})
    assert (
        ERPNextClient.resource_url(proxied, "/api/resource/Customer/X")
        == "https://cors.proxy.test/https://erp.test/api/resource/Customer/X"
    )


def test_headers_carry_token_auth_only_with_credentials():
    assert ERPNextClient.headers(SETTINGS)["Authorization"] == "token key123:secret456"
    assert "Authorization" not in ERPNextClient.headers(ERPSettings())


@pytest.mark.asyncio
async def test_fetch_orders_filters_deliverable_statuses():
    client, recorder = _client({
        ("GET", "/api/resource/Sales Order"): (200, {"data": [ORDER_PAYLOAD]}),
    })

    orders = await client.fetch_orders()

    assert [o.name for o in orders] == ["SAL-ORD-2026-00012"]
    sent = recorder.requests[0]
    assert sent.headers["Authorization"] == "token key123:secret456"
    filters = json.loads(sent.url.params["filters"])
    assert filters == [["status", "in", ["To Deliver and Bill", "To Deliver"]]]
    assert sent.url.params["order_by"] == "creation desc"


@pytest.mark.asyncio
async def test_fetch_orders_degrades_to_empty_list():
    client, _ = _client({("GET", "/api/resource/Sales Order"): (500, {"exc": "boom"})})
    assert await client.fetch_orders() == []


@pytest.mark.asyncio
async def test_fetch_order_detail_propagates_http_errors():
    client, _ = _client({})

    with pytest.raises(ERPNextError) as exc_info:
        await client.fetch_order_detail("SAL-ORD-MISSING")

    assert exc_info.value.status_code == 404
    assert str(exc_info.value) == "HTTP error! status: 404"


@pytest.mark.asyncio
async def test_fetch_orders_with_items_tolerates_failed_details():
    second = dict(ORDER_PAYLOAD, name="SAL-ORD-2026-00011", items=[])
    client, _ = _client({
        ("GET", "/api/resource/Sales Order"): (200, {"data": [ORDER_PAYLOAD, second]}),
        ("GET", "/api/resource/Sales Order/SAL-ORD-2026-00012"): (200, {"data": ORDER_PAYLOAD}),
    })

    orders = await client.fetch_orders_with_items()

    assert [len(o.items) for o in orders] == [1, 0]
    assert orders[0].items[0].item_code == "WC-AA-1KG"


@pytest.mark.asyncio
async def test_fetch_customer_missing_returns_none():
    client, _ = _client({})
    assert await client.fetch_customer("Nobody") is None


@pytest.mark.asyncio
async def test_fetch_address_falls_back_to_shipping():
    client, recorder = _client({
        ("GET", "/api/resource/Address/Kahawa Corner-Shipping-Shipping"): (
            200,
            {"data": {"name": "Kahawa Corner-Shipping-Shipping", "address_line1": "Moi Avenue", "city": "Nairobi"}},
        ),
    })

    address = await client.fetch_address("Kahawa Corner")

    assert address.city == "Nairobi"
    assert [r.url.path for r in recorder.requests] == [
        "/api/resource/Address/Kahawa Corner-Billing-Billing",
        "/api/resource/Address/Kahawa Corner-Shipping-Shipping",
    ]


@pytest.mark.asyncio
async def test_fetch_address_none_when_both_missing():
    client, _ = _client({})
    assert await client.fetch_address("Mama Njeri Kiosk") is None


@pytest.mark.asyncio
async def test_update_order_status_puts_status():
    client, recorder = _client({
        ("PUT", "/api/resource/Sales Order/SAL-ORD-2026-00012"): (
            200,
            {"data": dict(ORDER_PAYLOAD, status="Completed")},
        ),
    })

    order = await client.update_order_status("SAL-ORD-2026-00012", "Completed")

    assert order.status == "Completed"
    assert json.loads(recorder.requests[0].content) == {"status": "Completed"}


@pytest.mark.asyncio
async def test_fetch_todays_payments_filters_by_mode_and_date():
    client, recorder = _client({
        ("GET", "/api/resource/Payment Entry"): (200, {"data": [
            {
                "name": "ACC-PAY-2026-00031",
                "party": "Kahawa Corner",
                "party_name": "Kahawa Corner",
                "paid_amount": 3000,
                "posting_date": "2026-10-18",
                "mode_of_payment": "Mpesa-WELLCREEK COFFEE",
            },
        ]}),
    })

    payments = await client.fetch_todays_payments(today=date(2026, 10, 18))

    assert payments[0].paid_amount == 3000.0
    filters = json.loads(recorder.requests[0].url.params["filters"])
    assert ["mode_of_payment", "=", "Mpesa-WELLCREEK COFFEE"] in filters
    assert ["posting_date", "=", "2026-10-18"] in filters


@pytest.mark.asyncio
async def test_fetch_todays_payments_degrades_to_empty_list():
    client, _ = _client({("GET", "/api/resource/Payment Entry"): (403, {})})
    assert await client.fetch_todays_payments() == []


@pytest.mark.asyncio
async def test_settings_are_reread_on_every_request():
    current = {"settings": SETTINGS}
    recorder = Recorder({("GET", "/api/resource/Sales Order"): (200, {"data": []})})
    client = ERPNextClient(get_settings=lambda: current["settings"], transport=httpx.MockTransport(recorder))

    await client.fetch_orders()
    current["settings"] = SETTINGS.model_copy(update={"api_key": "rotated"})
    await client.fetch_orders()

    assert recorder.requests[0].headers["Authorization"] == "token key123:secret456"
    assert recorder.requests[1].headers["Authorization"] == "token rotated:secret456"


@pytest.mark.asyncio
async def test_test_connection_reports_outcome():
    ok_client, _ = _client({("GET", "/api/resource/Sales Order"): (200, {"data": []})})
    assert (await ok_client.test_connection())["ok"] is True

    bad_client, _ = _client({("GET", "/api/resource/Sales Order"): (401, {})})
    result = await bad_client.test_connection()
    assert result["ok"] is False
    assert "401" in result["message"]


@pytest.mark.asyncio
async def test_test_connection_uses_candidate_settings():
    recorder = Recorder({("GET", "/api/resource/Sales Order"): (200, {"data": []})})
    client = ERPNextClient(get_settings=lambda: SETTINGS, transport=httpx.MockTransport(recorder))

    candidate = ERPSettings(base_url="https://other.test", api_key="a", api_secret="b")
    await client.test_connection(candidate)

    assert recorder.requests[0].url.host == "other.test"
    assert recorder.requests[0].headers["Authorization"] == "token a:b"


@pytest.mark.asyncio
async def test_fetch_payment_detail():
    client, recorder = _client({
        ("GET", "/api/resource/Payment Entry/ACC-PAY-2026-00031"): (200, {"data": {
            "name": "ACC-PAY-2026-00031",
            "party": "Kahawa Corner",
            "party_name": "Kahawa Corner",
            "paid_amount": 3000,
            "posting_date": "2026-10-18",
            "reference_no": "MPEQ7H2K9LA",
            "mode_of_payment": "Mpesa-WELLCREEK COFFEE",
        }}),
    })

    entry = await client.fetch_payment_detail("ACC-PAY-2026-00031")

    assert entry.reference_no == "MPEQ7H2K9LA"
    assert recorder.requests[0].method == "GET"


@pytest.mark.asyncio
async def test_fetch_payment_detail_propagates_errors():
    client, _ = _client({})
    with pytest.raises(ERPNextError) as exc_info:
        await client.fetch_payment_detail("ACC-PAY-NOPE")
    assert exc_info.value.status_code == 404
