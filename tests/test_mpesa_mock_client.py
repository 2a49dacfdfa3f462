import asyncio

import pytest

from deliverypay.integrations.clients.mocks.mpesa import FAILURE_MESSAGE, MpesaMockClient
from deliverypay.integrations.contracts.interfaces import PaymentStatus, Provider
from deliverypay.integrations.contracts.payments import AuthorizationError


@pytest.fixture
def instant_provider(clock, ids):
    return MpesaMockClient(clock=clock, ids=ids, latency=0)


def test_provider_identity(instant_provider):
    assert instant_provider.provider is Provider.MPESA


@pytest.mark.asyncio
@pytest.mark.parametrize("last_digit", ["0", "1", "2"])
async def test_low_digits_are_declined(instant_provider, last_digit):
    with pytest.raises(AuthorizationError) as exc_info:
        await instant_provider.authorize(f"071234567{last_digit}", 500.0, "TXN-A")

    assert exc_info.value.message == FAILURE_MESSAGE
    assert exc_info.value.code == "declined"
    assert instant_provider.get_payment("TXN-A") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("last_digit", ["3", "4", "5", "6"])
async def test_middle_digits_succeed_immediately(instant_provider, clock, last_digit):
    result = await instant_provider.authorize(f"071234567{last_digit}", 500.0, "TXN-B")

    assert result.status is PaymentStatus.SUCCESS
    assert result.receipt_id == "MPE0001"
    assert result.timestamp == clock.now()
    assert instant_provider.get_payment("TXN-B") is result


@pytest.mark.asyncio
@pytest.mark.parametrize("last_digit", ["7", "8", "9"])
async def test_high_digits_need_confirmation(instant_provider, last_digit):
    pending = await instant_provider.authorize(f"071234567{last_digit}", 500.0, "TXN-C")

    assert pending.status is PaymentStatus.PROCESSING
    assert pending.receipt_id is None
    assert pending.checkout_reference == "CHKTXN-C"

    confirmed = await instant_provider.confirm("TXN-C")
    assert confirmed.status is PaymentStatus.SUCCESS
    assert confirmed.receipt_id == "MPE0001"
    assert instant_provider.get_payment("TXN-C") is confirmed


@pytest.mark.asyncio
async def test_outcome_uses_normalized_number(instant_provider):
    result = await instant_provider.authorize("+254 712 345 675", 500.0, "TXN-D")
    assert result.status is PaymentStatus.SUCCESS


@pytest.mark.asyncio
async def test_invalid_number_is_rejected(instant_provider):
    with pytest.raises(AuthorizationError) as exc_info:
        await instant_provider.authorize("555-0199", 500.0, "TXN-E")
    assert exc_info.value.code == "invalid_msisdn"


@pytest.mark.asyncio
async def test_latency_goes_through_the_clock(provider, clock):
    call = provider.authorize("0712345675", 500.0, "TXN-F")

    task = asyncio.ensure_future(call)
    await clock.advance(1.0)
    assert not task.done()

    await clock.advance(1.0)
    assert task.done()
    assert task.result().status is PaymentStatus.SUCCESS
    assert clock.sleeps == [2.0]


@pytest.mark.asyncio
async def test_receipts_are_unique_per_payment(instant_provider):
    first = await instant_provider.authorize("0712345675", 500.0, "TXN-G")
    second = await instant_provider.authorize("0712345675", 500.0, "TXN-H")
    assert first.receipt_id != second.receipt_id
