"""
Tests for the payment gateway adapters and email delivery.
"""

import asyncio
from decimal import Decimal
from urllib.parse import parse_qs

import httpx
import pytest

from travel_booking.services import email_service
from travel_booking.services.email_service import deliver, send_review_thanks
from travel_booking.services.interfaces import EmailSender, GatewayUnavailable
from travel_booking.services.payment_gateway import OfflineGateway, StripeCheckoutGateway, amount_in_cents


async def _create(gateway, amount="1800.00"):
    return await gateway.create_checkout_session(
        Decimal(amount), "myr", "Langkawi Island Escape", "https://app.test/ok", "https://app.test/cancel", "d1",
    )


@pytest.mark.parametrize("amount, cents", [
    ("1800.00", 180000),
    ("583.3275", 58333),
    ("0.005", 1),
    ("0", 0),
])
def test_amount_in_cents(amount, cents):
    assert amount_in_cents(Decimal(amount)) == cents


@pytest.mark.asyncio
async def test_stripe_session_created():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"id": "cs_live_1", "url": "https://checkout.stripe.test/cs_live_1"})

    gateway = StripeCheckoutGateway("sk_test_x", transport=httpx.MockTransport(handler))
    session = await _create(gateway)

    assert session.id == "cs_live_1"
    assert session.url == "https://checkout.stripe.test/cs_live_1"
    assert seen["path"] == "/v1/checkout/sessions"
    assert seen["form"]["line_items[0][price_data][unit_amount]"] == ["180000"]
    assert seen["form"]["client_reference_id"] == ["d1"]


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(402, json={"error": {"message": "card declined"}}),
    httpx.Response(200, json={"object": "checkout.session"}),
    httpx.Response(200, text="<html>maintenance</html>"),
])
async def test_stripe_errors_become_gateway_unavailable(response):
    gateway = StripeCheckoutGateway("sk_test_x", transport=httpx.MockTransport(lambda request: response))
    with pytest.raises(GatewayUnavailable):
        await _create(gateway)


@pytest.mark.asyncio
async def test_stripe_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    gateway = StripeCheckoutGateway("sk_test_x", transport=httpx.MockTransport(handler))
    with pytest.raises(GatewayUnavailable):
        await _create(gateway)


@pytest.mark.asyncio
async def test_offline_gateway_goes_straight_to_success():
    session = await _create(OfflineGateway())
    assert session.id.startswith("offline_")
    assert session.url == "https://app.test/ok"


class SlowSender(EmailSender):
    async def send(self, to, subject, html_body):
        await asyncio.sleep(1)
        return True


@pytest.mark.asyncio
async def test_deliver_times_out(monkeypatch):
    monkeypatch.setattr(email_service.settings, "EMAIL_TIMEOUT_SECONDS", 0.05)
    warning = await deliver(SlowSender(), "review_invitation", "aisyah@example.com", "Hi", "<p>Hi</p>")
    assert warning == "The review invitation email to aisyah@example.com could not be sent."


@pytest.mark.asyncio
async def test_review_thanks_escapes_and_apologises(email_sender):
    warning = await send_review_thanks(email_sender, "aisyah@example.com", "<b>Aisyah</b>", "Tioman", 2)
    assert warning is None
    body = email_sender.outbox[0]["body"]
    assert "&lt;b&gt;Aisyah&lt;/b&gt;" in body
    assert "★★☆☆☆" in body
    assert "truly sorry" in body
