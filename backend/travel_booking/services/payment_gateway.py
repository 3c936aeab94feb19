"""
Checkout session gateways.

Stripe is called over its REST API with httpx rather than through the Stripe
SDK: the flow needs a single form-encoded POST, and httpx is already the
HTTP client the test suite drives the app with.
"""

import uuid
from decimal import Decimal
from typing import Optional

import httpx

from travel_booking.core.config import get_settings
from travel_booking.core.logging import get_logger
from travel_booking.core.metrics import payment_gateway_errors
from travel_booking.services.interfaces.payment_gateway import (
    CheckoutSession, GatewayUnavailable, PaymentGateway,
)

logger = get_logger(__name__)
settings = get_settings()


def amount_in_cents(amount: Decimal) -> int:
    """Gateways take the smallest currency unit. Rounded half-up to the cent first."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding="ROUND_HALF_UP"))


class StripeCheckoutGateway(PaymentGateway):
    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com/v1",
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def create_checkout_session(
        self,
        amount: Decimal,
        currency: str,
        description: str,
        success_url: str,
        cancel_url: str,
        reference: str,
    ) -> CheckoutSession:
        form = {
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": reference,
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": currency,
            "line_items[0][price_data][unit_amount]": str(amount_in_cents(amount)),
            "line_items[0][price_data][product_data][name]": description,
            "metadata[reference]": reference,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.api_base}/checkout/sessions",
                    data=form,
                    auth=(self.secret_key, ""),
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            payment_gateway_errors.inc()
            logger.error(
                "checkout_session_failed",
                reference=reference,
                status_code=e.response.status_code,
                body=e.response.text[:500],
            )
            raise GatewayUnavailable(f"Gateway returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            payment_gateway_errors.inc()
            logger.error("checkout_session_failed", reference=reference, error=str(e))
            raise GatewayUnavailable(str(e)) from e

        try:
            payload = response.json()
            session = CheckoutSession(id=payload["id"], url=payload["url"])
        except (ValueError, KeyError, TypeError) as e:
            payment_gateway_errors.inc()
            logger.error("checkout_session_malformed", reference=reference)
            raise GatewayUnavailable("Malformed checkout session response") from e

        logger.info("checkout_session_created", reference=reference, session_id=session.id)
        return session


class OfflineGateway(PaymentGateway):
    """Issues local session ids and sends the customer straight to the success URL."""

    async def create_checkout_session(
        self,
        amount: Decimal,
        currency: str,
        description: str,
        success_url: str,
        cancel_url: str,
        reference: str,
    ) -> CheckoutSession:
        session_id = f"offline_{uuid.uuid4().hex}"
        logger.info(
            "checkout_session_created",
            reference=reference,
            session_id=session_id,
            gateway="offline",
            amount_cents=amount_in_cents(amount),
            currency=currency,
        )
        return CheckoutSession(id=session_id, url=success_url)


def get_payment_gateway() -> PaymentGateway:
    """
    Strategy selection: Stripe when STRIPE_SECRET_KEY is set, offline otherwise.
    Used as a FastAPI dependency.
    """
    if settings.STRIPE_SECRET_KEY:
        return StripeCheckoutGateway(
            settings.STRIPE_SECRET_KEY,
            api_base=settings.STRIPE_API_BASE,
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
        )
    return OfflineGateway()
