"""
Payment gateway interface.
The booking flow only needs a hosted checkout session; what happens on the
gateway's page after the redirect is not modelled here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


class GatewayUnavailable(Exception):
    """The gateway refused or could not be reached."""


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


class PaymentGateway(ABC):
    """
    Implementations:
    - StripeCheckoutGateway: Stripe Checkout over its REST API
    - OfflineGateway: no network, used when no secret key is configured
    """

    @abstractmethod
    async def create_checkout_session(
        self,
        amount: Decimal,
        currency: str,
        description: str,
        success_url: str,
        cancel_url: str,
        reference: str,
    ) -> CheckoutSession:
        """Raise GatewayUnavailable on any failure."""
        pass
