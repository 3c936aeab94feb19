"""
Service interfaces for dependency inversion.
Lets the login guard and booking flow run against Redis, Stripe and SMTP in
production and plain dicts and fakes in tests without changing business logic.
"""

from .attempt_store import AttemptStore, StoreUnavailable
from .memory_attempt_store import MemoryAttemptStore
from .draft_store import DraftStore
from .memory_draft_store import MemoryDraftStore
from .payment_gateway import PaymentGateway, CheckoutSession, GatewayUnavailable
from .email_sender import EmailSender

__all__ = [
    'AttemptStore', 'StoreUnavailable', 'MemoryAttemptStore',
    'DraftStore', 'MemoryDraftStore',
    'PaymentGateway', 'CheckoutSession', 'GatewayUnavailable',
    'EmailSender',
]
