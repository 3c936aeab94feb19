"""
Multi-step booking flow.

STEPS
=====

  start          -> CustomerInfoCollected    (package, travelers, dates, contact)
  submit_payment -> PaymentDetailsCollected  (payment method)
  confirm        -> ConfirmationReady        (hosted checkout session created)
  commit         -> Committed                (Booking + Payment persisted, draft deleted)

A step may only be entered from the step right before it, or re-entered
from itself to overwrite its data. Anything else, including a draft that has
expired, is StepOutOfOrder and sends the client back to the package listing.

The quote is recomputed at every step up to confirmation, so an early-bird
decision made yesterday cannot leak into today's price. Commit persists the
quote the customer confirmed at the gateway.

Drafts live in a DraftStore with a TTL. An abandoned booking is simply a
draft that expires; no slots are held until commit.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from travel_booking.core.config import get_settings
from travel_booking.core.exceptions import (
    BookingValidationError, DraftNotFound, InsufficientCapacity, PaymentGatewayError, StepOutOfOrder,
)
from travel_booking.core.logging import get_logger
from travel_booking.models.booking import Booking
from travel_booking.models.package import Package
from travel_booking.models.payment import Payment
from travel_booking.schemas.draft import BookingDraft, BookingStep, CustomerInfo, PaymentDetails, STEP_ORDER
from travel_booking.services.booking_service import commit_booking
from travel_booking.services.interfaces.attempt_store import StoreUnavailable
from travel_booking.services.interfaces.draft_store import DraftStore
from travel_booking.services.interfaces.payment_gateway import GatewayUnavailable, PaymentGateway
from travel_booking.services.pricing import (
    DiscountRules, QuoteRequest, compute_quote, get_package_or_404, utc_today,
)

logger = get_logger(__name__)
settings = get_settings()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_transition(draft: Optional[BookingDraft], step: BookingStep) -> None:
    """Raise StepOutOfOrder unless `draft` may move to `step`."""
    if draft is None:
        raise StepOutOfOrder("No booking in progress. Please choose a package to start again.")

    current = STEP_ORDER.index(draft.step)
    target = STEP_ORDER.index(step)
    if target == current and step != BookingStep.COMMITTED:
        return
    if target != current + 1:
        raise StepOutOfOrder(
            f"Cannot go from {draft.step.value} to {step.value}. Please start your booking again."
        )


def advance(draft: Optional[BookingDraft], step: BookingStep, **changes) -> BookingDraft:
    """
    The only way a draft changes step. Returns a new draft; the input is untouched.
    """
    check_transition(draft, step)
    return draft.model_copy(update={**changes, "step": step, "updated_at": _utcnow()})


def validate_trip(
    package: Package,
    traveler_count: int,
    travel_date: date,
    today: date,
    senior_count: int = 0,
    junior_count: int = 0,
) -> None:
    errors = []
    try:
        QuoteRequest(package.id, traveler_count, travel_date, senior_count, junior_count).validate()
    except BookingValidationError as e:
        errors.extend(e.errors)

    if travel_date < today:
        errors.append("Travel date cannot be in the past")
    elif not package.start_date <= travel_date <= package.end_date:
        errors.append(
            f"Travel date must be between {package.start_date.isoformat()} and {package.end_date.isoformat()}"
        )
    if errors:
        raise BookingValidationError(errors)


class BookingFlow:
    def __init__(
        self,
        db: AsyncSession,
        drafts: DraftStore,
        gateway: PaymentGateway,
        today: Optional[date] = None,
        rules: Optional[DiscountRules] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self.db = db
        self.drafts = drafts
        self.gateway = gateway
        self.today = today
        self.rules = rules or DiscountRules.from_settings()
        self.ttl_seconds = ttl_seconds or settings.BOOKING_DRAFT_TTL_SECONDS

    def _today(self) -> date:
        return self.today or utc_today()

    async def _save(self, draft: BookingDraft) -> None:
        try:
            await self.drafts.save(draft, self.ttl_seconds)
        except StoreUnavailable:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Booking is temporarily unavailable. Please try again shortly.",
            )

    async def get(self, user_id: int, draft_id: str) -> BookingDraft:
        """A draft owned by `user_id`. Someone else's draft does not exist."""
        try:
            draft = await self.drafts.load(draft_id)
        except StoreUnavailable:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Booking is temporarily unavailable. Please try again shortly.",
            )
        if draft is None or draft.user_id != user_id:
            raise DraftNotFound(draft_id)
        return draft

    async def _price(self, draft: BookingDraft) -> dict:
        package = await get_package_or_404(self.db, draft.package_id)
        today = self._today()
        validate_trip(
            package, draft.traveler_count, draft.travel_date, today,
            draft.senior_count, draft.junior_count,
        )
        quote = compute_quote(
            package, draft.traveler_count, draft.travel_date, today, rules=self.rules,
            senior_count=draft.senior_count, junior_count=draft.junior_count,
        )
        return {
            "package_name": package.name,
            "unit_price": quote.unit_price,
            "base": quote.base,
            "discount": quote.discount,
            "final": quote.final,
            "applied_discounts": list(quote.applied_discounts),
        }

    async def start(self, user_id: int, info: CustomerInfo) -> BookingDraft:
        package = await get_package_or_404(self.db, info.package_id)
        today = self._today()
        validate_trip(
            package, info.traveler_count, info.travel_date, today,
            info.senior_count, info.junior_count,
        )
        if info.traveler_count > package.available_slots:
            raise InsufficientCapacity(package.id, info.traveler_count, package.available_slots)

        quote = compute_quote(
            package, info.traveler_count, info.travel_date, today, rules=self.rules,
            senior_count=info.senior_count, junior_count=info.junior_count,
        )
        now = _utcnow()
        draft = BookingDraft(
            id=uuid.uuid4().hex,
            user_id=user_id,
            step=BookingStep.CUSTOMER_INFO_COLLECTED,
            package_id=package.id,
            package_name=package.name,
            traveler_count=info.traveler_count,
            senior_count=info.senior_count,
            junior_count=info.junior_count,
            travel_date=info.travel_date,
            full_name=info.full_name,
            email=info.email,
            phone=info.phone,
            special_requests=info.special_requests,
            unit_price=quote.unit_price,
            base=quote.base,
            discount=quote.discount,
            final=quote.final,
            applied_discounts=list(quote.applied_discounts),
            created_at=now,
            updated_at=now,
        )
        await self._save(draft)
        logger.info(
            "booking_draft_started",
            draft_id=draft.id,
            user_id=user_id,
            package_id=package.id,
            travelers=info.traveler_count,
        )
        return draft

    async def submit_payment(self, user_id: int, draft_id: str, details: PaymentDetails) -> BookingDraft:
        if details.payment_method not in settings.PAYMENT_METHODS:
            raise BookingValidationError([
                f"Payment method must be one of: {', '.join(settings.PAYMENT_METHODS)}"
            ])

        draft = await self.get(user_id, draft_id)
        check_transition(draft, BookingStep.PAYMENT_DETAILS_COLLECTED)
        pricing = await self._price(draft)
        draft = advance(
            draft,
            BookingStep.PAYMENT_DETAILS_COLLECTED,
            payment_method=details.payment_method,
            checkout_session_id=None,
            checkout_url=None,
            **pricing,
        )
        await self._save(draft)
        logger.info("booking_payment_details", draft_id=draft.id, method=details.payment_method)
        return draft

    async def confirm(self, user_id: int, draft_id: str) -> BookingDraft:
        """
        Open a checkout session for the final amount. A gateway failure
        leaves the stored draft exactly as it was.
        """
        draft = await self.get(user_id, draft_id)
        check_transition(draft, BookingStep.CONFIRMATION_READY)
        pricing = await self._price(draft)

        try:
            session = await self.gateway.create_checkout_session(
                amount=pricing["final"],
                currency=settings.CURRENCY,
                description=f"{draft.package_name} x {draft.traveler_count}",
                success_url=f"{settings.PUBLIC_BASE_URL}/booking/success?draft={draft.id}",
                cancel_url=f"{settings.PUBLIC_BASE_URL}/booking/cancel?draft={draft.id}",
                reference=draft.id,
            )
        except GatewayUnavailable as e:
            logger.warning("booking_confirm_gateway_failed", draft_id=draft.id, error=str(e))
            raise PaymentGatewayError("Payment could not be started. Please try again.")

        draft = advance(
            draft,
            BookingStep.CONFIRMATION_READY,
            checkout_session_id=session.id,
            checkout_url=session.url,
            **pricing,
        )
        await self._save(draft)
        logger.info("booking_confirmation_ready", draft_id=draft.id, session_id=session.id)
        return draft

    async def commit(self, user_id: int, draft_id: str) -> tuple[Booking, Payment]:
        draft = await self.get(user_id, draft_id)
        check_transition(draft, BookingStep.COMMITTED)

        booking, payment = await commit_booking(self.db, draft)

        try:
            await self.drafts.delete(draft.id)
        except StoreUnavailable:
            # The booking is already committed; the draft will expire on its own
            logger.warning("booking_draft_delete_failed", draft_id=draft.id)
        return booking, payment
