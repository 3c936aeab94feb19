"""
Booking persistence with concurrency-safe slot reservation.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two customers commit the last slots of a package at the same time.
  Both read available_slots=4, both subtract 4, both succeed.
  Result: Overbooking.

Solution:
  The package row carries a `version` column.

  1. Read the package's current version and slots
  2. UPDATE packages SET available_slots = available_slots - N, version = version + 1
     WHERE id = :package_id AND version = :current_version AND available_slots >= N
  3. If rows_affected == 0, someone else modified the row -> rollback, retry

  The reservation is the first statement of the commit transaction, so a
  retry rollback never throws away booking or payment rows. The CHECK
  constraint (available_slots >= 0) is the final safety net.

COMMIT UNIT
===========

  reserve slots -> insert Booking -> insert Payment -> COMMIT

Either all three land or none do. A database error anywhere in the unit
rolls back and surfaces as PersistenceFailure; only version conflicts are
retried. bookings.draft_id is unique, so a draft committed twice at once
loses on the Booking insert and surfaces as DraftAlreadyCommitted.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from travel_booking.core.exceptions import (
    BookingConflict, BookingNotFound, DraftAlreadyCommitted, DuplicateFeedback, FeedbackNotAllowed,
    InsufficientCapacity, InvalidStatusTransition, PersistenceFailure,
)
from travel_booking.core.logging import get_logger
from travel_booking.core.metrics import (
    booking_commit_latency, booking_retries, booking_status_changes, record_booking_commit,
)
from travel_booking.models.booking import Booking, BookingStatus
from travel_booking.models.feedback import Feedback
from travel_booking.models.package import Package
from travel_booking.models.payment import Payment, PaymentStatus
from travel_booking.schemas.booking import FeedbackCreate
from travel_booking.schemas.draft import BookingDraft
from travel_booking.services.email_service import (
    send_cancellation_notice, send_review_invitation, send_review_thanks,
)
from travel_booking.services.interfaces.email_sender import EmailSender
from travel_booking.services.pricing import get_package_or_404, to_cents

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3

# Staff-driven status changes. Anything not listed is rejected.
ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING.value: {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value},
    BookingStatus.CONFIRMED.value: {BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value},
    BookingStatus.COMPLETED.value: set(),
    BookingStatus.CANCELLED.value: set(),
}


async def _reserve_slots(db: AsyncSession, package_id: int, count: int) -> Package:
    """
    Take `count` slots from the package with optimistic locking.
    Retries up to MAX_RETRY_ATTEMPTS on version conflicts.
    """
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        package = await get_package_or_404(db, package_id)

        if package.available_slots < count:
            logger.warning(
                "booking_failed_no_slots",
                package_id=package_id,
                requested=count,
                available=package.available_slots,
            )
            raise InsufficientCapacity(package_id, count, package.available_slots)

        current_version = package.version
        update_result = await db.execute(
            update(Package)
            .where(
                Package.id == package_id,
                Package.version == current_version,
                Package.available_slots >= count,
            )
            .values(
                available_slots=Package.available_slots - count,
                version=Package.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        if update_result.rowcount == 0:
            booking_retries.inc()
            logger.info(
                "booking_retry",
                package_id=package_id,
                attempt=attempt,
                reason="version_conflict",
            )
            await db.rollback()
            if attempt == MAX_RETRY_ATTEMPTS:
                raise BookingConflict()
            continue

        return package

    raise BookingConflict()


async def _insert_booking(db: AsyncSession, draft: BookingDraft) -> Booking:
    booking = Booking(
        user_id=draft.user_id,
        package_id=draft.package_id,
        booked_at=datetime.now(timezone.utc),
        travel_date=draft.travel_date,
        traveler_count=draft.traveler_count,
        senior_count=draft.senior_count,
        junior_count=draft.junior_count,
        contact_name=draft.full_name,
        contact_email=draft.email,
        contact_phone=draft.phone,
        special_requests=draft.special_requests,
        total_before_discount=to_cents(draft.base),
        discount_amount=to_cents(draft.discount),
        final_amount=to_cents(draft.final),
        status=BookingStatus.CONFIRMED.value,
        draft_id=draft.id,
    )
    db.add(booking)
    await db.flush()
    return booking


async def _record_payment(db: AsyncSession, booking: Booking, draft: BookingDraft) -> Payment:
    payment = Payment(
        booking_id=booking.id,
        method=draft.payment_method,
        amount=to_cents(draft.final),
        paid_at=datetime.now(timezone.utc),
        status=PaymentStatus.COMPLETED.value,
        transaction_id=draft.checkout_session_id,
    )
    db.add(payment)
    await db.flush()
    return payment


async def _draft_already_booked(db: AsyncSession, draft_id: str) -> bool:
    result = await db.execute(select(Booking.id).where(Booking.draft_id == draft_id))
    booked = result.scalar_one_or_none() is not None
    # Keep the lookup from holding a transaction open
    await db.rollback()
    return booked


async def commit_booking(db: AsyncSession, draft: BookingDraft) -> tuple[Booking, Payment]:
    """
    Persist a confirmed draft as Booking + Payment + slot decrement, atomically.

    Raises InsufficientCapacity, BookingConflict, DraftAlreadyCommitted or
    PersistenceFailure. The unique draft_id on Booking makes a second commit
    of the same draft fail inside its own transaction, so a draft books at
    most once even when two requests race. The draft itself is not touched
    here; the caller deletes it after success.
    """
    with booking_commit_latency.time():
        try:
            await _reserve_slots(db, draft.package_id, draft.traveler_count)
            booking = await _insert_booking(db, draft)
            payment = await _record_payment(db, booking, draft)
            await db.commit()
        except InsufficientCapacity:
            await db.rollback()
            record_booking_commit("insufficient_capacity")
            raise
        except BookingConflict:
            record_booking_commit("conflict")
            raise
        except IntegrityError as e:
            await db.rollback()
            if await _draft_already_booked(db, draft.id):
                record_booking_commit("duplicate")
                logger.info("booking_commit_duplicate", draft_id=draft.id)
                raise DraftAlreadyCommitted(draft.id) from e
            record_booking_commit("error")
            logger.error("booking_commit_failed", draft_id=draft.id, package_id=draft.package_id, error=str(e))
            raise PersistenceFailure() from e
        except SQLAlchemyError as e:
            await db.rollback()
            record_booking_commit("error")
            logger.error(
                "booking_commit_failed",
                draft_id=draft.id,
                package_id=draft.package_id,
                error=str(e),
            )
            raise PersistenceFailure() from e

    record_booking_commit("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        payment_id=payment.id,
        user_id=draft.user_id,
        package_id=draft.package_id,
        travelers=draft.traveler_count,
        final=str(payment.amount),
    )
    return booking, payment


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    """Get all bookings for a user, newest first."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.booked_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def get_user_booking(db: AsyncSession, user_id: int, booking_id: int) -> Booking:
    """A booking owned by `user_id`. Someone else's booking is reported as missing."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id, Booking.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise BookingNotFound(booking_id)
    return booking


async def list_bookings(
    db: AsyncSession,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[Booking], int]:
    query = select(Booking)
    count_query = select(func.count()).select_from(Booking)
    if status:
        query = query.where(Booking.status == status)
        count_query = count_query.where(Booking.status == status)

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(
        query.order_by(Booking.booked_at.desc(), Booking.id.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


async def update_booking_status(
    db: AsyncSession,
    booking_id: int,
    target: str,
    email_sender: EmailSender,
) -> tuple[Booking, list[str]]:
    """
    Move a booking along the staff transition table.

    Cancelling gives the booking's slots back to the package. Notification
    emails go out only after the change is committed; their failures come
    back as warnings.
    """
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise BookingNotFound(booking_id)

    current = booking.status
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        logger.warning("booking_transition_rejected", booking_id=booking_id, current=current, target=target)
        raise InvalidStatusTransition(current, target)

    package = await get_package_or_404(db, booking.package_id)
    package_name = package.name

    if target == BookingStatus.CANCELLED.value:
        await db.execute(
            update(Package)
            .where(Package.id == booking.package_id)
            .values(
                available_slots=Package.available_slots + booking.traveler_count,
                version=Package.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

    booking.status = target
    await db.commit()
    booking_status_changes.labels(status=target).inc()
    logger.info(
        "booking_status_changed",
        booking_id=booking.id,
        previous=current,
        status=target,
        slots_restored=booking.traveler_count if target == BookingStatus.CANCELLED.value else 0,
    )

    warnings = []
    if target == BookingStatus.COMPLETED.value:
        warning = await send_review_invitation(
            email_sender, booking.contact_email, booking.contact_name, booking.id, package_name,
        )
    elif target == BookingStatus.CANCELLED.value:
        warning = await send_cancellation_notice(
            email_sender, booking.contact_email, booking.contact_name, booking.id, package_name,
        )
    else:
        warning = None
    if warning:
        warnings.append(warning)

    return booking, warnings


async def create_feedback(
    db: AsyncSession,
    user_id: int,
    booking_id: int,
    data: FeedbackCreate,
    email_sender: EmailSender,
) -> Feedback:
    """One review per completed booking, by the customer who booked it."""
    booking = await get_user_booking(db, user_id, booking_id)
    if booking.status != BookingStatus.COMPLETED.value:
        raise FeedbackNotAllowed(booking_id, booking.status)

    existing = await db.execute(select(Feedback.id).where(Feedback.booking_id == booking_id))
    if existing.scalar_one_or_none() is not None:
        raise DuplicateFeedback(booking_id)

    package = await get_package_or_404(db, booking.package_id)
    feedback = Feedback(
        booking_id=booking_id,
        user_id=user_id,
        rating=data.rating,
        comment=data.comment,
        emotion=data.emotion.value,
    )
    db.add(feedback)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateFeedback(booking_id) from e
    await db.refresh(feedback)

    logger.info("feedback_created", feedback_id=feedback.id, booking_id=booking_id, rating=data.rating)
    await send_review_thanks(
        email_sender, booking.contact_email, booking.contact_name, package.name, data.rating,
    )
    return feedback

