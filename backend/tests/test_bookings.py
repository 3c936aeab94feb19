"""
Tests for booking commits including failure injection and concurrency scenarios.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError

from travel_booking.core.exceptions import DraftAlreadyCommitted, InsufficientCapacity, PersistenceFailure
from travel_booking.models.booking import Booking
from travel_booking.models.package import Package
from travel_booking.models.payment import Payment
from travel_booking.schemas.draft import BookingDraft, BookingStep
from travel_booking.services import booking_service
from travel_booking.services.booking_flow import BookingFlow
from travel_booking.services.booking_service import commit_booking
from travel_booking.services.pricing import utc_today


def _confirmed_draft(user_id: int, package: Package, travelers: int) -> BookingDraft:
    now = datetime.now(timezone.utc)
    unit_price = Decimal(package.price)
    return BookingDraft(
        id=uuid.uuid4().hex,
        user_id=user_id,
        step=BookingStep.CONFIRMATION_READY,
        package_id=package.id,
        package_name=package.name,
        traveler_count=travelers,
        travel_date=utc_today() + timedelta(days=10),
        full_name="Aisyah Rahman",
        email="aisyah@example.com",
        phone="123456789",
        unit_price=unit_price,
        base=unit_price * travelers,
        discount=Decimal("0"),
        final=unit_price * travelers,
        payment_method="credit_card",
        checkout_session_id=f"cs_test_{uuid.uuid4().hex[:6]}",
        checkout_url="https://pay.test/session",
        created_at=now,
        updated_at=now,
    )


async def _counts(db_session, package_id: int) -> tuple[int, int, int]:
    bookings = (await db_session.execute(select(func.count()).select_from(Booking))).scalar_one()
    payments = (await db_session.execute(select(func.count()).select_from(Payment))).scalar_one()
    slots = (
        await db_session.execute(select(Package.available_slots).where(Package.id == package_id))
    ).scalar_one()
    return bookings, payments, slots


async def _confirm_via_api(client: AsyncClient, headers: dict, package_id: int, travelers: int) -> str:
    response = await client.post("/api/v1/bookings/drafts", json={
        "package_id": package_id,
        "traveler_count": travelers,
        "travel_date": (utc_today() + timedelta(days=10)).isoformat(),
        "full_name": "Aisyah Rahman",
        "email": "aisyah@example.com",
        "phone": "123456789",
    }, headers=headers)
    draft_id = response.json()["id"]
    await client.put(
        f"/api/v1/bookings/drafts/{draft_id}/payment",
        json={"payment_method": "credit_card"},
        headers=headers,
    )
    await client.post(f"/api/v1/bookings/drafts/{draft_id}/confirm", headers=headers)
    return draft_id


@pytest.mark.asyncio
async def test_commit_writes_booking_payment_and_slots(db_session, customer, package):
    """Exactly one booking, one payment, and slots down by the traveler count."""
    package_id = package.id
    draft = _confirmed_draft(customer.id, package, 3)

    booking, payment = await commit_booking(db_session, draft)

    assert booking.traveler_count == 3
    assert booking.status == "Confirmed"
    assert booking.final_amount == Decimal("3000.00")
    assert payment.booking_id == booking.id
    assert payment.amount == Decimal("3000.00")
    assert payment.status == "Completed"
    assert payment.transaction_id == draft.checkout_session_id
    assert await _counts(db_session, package_id) == (1, 1, 7)


@pytest.mark.asyncio
async def test_commit_bumps_package_version(db_session, customer, package):
    package_id = package.id
    await commit_booking(db_session, _confirmed_draft(customer.id, package, 1))

    version = (await db_session.execute(select(Package.version).where(Package.id == package_id))).scalar_one()
    assert version == 2


@pytest.mark.asyncio
async def test_commit_rechecks_capacity(db_session, customer, small_package):
    """Capacity is checked again at commit, not only when the draft started."""
    package_id = small_package.id
    draft = _confirmed_draft(customer.id, small_package, 3)
    await db_session.execute(update(Package).where(Package.id == package_id).values(available_slots=2))
    await db_session.commit()

    with pytest.raises(InsufficientCapacity) as exc_info:
        await commit_booking(db_session, draft)

    assert exc_info.value.detail["available"] == 2
    assert await _counts(db_session, package_id) == (0, 0, 2)


@pytest.mark.asyncio
@pytest.mark.parametrize("failing_step", ["_insert_booking", "_record_payment"])
async def test_failure_injection_leaves_nothing_behind(db_session, customer, package, monkeypatch, failing_step):
    package_id = package.id
    draft = _confirmed_draft(customer.id, package, 4)

    async def broken(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(booking_service, failing_step, broken)

    with pytest.raises(PersistenceFailure):
        await commit_booking(db_session, draft)

    assert await _counts(db_session, package_id) == (0, 0, 10)


@pytest.mark.asyncio
async def test_concurrent_commits_never_overbook(session_factory, db_session, customer, other_customer, small_package):
    """Two commits that jointly exceed capacity: one wins, one gets InsufficientCapacity."""
    package_id = small_package.id
    drafts = [
        _confirmed_draft(customer.id, small_package, 3),
        _confirmed_draft(other_customer.id, small_package, 3),
    ]
    # Release the fixture session's write lock before the race
    await db_session.commit()

    async def commit_in_own_session(draft):
        async with session_factory() as session:
            booking, payment = await commit_booking(session, draft)
            return booking.id

    results = await asyncio.gather(*(commit_in_own_session(d) for d in drafts), return_exceptions=True)

    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientCapacity)
    assert await _counts(db_session, package_id) == (1, 1, 1)


@pytest.mark.asyncio
async def test_many_concurrent_single_slot_commits(session_factory, db_session, customer, small_package):
    package_id = small_package.id
    drafts = [_confirmed_draft(customer.id, small_package, 1) for _ in range(6)]
    await db_session.commit()

    async def commit_in_own_session(draft):
        async with session_factory() as session:
            await commit_booking(session, draft)

    results = await asyncio.gather(*(commit_in_own_session(d) for d in drafts), return_exceptions=True)

    assert sum(1 for r in results if r is None) == 4
    assert all(isinstance(r, InsufficientCapacity) for r in results if r is not None)
    assert await _counts(db_session, package_id) == (4, 4, 0)


@pytest.mark.asyncio
async def test_same_draft_commits_once(db_session, customer, package):
    package_id = package.id
    draft = _confirmed_draft(customer.id, package, 3)

    booking, _ = await commit_booking(db_session, draft)
    assert booking.draft_id == draft.id

    with pytest.raises(DraftAlreadyCommitted):
        await commit_booking(db_session, draft)

    assert await _counts(db_session, package_id) == (1, 1, 7)


@pytest.mark.asyncio
async def test_concurrent_commits_of_one_draft_book_once(
    client: AsyncClient, auth_headers, session_factory, db_session, draft_store, gateway, customer, package,
):
    """Two commit requests for one draft racing each other: one booking, one 409."""
    package_id, user_id = package.id, customer.id
    draft_id = await _confirm_via_api(client, auth_headers, package_id, 2)
    await db_session.commit()

    async def commit_in_own_session():
        async with session_factory() as session:
            booking, payment = await BookingFlow(session, draft_store, gateway).commit(user_id, draft_id)
            return booking.id

    results = await asyncio.gather(commit_in_own_session(), commit_in_own_session(), return_exceptions=True)

    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], DraftAlreadyCommitted)
    assert failures[0].status_code == 409
    assert failures[0].detail["code"] == "step_out_of_order"
    assert await _counts(db_session, package_id) == (1, 1, 8)


@pytest.mark.asyncio
async def test_commit_endpoint_capacity_conflict_keeps_draft(client: AsyncClient, auth_headers, db_session, small_package):
    package_id = small_package.id
    draft_id = await _confirm_via_api(client, auth_headers, package_id, 3)

    await db_session.execute(update(Package).where(Package.id == package_id).values(available_slots=1))
    await db_session.commit()

    response = await client.post(f"/api/v1/bookings/drafts/{draft_id}/commit", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "insufficient_capacity"

    # The customer can still go back and reduce travelers
    draft = await client.get(f"/api/v1/bookings/drafts/{draft_id}", headers=auth_headers)
    assert draft.json()["step"] == "ConfirmationReady"


@pytest.mark.asyncio
async def test_commit_endpoint_persistence_failure(client: AsyncClient, auth_headers, db_session, package, monkeypatch):
    package_id = package.id
    draft_id = await _confirm_via_api(client, auth_headers, package_id, 2)

    async def broken(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(booking_service, "_record_payment", broken)

    response = await client.post(f"/api/v1/bookings/drafts/{draft_id}/commit", headers=auth_headers)
    assert response.status_code == 500
    assert response.json()["detail"]["code"] == "persistence_failure"
    assert await _counts(db_session, package_id) == (0, 0, 10)


@pytest.mark.asyncio
async def test_commit_twice_books_once(client: AsyncClient, auth_headers, db_session, package):
    package_id = package.id
    draft_id = await _confirm_via_api(client, auth_headers, package_id, 2)

    first = await client.post(f"/api/v1/bookings/drafts/{draft_id}/commit", headers=auth_headers)
    second = await client.post(f"/api/v1/bookings/drafts/{draft_id}/commit", headers=auth_headers)

    assert first.status_code == 201
    assert second.status_code == 409
    assert await _counts(db_session, package_id) == (1, 1, 8)


@pytest.mark.asyncio
async def test_list_and_get_own_bookings(client: AsyncClient, auth_headers, other_headers, package):
    package_id = package.id
    draft_id = await _confirm_via_api(client, auth_headers, package_id, 1)
    committed = await client.post(f"/api/v1/bookings/drafts/{draft_id}/commit", headers=auth_headers)
    booking_id = committed.json()["booking_id"]

    mine = await client.get("/api/v1/bookings/", headers=auth_headers)
    assert [b["id"] for b in mine.json()] == [booking_id]

    theirs = await client.get("/api/v1/bookings/", headers=other_headers)
    assert theirs.json() == []

    response = await client.get(f"/api/v1/bookings/{booking_id}", headers=other_headers)
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "booking_not_found"


@pytest.mark.asyncio
async def test_bookings_require_auth(client: AsyncClient):
    response = await client.get("/api/v1/bookings/")
    assert response.status_code == 401
