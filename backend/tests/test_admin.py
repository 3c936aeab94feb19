"""
Tests for staff booking administration, feedback and account bans.
"""

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select

from travel_booking.models.booking import Booking
from travel_booking.models.package import Package
from travel_booking.services.pricing import utc_today


@pytest_asyncio.fixture
async def booking(db_session, customer, package) -> Booking:
    """A confirmed 3-traveler booking that already took its slots."""
    booking = Booking(
        user_id=customer.id,
        package_id=package.id,
        travel_date=utc_today() + timedelta(days=5),
        traveler_count=3,
        contact_name="Aisyah Rahman",
        contact_email="aisyah@example.com",
        contact_phone="+60123456789",
        total_before_discount=3000,
        discount_amount=0,
        final_amount=3000,
        status="Confirmed",
    )
    package.available_slots = 7
    db_session.add(booking)
    await db_session.commit()
    await db_session.refresh(booking)
    return booking


async def _slots(db_session, package_id: int) -> int:
    result = await db_session.execute(select(Package.available_slots).where(Package.id == package_id))
    return result.scalar_one()


async def _set_status(client: AsyncClient, headers: dict, booking_id: int, status: str):
    return await client.patch(
        f"/api/v1/admin/bookings/{booking_id}/status",
        json={"status": status},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_complete_sends_review_invitation(client: AsyncClient, staff_headers, booking, email_sender):
    booking_id = booking.id
    response = await _set_status(client, staff_headers, booking_id, "Completed")
    assert response.status_code == 200
    data = response.json()
    assert data["booking"]["status"] == "Completed"
    assert data["warnings"] == []

    assert len(email_sender.outbox) == 1
    message = email_sender.outbox[0]
    assert message["to"] == "aisyah@example.com"
    assert "Langkawi Island Escape" in message["subject"]
    assert f"/api/v1/bookings/{booking_id}/feedback" in message["body"]


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", ["returns_false", "raises"])
async def test_email_failure_is_only_a_warning(
    client: AsyncClient, staff_headers, db_session, booking, email_sender, failure,
):
    booking_id = booking.id
    if failure == "raises":
        email_sender.raise_error = True
    else:
        email_sender.fail = True

    response = await _set_status(client, staff_headers, booking_id, "Completed")
    assert response.status_code == 200
    assert response.json()["booking"]["status"] == "Completed"
    assert len(response.json()["warnings"]) == 1
    assert "aisyah@example.com" in response.json()["warnings"][0]

    status = (await db_session.execute(select(Booking.status).where(Booking.id == booking_id))).scalar_one()
    assert status == "Completed"


@pytest.mark.asyncio
async def test_cancel_restores_slots(client: AsyncClient, staff_headers, db_session, booking, email_sender):
    booking_id, package_id = booking.id, booking.package_id
    assert await _slots(db_session, package_id) == 7

    response = await _set_status(client, staff_headers, booking_id, "Cancelled")
    assert response.status_code == 200
    assert await _slots(db_session, package_id) == 10
    assert email_sender.outbox[0]["subject"] == f"Booking #{booking_id} cancelled"


@pytest.mark.asyncio
@pytest.mark.parametrize("first, second", [
    ("Completed", "Cancelled"),
    ("Cancelled", "Confirmed"),
    ("Completed", "Pending"),
])
async def test_invalid_transitions(client: AsyncClient, staff_headers, db_session, booking, first, second):
    booking_id, package_id = booking.id, booking.package_id
    assert (await _set_status(client, staff_headers, booking_id, first)).status_code == 200
    slots = await _slots(db_session, package_id)

    response = await _set_status(client, staff_headers, booking_id, second)
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "invalid_status_transition"
    assert await _slots(db_session, package_id) == slots


@pytest.mark.asyncio
async def test_confirmed_to_confirmed_is_rejected(client: AsyncClient, staff_headers, booking):
    response = await _set_status(client, staff_headers, booking.id, "Confirmed")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_status_change_requires_staff(client: AsyncClient, auth_headers, booking):
    response = await _set_status(client, auth_headers, booking.id, "Completed")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_booking_list_filter(client: AsyncClient, staff_headers, booking):
    booking_id = booking.id
    response = await client.get("/api/v1/admin/bookings", params={"status": "Confirmed"}, headers=staff_headers)
    assert response.status_code == 200
    assert [b["id"] for b in response.json()["bookings"]] == [booking_id]

    response = await client.get("/api/v1/admin/bookings", params={"status": "Cancelled"}, headers=staff_headers)
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_feedback_on_completed_booking(client: AsyncClient, auth_headers, staff_headers, booking, email_sender):
    booking_id = booking.id
    payload = {"rating": 5, "comment": "Loved the island hopping", "emotion": "Loved"}

    early = await client.post(f"/api/v1/bookings/{booking_id}/feedback", json=payload, headers=auth_headers)
    assert early.status_code == 400
    assert early.json()["detail"]["code"] == "feedback_not_allowed"

    await _set_status(client, staff_headers, booking_id, "Completed")

    response = await client.post(f"/api/v1/bookings/{booking_id}/feedback", json=payload, headers=auth_headers)
    assert response.status_code == 201
    assert response.json()["rating"] == 5
    assert response.json()["emotion"] == "Loved"
    assert email_sender.outbox[-1]["subject"] == "Thank you for your review"

    again = await client.post(f"/api/v1/bookings/{booking_id}/feedback", json=payload, headers=auth_headers)
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "duplicate_feedback"


@pytest.mark.asyncio
async def test_feedback_only_by_owner(client: AsyncClient, other_headers, staff_headers, booking):
    booking_id = booking.id
    await _set_status(client, staff_headers, booking_id, "Completed")

    response = await client.post(
        f"/api/v1/bookings/{booking_id}/feedback",
        json={"rating": 1, "comment": "Not my trip", "emotion": "Sad"},
        headers=other_headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_ban_user(client: AsyncClient, admin_headers, staff_headers, auth_headers, customer):
    customer_id = customer.id

    forbidden = await client.patch(
        f"/api/v1/admin/users/{customer_id}/ban", json={"banned": True}, headers=staff_headers,
    )
    assert forbidden.status_code == 403

    response = await client.patch(
        f"/api/v1/admin/users/{customer_id}/ban", json={"banned": True}, headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["is_banned"] is True

    # A live token stops working once the account is banned
    me = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert me.status_code == 403

    login = await client.post("/api/v1/auth/login", json={"email": "aisyah@example.com", "password": "Holiday2024"})
    assert login.status_code == 403
