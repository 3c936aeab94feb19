"""
Tests for the quote engine and the quote endpoint.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from travel_booking.core.exceptions import BookingValidationError, PackageNotFound
from travel_booking.models.package import Package
from travel_booking.services.pricing import DiscountRules, compute_quote, quote_price, to_cents, utc_today

TODAY = date(2026, 3, 1)


def _package(price: str = "100") -> Package:
    return Package(id=7, name="Penang Food Tour", price=Decimal(price))


def test_early_bird_only():
    quote = compute_quote(_package(), 2, TODAY + timedelta(days=31), TODAY)
    assert quote.base == Decimal("200")
    assert quote.discount == Decimal("20")
    assert quote.final == Decimal("180")
    assert quote.applied_discounts == ("early_bird",)


def test_bulk_only():
    quote = compute_quote(_package(), 5, TODAY + timedelta(days=5), TODAY)
    assert quote.base == Decimal("500")
    assert quote.discount == Decimal("75")
    assert quote.final == Decimal("425")
    assert quote.applied_discounts == ("bulk",)


def test_both_discounts_add_up():
    quote = compute_quote(_package(), 6, TODAY + timedelta(days=40), TODAY)
    assert quote.base == Decimal("600")
    assert quote.discount == Decimal("150")
    assert quote.final == Decimal("450")


def test_no_discount():
    quote = compute_quote(_package(), 4, TODAY + timedelta(days=29), TODAY)
    assert quote.discount == 0
    assert quote.final == quote.base == Decimal("400")
    assert not quote.is_discounted


def test_early_bird_boundary_is_inclusive():
    assert compute_quote(_package(), 1, TODAY + timedelta(days=30), TODAY).discount == Decimal("10")
    assert compute_quote(_package(), 1, TODAY + timedelta(days=29), TODAY).discount == 0


def test_quote_is_pure():
    package = _package("333.33")
    first = compute_quote(package, 7, TODAY + timedelta(days=60), TODAY)
    second = compute_quote(package, 7, TODAY + timedelta(days=60), TODAY)
    assert first == second
    assert package.price == Decimal("333.33")


def test_no_rounding_until_display():
    quote = compute_quote(_package("333.33"), 7, TODAY + timedelta(days=60), TODAY)
    # 2333.31 * 0.25 keeps its fourth decimal place internally
    assert quote.discount == Decimal("583.3275")
    assert to_cents(quote.discount) == Decimal("583.33")
    assert quote.final == quote.base - quote.discount


def test_final_never_negative():
    rules = DiscountRules(early_bird_rate=Decimal("0.90"), bulk_rate=Decimal("0.50"))
    quote = compute_quote(_package(), 5, TODAY + timedelta(days=90), TODAY, rules=rules)
    assert quote.discount > quote.base
    assert quote.final == 0


@pytest.mark.asyncio
async def test_quote_price_unknown_package(db_session):
    with pytest.raises(PackageNotFound):
        await quote_price(db_session, 999, 2, TODAY + timedelta(days=10))


@pytest.mark.asyncio
async def test_quote_price_rejects_traveler_count(db_session, package):
    with pytest.raises(BookingValidationError):
        await quote_price(db_session, package.id, 21, utc_today() + timedelta(days=10))
    with pytest.raises(BookingValidationError):
        await quote_price(db_session, package.id, 0, utc_today() + timedelta(days=10))


@pytest.mark.asyncio
async def test_quote_endpoint(client: AsyncClient, package):
    response = await client.post("/api/v1/bookings/quote", json={
        "package_id": package.id,
        "traveler_count": 6,
        "travel_date": (utc_today() + timedelta(days=45)).isoformat(),
    })
    assert response.status_code == 200
    data = response.json()
    assert data["base"] == "6000.00"
    assert data["discount"] == "1500.00"
    assert data["final"] == "4500.00"
    assert sorted(data["applied_discounts"]) == ["bulk", "early_bird"]


@pytest.mark.asyncio
async def test_quote_endpoint_not_found(client: AsyncClient):
    response = await client.post("/api/v1/bookings/quote", json={
        "package_id": 404,
        "traveler_count": 1,
        "travel_date": (utc_today() + timedelta(days=3)).isoformat(),
    })
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "package_not_found"


@pytest.mark.asyncio
async def test_quote_endpoint_too_many_travelers(client: AsyncClient, package):
    response = await client.post("/api/v1/bookings/quote", json={
        "package_id": package.id,
        "traveler_count": 25,
        "travel_date": (utc_today() + timedelta(days=3)).isoformat(),
    })
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "validation_error"
