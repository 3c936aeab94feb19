"""
Price quotes for prospective bookings.

PRICING RULES
=============

  base     = unit price x traveler count
  discount = (sum of triggered rates) x base
  final    = max(base - discount, 0)

Rates are additive and independent of each other:
  - Early bird: travel date at least EARLY_BIRD_DAYS calendar days after today -> 10%
  - Bulk: at least BULK_MIN_TRAVELERS travelers -> 15%

Senior/junior counts travel with the quote but no rule prices them yet.

All arithmetic is Decimal and unrounded. Rounding to cents happens only when
a quote is serialized for display or written to a money column.

`compute_quote` is pure: "today" is an argument, so the same inputs always
give the same quote and the form can be re-priced as often as it changes.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from travel_booking.core.config import get_settings
from travel_booking.core.exceptions import PackageNotFound, BookingValidationError
from travel_booking.core.logging import get_logger
from travel_booking.core.metrics import quote_requests
from travel_booking.models.package import Package

logger = get_logger(__name__)
settings = get_settings()

CENT = Decimal("0.01")
ZERO = Decimal("0")

EARLY_BIRD = "early_bird"
BULK = "bulk"


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class DiscountRules:
    early_bird_days: int = 30
    early_bird_rate: Decimal = Decimal("0.10")
    bulk_min_travelers: int = 5
    bulk_rate: Decimal = Decimal("0.15")

    @classmethod
    def from_settings(cls) -> "DiscountRules":
        return cls(
            early_bird_days=settings.EARLY_BIRD_DAYS,
            early_bird_rate=Decimal(settings.EARLY_BIRD_RATE),
            bulk_min_travelers=settings.BULK_MIN_TRAVELERS,
            bulk_rate=Decimal(settings.BULK_RATE),
        )

    def triggered(self, traveler_count: int, travel_date: date, today: date) -> dict[str, Decimal]:
        rates = {}
        if (travel_date - today).days >= self.early_bird_days:
            rates[EARLY_BIRD] = self.early_bird_rate
        if traveler_count >= self.bulk_min_travelers:
            rates[BULK] = self.bulk_rate
        return rates


@dataclass(frozen=True)
class Quote:
    package_id: int
    unit_price: Decimal
    traveler_count: int
    travel_date: date
    base: Decimal
    discount: Decimal
    final: Decimal
    applied_discounts: tuple[str, ...] = ()
    senior_count: int = 0
    junior_count: int = 0

    @property
    def is_discounted(self) -> bool:
        return self.discount > ZERO


@dataclass
class QuoteRequest:
    package_id: int
    traveler_count: int
    travel_date: date
    senior_count: int = 0
    junior_count: int = 0
    errors: list[str] = field(default_factory=list)

    def validate(self) -> "QuoteRequest":
        if not 1 <= self.traveler_count <= settings.MAX_TRAVELERS:
            self.errors.append(
                f"Number of travelers must be between 1 and {settings.MAX_TRAVELERS}"
            )
        for label, count in (("seniors", self.senior_count), ("juniors", self.junior_count)):
            if not 0 <= count <= settings.MAX_AGE_GROUP_TRAVELERS:
                self.errors.append(
                    f"Number of {label} must be between 0 and {settings.MAX_AGE_GROUP_TRAVELERS}"
                )
        if self.senior_count + self.junior_count > self.traveler_count:
            self.errors.append("Seniors and juniors cannot exceed the total number of travelers")
        if self.errors:
            raise BookingValidationError(self.errors)
        return self


def compute_quote(
    package: Package,
    traveler_count: int,
    travel_date: date,
    today: date,
    rules: Optional[DiscountRules] = None,
    senior_count: int = 0,
    junior_count: int = 0,
) -> Quote:
    rules = rules or DiscountRules()
    unit_price = Decimal(package.price)
    base = unit_price * traveler_count

    rates = rules.triggered(traveler_count, travel_date, today)
    discount = sum(rates.values(), ZERO) * base
    final = max(base - discount, ZERO)

    return Quote(
        package_id=package.id,
        unit_price=unit_price,
        traveler_count=traveler_count,
        travel_date=travel_date,
        base=base,
        discount=discount,
        final=final,
        applied_discounts=tuple(rates),
        senior_count=senior_count,
        junior_count=junior_count,
    )


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


async def get_package_or_404(db: AsyncSession, package_id: int) -> Package:
    # populate_existing: slot counts change under UPDATEs that bypass the identity map
    result = await db.execute(
        select(Package)
        .where(Package.id == package_id)
        .execution_options(populate_existing=True)
    )
    package = result.scalar_one_or_none()
    if not package:
        raise PackageNotFound(package_id)
    return package


async def quote_price(
    db: AsyncSession,
    package_id: int,
    traveler_count: int,
    travel_date: date,
    senior_count: int = 0,
    junior_count: int = 0,
    today: Optional[date] = None,
) -> Quote:
    """Load the package and price the request. Raises PackageNotFound or BookingValidationError."""
    QuoteRequest(package_id, traveler_count, travel_date, senior_count, junior_count).validate()
    package = await get_package_or_404(db, package_id)

    quote = compute_quote(
        package,
        traveler_count,
        travel_date,
        today or utc_today(),
        rules=DiscountRules.from_settings(),
        senior_count=senior_count,
        junior_count=junior_count,
    )
    quote_requests.labels(discounted="yes" if quote.is_discounted else "no").inc()
    logger.debug(
        "quote_computed",
        package_id=package_id,
        travelers=traveler_count,
        base=str(quote.base),
        discount=str(quote.discount),
        discounts=list(quote.applied_discounts),
    )
    return quote
