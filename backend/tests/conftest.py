"""
Pytest fixtures for test database, client, stores and authentication.

Each test gets its own SQLite file. Transactions start with BEGIN IMMEDIATE
so concurrent sessions serialize on the write lock the way competing
PostgreSQL transactions would on the package row.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["ATTEMPT_STORE"] = "memory"
os.environ["DRAFT_STORE"] = "memory"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"

from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from travel_booking.main import app
from travel_booking.db.base import Base
from travel_booking.db.session import get_db
from travel_booking.core.security import PasswordScheme, create_access_token, hash_password
from travel_booking.models.user import User, UserRole
from travel_booking.models.package import Package
from travel_booking.services.auth_service import build_claims
from travel_booking.services.email_service import get_email_sender
from travel_booking.services.interfaces import (
    CheckoutSession, EmailSender, GatewayUnavailable, MemoryAttemptStore, MemoryDraftStore, PaymentGateway,
)
from travel_booking.services.payment_gateway import get_payment_gateway
from travel_booking.services.pricing import utc_today
from travel_booking.services.strategy_factory import get_attempt_store, get_draft_store

CUSTOMER_PASSWORD = "Holiday2024"


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway(PaymentGateway):
    def __init__(self):
        self.fail = False
        self.sessions = []

    async def create_checkout_session(self, amount, currency, description, success_url, cancel_url, reference):
        if self.fail:
            raise GatewayUnavailable("gateway down")
        session = CheckoutSession(id=f"cs_test_{len(self.sessions) + 1}", url=f"https://pay.test/{reference}")
        self.sessions.append({"amount": amount, "currency": currency, "reference": reference})
        return session


class FakeEmailSender(EmailSender):
    def __init__(self):
        self.outbox = []
        self.fail = False
        self.raise_error = False

    async def send(self, to, subject, html_body):
        if self.raise_error:
            raise ConnectionError("smtp unreachable")
        if self.fail:
            return False
        self.outbox.append({"to": to, "subject": subject, "body": html_body})
        return True


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let the begin hook below issue BEGIN itself
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def attempt_store(clock):
    return MemoryAttemptStore(clock=clock)


@pytest.fixture
def draft_store(clock):
    return MemoryDraftStore(clock=clock)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest_asyncio.fixture(scope="function")
async def client(db_session, attempt_store, draft_store, gateway, email_sender) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB session and every collaborator swapped for a test double."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_attempt_store] = lambda: attempt_store
    app.dependency_overrides[get_draft_store] = lambda: draft_store
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_email_sender] = lambda: email_sender

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db_session: AsyncSession, email: str, phone: str, role: str = UserRole.USER.value) -> User:
    user = User(
        full_name=email.split("@")[0].title(),
        email=email,
        phone=phone,
        role=role,
        password_hash=hash_password(CUSTOMER_PASSWORD),
        password_scheme=PasswordScheme.HASHED.value,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def customer(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "aisyah@example.com", "+60123456789")


@pytest_asyncio.fixture
async def other_customer(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "daniel@example.com", "+60129876543")


@pytest_asyncio.fixture
async def staff_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "staff@example.com", "+60111111111", UserRole.STAFF.value)


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "admin@example.com", "+60122222222", UserRole.ADMIN.value)


def _headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(build_claims(user))}"}


@pytest.fixture
def auth_headers(customer: User) -> dict:
    return _headers(customer)


@pytest.fixture
def other_headers(other_customer: User) -> dict:
    return _headers(other_customer)


@pytest.fixture
def staff_headers(staff_user: User) -> dict:
    return _headers(staff_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return _headers(admin_user)


@pytest_asyncio.fixture
async def package(db_session: AsyncSession) -> Package:
    """A year-long Langkawi package priced at 1000 with 10 slots."""
    today = utc_today()
    package = Package(
        name="Langkawi Island Escape",
        destination="Langkawi",
        description="Three nights by the beach",
        category="Beach",
        price=Decimal("1000.00"),
        start_date=today,
        end_date=today + timedelta(days=365),
        available_slots=10,
        version=1,
    )
    db_session.add(package)
    await db_session.commit()
    await db_session.refresh(package)
    return package


@pytest_asyncio.fixture
async def small_package(db_session: AsyncSession) -> Package:
    """Only four slots left."""
    today = utc_today()
    package = Package(
        name="Cameron Highlands Tea Trail",
        destination="Cameron Highlands",
        price=Decimal("450.00"),
        start_date=today,
        end_date=today + timedelta(days=180),
        available_slots=4,
        version=1,
    )
    db_session.add(package)
    await db_session.commit()
    await db_session.refresh(package)
    return package
