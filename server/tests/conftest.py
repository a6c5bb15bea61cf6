"""Test configuration and fixtures."""

import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["WORKERS_ENABLED"] = "false"
os.environ.pop("EMAIL_SERVICE_ID", None)
os.environ.pop("EMAIL_PUBLIC_KEY", None)

from datetime import time, timedelta  # noqa: E402
from uuid import uuid4  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from excursion_booking.core.config import settings  # noqa: E402
from excursion_booking.core.database import Base  # noqa: E402
from excursion_booking.core.dependencies import get_db  # noqa: E402
from excursion_booking.models import *  # noqa: E402,F403 - Import all models
from excursion_booking.models import (  # noqa: E402
    AvailabilitySlot,
    Booking,
    BookingChannel,
    BookingStatus,
    Excursion,
    ExcursionCategory,
    Guide,
    Profile,
    TourOperator,
    UserRole,
)
from excursion_booking.schemas.auth import CurrentUser  # noqa: E402
from excursion_booking.services.availability_service import business_today  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_token(user_id, roles, email=None, first_name=None, last_name=None, secret=None) -> str:
    """Sign a bearer token the way the identity provider does."""
    payload = {"sub": str(user_id), "roles": roles}
    if email:
        payload["email"] = email
    if first_name:
        payload["first_name"] = first_name
    if last_name:
        payload["last_name"] = last_name
    return jwt.encode(payload, secret or settings.bearer_token_secret, algorithm="HS256")


def auth_header(user_id, roles, **claims) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, roles, **claims)}"}


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def today():
    return business_today()


@pytest_asyncio.fixture
async def guide_profile(test_session):
    profile = Profile(
        id=uuid4(),
        email="guide@example.com",
        first_name="Jean",
        last_name="Baptiste",
        role=UserRole.GUIDE,
    )
    test_session.add(profile)
    await test_session.commit()
    return profile


@pytest_asyncio.fixture
async def guide(test_session, guide_profile):
    guide = Guide(user_id=guide_profile.id, company_name="Madinina Tours", city="Fort-de-France")
    test_session.add(guide)
    await test_session.commit()
    return guide


@pytest_asyncio.fixture
async def excursion(test_session, guide):
    excursion = Excursion(
        guide_id=guide.id,
        title="Randonnée à la Montagne Pelée",
        category=ExcursionCategory.HIKING,
        duration_hours=5.0,
        max_participants=10,
        price_per_person=5000,
        currency="EUR",
        difficulty_level=3,
        is_active=True,
    )
    test_session.add(excursion)
    await test_session.commit()
    return excursion


async def add_slot(session, excursion, slot_date, max_participants=10, price_override=None) -> AvailabilitySlot:
    slot = AvailabilitySlot(
        excursion_id=excursion.id,
        date=slot_date,
        start_time=time(9, 0),
        max_participants=max_participants,
        price_override=price_override,
        is_available=True,
        is_closed=False,
        available_spots=max_participants,
    )
    session.add(slot)
    await session.commit()
    return slot


async def add_booking(
    session,
    slot,
    participants_count,
    status=BookingStatus.CONFIRMED,
    client_id=None,
    tour_operator_id=None,
    channel=BookingChannel.DIRECT,
    client_email="client@example.com",
) -> Booking:
    """Insert a booking row directly, without touching the slot's cached spots."""
    booking = Booking(
        code=uuid4().hex[:8].upper(),
        excursion_id=slot.excursion_id,
        slot_id=slot.id,
        client_id=client_id,
        tour_operator_id=tour_operator_id,
        client_email=client_email,
        client_name="Client Test",
        participants_count=participants_count,
        total_amount=5000 * participants_count,
        commission_amount=500 * participants_count,
        currency="EUR",
        status=status,
        channel=channel,
        booking_date=slot.date,
    )
    session.add(booking)
    await session.commit()
    return booking


@pytest_asyncio.fixture
async def slot(test_session, excursion, today):
    """An open slot a week from today with ten spots."""
    return await add_slot(test_session, excursion, today + timedelta(days=7))


@pytest.fixture
def client_user():
    return CurrentUser(
        id=uuid4(),
        email="marie.joseph@example.com",
        first_name="Marie",
        last_name="Joseph",
        roles=[UserRole.CLIENT.value],
    )


@pytest_asyncio.fixture
async def operator_profile(test_session):
    profile = Profile(
        id=uuid4(),
        email="ventes@caraibes-voyages.example",
        first_name="Paul",
        last_name="Celestin",
        role=UserRole.TOUR_OPERATOR,
    )
    test_session.add(profile)
    await test_session.commit()
    return profile


@pytest_asyncio.fixture
async def tour_operator(test_session, operator_profile):
    operator = TourOperator(user_id=operator_profile.id, company_name="Caraïbes Voyages")
    test_session.add(operator)
    await test_session.commit()
    return operator


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, session_factory):
    """The application without its lifespan, wired to the test database."""
    from excursion_booking.main import create_app, dispose_app_state, init_app_state

    app = create_app()
    init_app_state(app, session_factory)

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    await dispose_app_state(app)


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        yield client


@pytest.fixture
def client_headers(client_user):
    return auth_header(
        client_user.id,
        client_user.roles,
        email=client_user.email,
        first_name=client_user.first_name,
        last_name=client_user.last_name,
    )


@pytest.fixture
def guide_headers(guide_profile):
    return auth_header(guide_profile.id, [UserRole.GUIDE.value], email=guide_profile.email)


@pytest.fixture
def operator_headers(operator_profile):
    return auth_header(operator_profile.id, [UserRole.TOUR_OPERATOR.value], email=operator_profile.email)


@pytest.fixture
def admin_headers():
    return auth_header(uuid4(), [UserRole.ADMIN.value], email="admin@example.com")
