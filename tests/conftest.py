import os

# Must be set before casamia.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["SMTP_HOST"] = ""

from datetime import date, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from casamia.database.core import Base
from casamia.database.models import Apartment, ApartmentType, Beverage, BeverageCategory, User, Role
from casamia.services import notification_service as notifications
from casamia.services.auth_service import hash_password
from casamia.services.notification_service import NotificationService, setup_notifications
from casamia.services.tenant_service import create_tenant


class RecordingNotificationService(NotificationService):
    """Collects outgoing emails instead of talking to an SMTP server."""

    def __init__(self, fail: bool = False):
        super().__init__(host="smtp.test")
        self.fail = fail
        self.sent = []

    def _deliver(self, message):
        if self.fail:
            raise ConnectionRefusedError("SMTP server unreachable")
        self.sent.append(message)


@pytest_asyncio.fixture
async def async_session():
    # Use in-memory SQLite for tests
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory():
    # One in-memory database shared by every session the factory opens
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def mailbox():
    previous = notifications.get_notification_service()
    service = RecordingNotificationService()
    setup_notifications(service)
    yield service
    setup_notifications(previous)


@pytest.fixture
def broken_mailbox():
    previous = notifications.get_notification_service()
    service = RecordingNotificationService(fail=True)
    setup_notifications(service)
    yield service
    setup_notifications(previous)


@pytest.fixture
def make_apartment(async_session):
    async def factory(unit_number="A101", rent=1200.0, **fields):
        apartment = Apartment(
            unit_number=unit_number,
            building=fields.pop("building", "A"),
            floor=fields.pop("floor", 1),
            apartment_type=fields.pop("apartment_type", ApartmentType.one_bhk.value),
            rent=rent,
            **fields,
        )
        async_session.add(apartment)
        await async_session.commit()
        return apartment
    return factory


@pytest.fixture
def make_tenant(async_session):
    async def factory(email="tenant@example.com", apartment_id=None, **fields):
        today = date.today()
        return await create_tenant(
            async_session,
            name=fields.pop("name", "Test Tenant"),
            email=email,
            password=fields.pop("password", "secret123"),
            apartment_id=apartment_id,
            lease_start_date=fields.pop("lease_start_date", today - timedelta(days=30)),
            lease_end_date=fields.pop("lease_end_date", today + timedelta(days=335)),
            monthly_rent=fields.pop("monthly_rent", 1200),
            send_welcome=False,
            **fields,
        )
    return factory


@pytest.fixture
def make_user(async_session):
    async def factory(email, role=Role.admin.value, password="secret123", **fields):
        user = User(
            name=fields.pop("name", role.title()),
            email=email,
            password_hash=hash_password(password),
            role=role,
            **fields,
        )
        async_session.add(user)
        await async_session.commit()
        return user
    return factory


@pytest.fixture
def make_beverage(async_session):
    async def factory(name="Cola", price=15.0, **fields):
        beverage = Beverage(
            name=name,
            category=fields.pop("category", BeverageCategory.non_alcoholic.value),
            price=price,
            is_available=fields.pop("is_available", True),
            stock_quantity=fields.pop("stock_quantity", 50),
            **fields,
        )
        async_session.add(beverage)
        await async_session.commit()
        return beverage
    return factory
