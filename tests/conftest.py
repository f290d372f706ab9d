"""
Shared fixtures: in-memory SQLite async database, seeded businesses,
catalog rows, and an HTTP client wired to the test database.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from washq.db.session import Base, get_db_session
from washq.db.models import Business, Car, Customer, Service
from washq.domain.states import CapacityMode

SCENARIO_NOW = datetime(2024, 12, 15, 9, 0, 0)


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s
        await s.rollback()


async def _add_business(session, business_id, capacity, max_jobs=1):
    business = Business(
        id=business_id,
        name=f"{business_id} car wash",
        api_key=f"key-{business_id}",
        car_handling_capacity=capacity,
        max_concurrent_jobs=max_jobs,
        whatsapp_templates={},
    )
    session.add(business)
    await session.commit()
    return business


@pytest.fixture
async def single_business(session):
    return await _add_business(session, "single-bay", CapacityMode.SINGLE, max_jobs=5)


@pytest.fixture
async def multi_business(session):
    return await _add_business(session, "three-bay", CapacityMode.MULTIPLE, max_jobs=3)


async def seed_catalog(session, business_id, max_times=(30,), prices=None):
    """One customer, one car, and one active service per entry in max_times."""
    customer = Customer(business_id=business_id, name="Asha Rao", phone="+91 98765-43210")
    session.add(customer)
    await session.flush()

    car = Car(business_id=business_id, customer_id=customer.id, car_number="KA01AB1234", brand="Maruti")
    session.add(car)

    prices = prices or [Decimal("10.00")] * len(max_times)
    services = []
    for i, (max_time, price) in enumerate(zip(max_times, prices)):
        service = Service(
            business_id=business_id,
            name=f"Service {i}",
            price=price,
            min_time=max_time // 2 if max_time else None,
            max_time=max_time,
            is_active=True,
        )
        session.add(service)
        services.append(service)

    await session.commit()
    return customer, car, services


@pytest.fixture
async def client(session_factory):
    from washq.main import app

    async def override_get_db_session():
        async with session_factory() as s:
            try:
                yield s
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
