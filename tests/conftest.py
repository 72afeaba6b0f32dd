"""
Shared test fixtures.
API tests run the ASGI app against an in-memory SQLite database.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.dependencies import get_db
from app.main import app
from app.models.database import Base
from app.models.tables import InsurancePolicy


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def client(session_factory):
    """HTTP client whose requests each get a fresh session on the test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def policy(session_factory):
    """An insured car the claims can point at."""
    async with session_factory() as session:
        row = InsurancePolicy(
            policy_number="POL-0001",
            insurance_company="Thai Motor Insurance",
            insured_name="Somchai Jaidee",
            citizen_id="1100700000001",
            car_brand="Toyota",
            car_model="Yaris",
            car_year=2021,
            car_license_plate="1กข 1234",
            registration_province="Bangkok",
            insurance_type="Class 1",
        )
        session.add(row)
        await session.commit()
        return row


@pytest.fixture
def accident_draft():
    """Accident step as posted by the claim wizard."""
    return {
        "accidentType": "collision",
        "date": "2024-05-01",
        "time": "14:30",
        "province": "Bangkok",
        "district": "Pathum Wan",
        "road": "Rama I",
        "areaType": "urban",
        "nearby": "Siam Paragon",
        "details": "Rear-ended at a traffic light",
        "location": {"lat": 13.746389123, "lng": 100.534999876, "accuracy": 12.345},
        "evidenceMedia": [{"url": "https://img.example/evidence.jpg", "type": "image"}],
        "damagePhotos": [
            {"url": "https://img.example/rear.jpg", "side": "หลัง", "note": "bumper dent"},
            {"url": "https://img.example/left.jpg", "side": "ซ้าย"},
        ],
    }


@pytest.fixture
def submit_payload(policy, accident_draft):
    return {
        "user_id": 7,
        "selected_car_id": policy.id,
        "accident": accident_draft,
        "agreed": True,
    }


@pytest.fixture
async def submitted_claim(client, submit_payload):
    """A claim created through the submit endpoint. Returns the response data."""
    response = await client.post("/api/claim-submit/submit", json=submit_payload)
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def count_rows(session_factory):
    """Count rows of an ORM model in the test database."""

    async def _count(model) -> int:
        async with session_factory() as session:
            return (await session.execute(select(func.count()).select_from(model))).scalar()

    return _count
