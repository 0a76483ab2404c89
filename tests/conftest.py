"""Test configuration and fixtures."""

import os

# Settings are read at import time; point them at an in-memory database first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
import pytest_asyncio
from hypothesis import HealthCheck, settings as hypothesis_settings
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from natours.core.database import Base, get_db
from natours.models import *  # noqa: F403 - Import all models

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

API = "/api/v1/tours"

# Hypothesis builds its text charmap on a cold start, which can trip the too_slow check
hypothesis_settings.register_profile("default", suppress_health_check=[HealthCheck.too_slow])
hypothesis_settings.load_profile("default")


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


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session):
    """The application from ``create_app`` with its database swapped for the test session."""
    from natours.main import create_app

    app = create_app()

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def make_tour(**overrides):
    """A valid create payload in wire form."""
    data = {
        "name": "The Forest Hiker",
        "duration": 5,
        "maxGroupSize": 25,
        "difficulty": "easy",
        "ratingsAverage": 4.7,
        "ratingsQuantity": 37,
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "imageCover": "tour-1-cover.jpg",
        "images": ["tour-1-1.jpg", "tour-1-2.jpg"],
        "startDates": ["2021-04-25T09:00:00Z", "2021-07-20T09:00:00Z"],
    }
    data.update(overrides)
    return data


@pytest.fixture
def sample_tour_data():
    """Sample tour data for testing."""
    return make_tour()


@pytest.fixture
def catalog_data():
    """Five tours covering every difficulty, rating and price band used by the tests."""
    return [
        make_tour(
            name="The Forest Hiker",
            difficulty="easy",
            ratingsAverage=4.7,
            ratingsQuantity=37,
            price=397,
            startDates=["2021-04-25T09:00:00Z", "2021-07-20T09:00:00Z"],
        ),
        make_tour(
            name="The Sea Explorer",
            duration=7,
            difficulty="medium",
            ratingsAverage=4.8,
            ratingsQuantity=23,
            price=497,
            priceDiscount=397,
            startDates=["2021-07-19T09:00:00Z", "2021-08-18T09:00:00Z"],
        ),
        make_tour(
            name="The Snow Adventurer",
            duration=4,
            difficulty="difficult",
            ratingsAverage=4.5,
            ratingsQuantity=13,
            price=997,
            startDates=["2022-01-05T10:00:00Z"],
        ),
        make_tour(
            name="The City Wanderer",
            duration=9,
            difficulty="easy",
            ratingsAverage=4.6,
            ratingsQuantity=54,
            price=1197,
            startDates=["2021-07-11T10:00:00Z"],
        ),
        make_tour(
            name="The Star Gazer",
            duration=14,
            difficulty="medium",
            ratingsAverage=3.9,
            ratingsQuantity=8,
            price=2997,
            startDates=[],
        ),
    ]


@pytest_asyncio.fixture(scope="function")
async def catalog(test_session, catalog_data):
    """The catalog tours, created through the service."""
    from natours.schemas.tour import TourCreate
    from natours.services.tour_service import TourService

    service = TourService(test_session)
    return [await service.create_tour(TourCreate.model_validate(data)) for data in catalog_data]
