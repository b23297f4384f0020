"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from beerank.app.main import app
from beerank.app.db.session import get_db, Base
from beerank.app.core.config import Settings
from beerank.app.core.redis_client import get_redis
from beerank.app.domain.routing.graph_cache import RouteGraphCache
from beerank.app.models.user import User
from beerank.app.models.taxi_rank import TaxiRank
from beerank.app.models.transit_route import TransitRoute
from beerank.app.services.planning import JourneyPlanningService
import beerank.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)).lower():
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}

# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()

@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by the health check
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client

@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()
    # Graph snapshots must not leak between tests
    app.state.graph_cache = RouteGraphCache()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def test_settings():
    return Settings(
        default_max_hops=3,
        max_hops_limit=6,
        sign_verification_threshold=2,
        sign_match_radius_km=2.0,
        snap_radius_km=2.0,
        verification_retry_attempts=3,
    )


@pytest.fixture
def service(db_session, redis_client_session, test_settings):
    """Planning facade bound to the test session."""
    return JourneyPlanningService(
        db_session,
        RouteGraphCache(),
        redis=redis_client_session,
        config=test_settings,
    )


class Seeder:
    """Inserts rows directly, bypassing the service layer."""

    def __init__(self, db):
        self.db = db

    async def user(self, username="commuter", is_active=True):
        user = User(username=username, email=f"{username}@test.com", is_active=is_active)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def rank(self, name, latitude, longitude, is_active=True, **extra):
        rank = TaxiRank(name=name, latitude=latitude, longitude=longitude, is_active=is_active, **extra)
        self.db.add(rank)
        await self.db.commit()
        await self.db.refresh(rank)
        return rank

    async def route(self, origin, destination, fare, duration=None, distance=None, is_active=True, **extra):
        extra.setdefault("from_location", origin.name)
        extra.setdefault("to_location", destination.name)
        route = TransitRoute(
            origin_rank_id=origin.id,
            destination_rank_id=destination.id,
            route_name=f"{origin.name} - {destination.name}",
            fare=fare,
            duration_minutes=duration,
            distance_km=distance,
            is_active=is_active,
            **extra
        )
        self.db.add(route)
        await self.db.commit()
        await self.db.refresh(route)
        return route


@pytest.fixture
def seed(db_session):
    return Seeder(db_session)


@pytest.fixture
async def network(seed):
    """
    Small Cape Town network.

        A -> B (10, 20min)   B -> C (15, 25min)   C -> D (5, 10min)
        A -> E (8, 15min)    E -> C (20, 30min)

    D has no outgoing routes; F is isolated.
    """
    ranks = {
        "A": await seed.rank("Cape Town CBD", -33.9249, 18.4241),
        "B": await seed.rank("Wynberg", -34.0186, 18.4745),
        "C": await seed.rank("Mitchell's Plain", -34.0342, 18.6290),
        "D": await seed.rank("Khayelitsha", -34.0293, 18.6920),
        "E": await seed.rank("Bellville", -33.8903, 18.6292),
        "F": await seed.rank("Durban Central", -29.8587, 31.0218),
    }
    routes = {
        "AB": await seed.route(ranks["A"], ranks["B"], 10, 20, 12.3, frequency_minutes=20),
        "BC": await seed.route(ranks["B"], ranks["C"], 15, 25, 8.5, frequency_minutes=30),
        "CD": await seed.route(ranks["C"], ranks["D"], 5, 10, 7.1, frequency_minutes=15),
        "AE": await seed.route(ranks["A"], ranks["E"], 8, 15, 15.7),
        "EC": await seed.route(ranks["E"], ranks["C"], 20, 30, 18.2),
    }
    return ranks, routes
