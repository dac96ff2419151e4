"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.redis_client import get_redis
from backend.app.core.security import get_password_hash
from backend.app.models.user import User
from backend.app.models.enums import UserRole
from backend.app.services.realtime import registry, parcel_events
import backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


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
        self.expiry = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        self.expiry.pop(key, None)
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
            self.expiry = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture(scope="session")
def mock_redis():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(mock_redis):
    """Apply overrides once for the session."""
    # Token revocation reads the client through the module
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = mock_redis

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(mock_redis):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await mock_redis.flushdb()

    yield

    # Let scheduled notifications finish on this test's loop
    await parcel_events.drain()
    registry.clear()

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


# --- Users and tokens ---

def _headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register(client, name: str, email: str, role: str, password: str = "password123") -> dict:
    response = await client.post(
        "/v1/auth/register",
        json={"name": name, "email": email, "password": password, "role": role}
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
async def admin_token(client, db_session):
    """Admins cannot self-register, so the row is inserted directly."""
    admin = User(
        name="Admin",
        email="admin@courier.com",
        hashed_password=get_password_hash("admin123"),
        role=UserRole.ADMIN,
        is_active=True
    )
    db_session.add(admin)
    await db_session.commit()

    response = await client.post(
        "/v1/auth/login", json={"email": "admin@courier.com", "password": "admin123"}
    )
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


@pytest.fixture
async def customer(client):
    data = await register(client, "Carla Customer", "customer@courier.com", "customer")
    return {"id": data["user"]["id"], "token": data["access_token"], "headers": _headers(data["access_token"])}


@pytest.fixture
async def agent(client):
    data = await register(client, "Andy Agent", "agent@courier.com", "delivery_agent")
    return {"id": data["user"]["id"], "token": data["access_token"], "headers": _headers(data["access_token"])}


@pytest.fixture
async def other_agent(client):
    data = await register(client, "Olga Agent", "agent2@courier.com", "delivery_agent")
    return {"id": data["user"]["id"], "token": data["access_token"], "headers": _headers(data["access_token"])}


PARCEL_PAYLOAD = {
    "pickup_address": "12 Market Street",
    "pickup_latitude": 23.81,
    "pickup_longitude": 90.41,
    "delivery_address": "48 Lake Road",
    "delivery_latitude": 23.78,
    "delivery_longitude": 90.40,
    "parcel_size": "small",
    "parcel_type": "document",
    "weight": 1.5,
    "payment_method": "prepaid",
    "delivery_charge": 60,
}


@pytest.fixture
def parcel_payload():
    return dict(PARCEL_PAYLOAD)


@pytest.fixture
def admin_headers(admin_token):
    return _headers(admin_token)


@pytest.fixture
async def booked_parcel(client, customer):
    response = await client.post(
        "/v1/parcels", json=PARCEL_PAYLOAD, headers=_headers(customer["token"])
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
async def assigned_parcel(client, admin_token, booked_parcel, agent):
    response = await client.patch(
        f"/v1/parcels/{booked_parcel['id']}/assign",
        json={"agent_id": agent["id"]},
        headers=_headers(admin_token)
    )
    assert response.status_code == 200, response.text
    return response.json()
