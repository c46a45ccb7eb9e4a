"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.redis_client import get_redis
from backend.app.core.jwt import create_access_token
from backend.app.core.security import get_password_hash
from backend.app.domain.tokens.operator_store import counter_locks
from backend.app.models.enums import UserRole
from backend.app.models.user import User
from backend.app.models.vehicle import Vehicle
from backend.app.models.vehicle_rate import VehicleRate
import backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
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

    # Patch the global redis client used by token revocation
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
    counter_locks.clear()

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
def session_factory():
    return TestingSessionLocal


async def fetch_user(user_id: int) -> User:
    """Read a user through a fresh session (committed state only)."""
    async with TestingSessionLocal() as session:
        result = await session.execute(select(User).where(User.id == user_id))
        return result.scalar_one()


def auth_headers(user: User) -> dict:
    token = create_access_token(data={
        "sub": user.username,
        "user_id": user.id,
        "role": user.role.value,
    })
    return {"Authorization": f"Bearer {token}"}


async def make_user(session: AsyncSession, username: str, phone: str, role: UserRole = UserRole.OPERATOR,
                    password: str = "password123", is_active: bool = True) -> User:
    user = User(
        username=username,
        phone=phone,
        route="Main Gate",
        hashed_password=get_password_hash(password),
        role=role,
        is_active=is_active,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def make_vehicle(session: AsyncSession, vehicle_type: str, rate: float = None) -> Vehicle:
    vehicle = Vehicle(vehicle_type=vehicle_type, is_active=True)
    session.add(vehicle)
    await session.flush()
    if rate is not None:
        session.add(VehicleRate(vehicle_id=vehicle.id, rate=rate, is_active=True))
    await session.commit()
    await session.refresh(vehicle)
    return vehicle


@pytest.fixture
async def admin_user(db_session):
    return await make_user(db_session, "admin", "9000000000", role=UserRole.ADMIN, password="admin12345")


@pytest.fixture
async def operator(db_session):
    return await make_user(db_session, "jdoe", "9000000001", password="operator123")


@pytest.fixture
async def other_operator(db_session):
    return await make_user(db_session, "asmith", "9000000002", password="operator123")


@pytest.fixture
async def truck(db_session):
    return await make_vehicle(db_session, "Truck 10 Wheel", rate=450.0)


@pytest.fixture
async def tractor(db_session):
    return await make_vehicle(db_session, "Tractor", rate=150.0)


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def operator_headers(operator):
    return auth_headers(operator)


def token_payload(vehicle_id: int, **overrides) -> dict:
    payload = {
        "vehicle_id": vehicle_id,
        "driver_name": "Ravi Kumar",
        "driver_mobile_no": "9876543210",
        "vehicle_no": "mh12ab1234",
        "route": "Quarry to Depot",
        "quantity": 12.5,
        "place": "Depot",
        "challan_pin": "CH-001",
    }
    payload.update(overrides)
    return payload


# Helper fixtures (tests never import conftest directly)
@pytest.fixture
def fetch_user_fn():
    return fetch_user


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def make_user_fn():
    return make_user


@pytest.fixture
def make_vehicle_fn():
    return make_vehicle


@pytest.fixture
def payload_for():
    return token_payload
