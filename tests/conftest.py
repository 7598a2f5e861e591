"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests. Redis is mocked for every test.
"""
import os

# Settings are read on first get_settings(); pin the test environment before any vidah import.
os.environ["APP_ENV"] = "test"
os.environ["SESSION_SECRET"] = "test_session_secret"
os.environ["JWT_SECRET"] = "test_jwt_secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["DATABASE_URL"] = ""
os.environ["SENTRY_DSN"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

import httpx
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from vidah.database import Base, get_db
import vidah.models  # noqa: F401
from vidah.models.admin_user import AdminUser
from vidah.models.conversion import WhatsappConversion
from vidah.services.auth import create_admin_token, hash_password
from vidah.services.conversion_store import ConversionStore, get_conversion_store

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "correct-horse-battery"
ADMIN_EMAIL = "admin@cartaovidah.com"

DESKTOP_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"
MOBILE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148"


@pytest.fixture
async def engine():
    """In-memory SQLite shared by every session in a test (StaticPool)."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session_factory):
    return ConversionStore(session_factory=session_factory)


@pytest.fixture(autouse=True)
def mock_redis():
    """Mock for async Redis - every rate-limit check sees a first hit."""
    pipeline = MagicMock()
    pipeline.execute = AsyncMock(return_value=[1, True])

    redis_mock = AsyncMock()
    redis_mock.pipeline = MagicMock(return_value=pipeline)
    redis_mock.ttl = AsyncMock(return_value=300)
    redis_mock.ping = AsyncMock(return_value=True)
    with patch("vidah.utils.rate_limiter.get_redis", new_callable=AsyncMock, return_value=redis_mock):
        yield redis_mock


@pytest.fixture
def redis_pipeline(mock_redis):
    """The MULTI pipeline the rate limiter queues INCR/EXPIRE on."""
    return mock_redis.pipeline.return_value


@pytest.fixture
def app(session_factory, store):
    """App wired to the test database and store."""
    from vidah.main import create_app

    with patch("vidah.main.configure_structured_logging"):
        application = create_app()

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_conversion_store] = lambda: store
    return application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def admin_user(db):
    admin = AdminUser(
        username=ADMIN_USERNAME,
        email=ADMIN_EMAIL,
        password_hash=hash_password(ADMIN_PASSWORD),
        is_active=True,
    )
    db.add(admin)
    await db.commit()
    return admin


@pytest.fixture
def auth_headers(admin_user):
    return {"Authorization": f"Bearer {create_admin_token(admin_user)}"}


@pytest.fixture
def make_conversion(db):
    """Factory inserting a conversion row directly (bypassing the store)."""

    async def _make(**overrides) -> WhatsappConversion:
        values = {
            "name": "Maria Silva",
            "email": "maria@example.com",
            "phone": "(16) 99324-7676",
            "button_type": "plan_subscription",
            "plan_name": "Cartão Familiar",
            "doctor_name": None,
            "ip_address": "10.0.0.1",
            "user_agent": DESKTOP_UA,
            "created_at": datetime.now(timezone.utc),
        }
        values.update(overrides)
        row = WhatsappConversion(**values)
        db.add(row)
        await db.commit()
        return row

    return _make
