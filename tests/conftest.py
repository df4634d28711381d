"""
Shared fixtures.

Everything runs against in-memory SQLite with a cheap bcrypt cost.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from lexaccess.access import AccessGrantLedger
from lexaccess.api.app import create_app
from lexaccess.auth import PasswordHasher, SessionManager, TokenCodec, VerificationService
from lexaccess.config import Settings
from lexaccess.core.roles import UserRole
from lexaccess.core.models import Profile
from lexaccess.services import ProfileService
from lexaccess.storage import create_memory_storage

TEST_SECRET = "test-secret-key-for-lexaccess-tests"
PAYMENT_SECRET = "test-payment-webhook-secret"


class FakeClock:
    """A clock tests can move by hand."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# =============================================================================
# Settings & primitives
# =============================================================================


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        environment="test",
        jwt_secret_key=TEST_SECRET,
        database_url="sqlite+aiosqlite://",
        bcrypt_rounds=4,
        sentry_dsn="",
        payment_webhook_secret=PAYMENT_SECRET,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codec(settings, clock):
    return TokenCodec.from_settings(settings, clock=clock)


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


# =============================================================================
# Storage & services
# =============================================================================


@pytest.fixture
async def storage():
    provider = create_memory_storage()
    await provider.database.connect()
    yield provider
    await provider.database.close()


@pytest.fixture
def sessions(storage, codec, hasher, settings):
    return SessionManager(storage.profiles, codec, hasher, settings)


@pytest.fixture
def ledger(storage, clock):
    return AccessGrantLedger(storage.grants, clock=clock)


@pytest.fixture
def verification(storage):
    return VerificationService(storage.profiles)


@pytest.fixture
def profile_service(storage, hasher):
    return ProfileService(storage.profiles, hasher)


@pytest.fixture
async def client_profile(storage):
    """A regular user with every required field filled in."""
    return await storage.profiles.create(Profile(
        id="user_client",
        email="client@example.com",
        first_name="Ada",
        last_name="Lovelace",
        phone="+44 20 7946 0000",
        role=UserRole.REGULAR_USER,
    ))


@pytest.fixture
async def advocate_profile(storage):
    return await storage.profiles.create(Profile(
        id="user_advocate",
        email="advocate@example.com",
        first_name="Rumpole",
        last_name="Bailey",
        phone="+44 20 7946 0001",
        role=UserRole.BARRISTER,
    ))


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def http(app):
    """TestClient with the lifespan running; redirects are not followed."""
    with TestClient(app, follow_redirects=False) as client:
        yield client


@pytest.fixture
def payment_headers(settings):
    """Headers the payment service sends on server-to-server calls."""
    return {settings.payment_webhook_header: settings.payment_webhook_secret}


@pytest.fixture
def register(http):
    """Register through the API; the client keeps the session cookie."""

    def _register(email="ada@example.com", password="correct-horse", **fields):
        body = {
            "email": email,
            "password": password,
            "firstName": fields.pop("first_name", "Ada"),
            "lastName": fields.pop("last_name", "Lovelace"),
            **fields,
        }
        return http.post("/api/auth/register", json=body)

    return _register
