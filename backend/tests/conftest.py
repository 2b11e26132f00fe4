"""Pytest fixtures for backend tests."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from loginguard.core.config import Settings
from loginguard.main import create_app
from loginguard.services.credentials import get_password_hash
from loginguard.services.login_limiter import LoginLimiter

START_MS = 1_700_000_000_000

ADMIN_TOKEN = "test-admin-token"
MODERATOR_TOKEN = "test-moderator-token"
USER_TOKEN = "test-user-token"

TEST_EMAIL = "alice@example.com"
TEST_PASSWORD = "correct-horse-battery"

# Hashing is slow on purpose; do it once per session
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start_ms: int = START_MS):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 0, seconds: int = 0, minutes: int = 0) -> None:
        self.now += ms + seconds * 1000 + minutes * 60_000


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        SECURITY_API_TOKEN=ADMIN_TOKEN,
        API_TOKENS={MODERATOR_TOKEN: "moderator", USER_TOKEN: "user"},
        LOGIN_ACCOUNTS={TEST_EMAIL: TEST_PASSWORD_HASH},
        # Tests pick client addresses through X-Forwarded-For
        TRUST_PROXY_HEADERS=True,
    )


@pytest.fixture
def app(test_settings: Settings, clock: FakeClock) -> FastAPI:
    return create_app(test_settings, clock=clock)


@pytest.fixture
def limiter(app: FastAPI) -> LoginLimiter:
    """The limiter owned by the app under test."""
    return app.state.login_limiter


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an unauthenticated test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create a client carrying the admin bearer token."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {ADMIN_TOKEN}"},
    ) as ac:
        yield ac


@pytest.fixture
def admin_token() -> str:
    return ADMIN_TOKEN


@pytest.fixture
def moderator_token() -> str:
    return MODERATOR_TOKEN


@pytest.fixture
def user_token() -> str:
    return USER_TOKEN


@pytest.fixture
def account() -> tuple[str, str]:
    """Email and password of the configured login account."""
    return TEST_EMAIL, TEST_PASSWORD
