"""Shared test fixtures for the auth test suite."""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from dotenv import load_dotenv

from auth.activity_log import ActivityLogger
from auth.api import AuthHandlers
from auth.config import AuthConfig
from auth.database import UserDatabase
from auth.login_attempts import LoginAttemptTracker
from auth.notifier import LoggingNotifier
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.session import SessionManager
from auth.types import RegisterRequest, RequestContext
from clients.memory_store import InMemoryDocumentStore
from utils.clock import FrozenClock

load_dotenv(Path(__file__).parent.parent / ".env", override=True)


# =============================================================================
# TEST CONSTANTS
# =============================================================================

START_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

TEST_SIGNING_KEY = "test-signing-key-0123456789abcdefghijklmnop"

TEST_EMAIL = "a@x.com"
TEST_PASSWORD = "Str0ng!Pass"
TEST_IP = "1.2.3.4"


# =============================================================================
# CORE FIXTURES
# =============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at START_TIME; advance explicitly."""
    return FrozenClock(START_TIME)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Fresh in-memory document store per test, with the production unique indexes."""
    store = InMemoryDocumentStore()
    store.ensure_indexes()
    return store


@pytest.fixture
def config() -> AuthConfig:
    """Default policy with the cheapest bcrypt cost for fast tests."""
    return AuthConfig(bcrypt_rounds=4)


@pytest.fixture
def context() -> RequestContext:
    return RequestContext(ip_address=TEST_IP, user_agent="TestBrowser/1.0")


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================


@pytest.fixture
def hasher(config) -> PasswordHasher:
    return PasswordHasher(config.bcrypt_rounds)


@pytest.fixture
def sessions(config, clock) -> SessionManager:
    return SessionManager(TEST_SIGNING_KEY, config, clock)


@pytest.fixture
def users(store, clock) -> UserDatabase:
    return UserDatabase(store, clock)


@pytest.fixture
def attempts(store, config, clock) -> LoginAttemptTracker:
    return LoginAttemptTracker(store, config, clock)


@pytest.fixture
def activity(store, clock) -> ActivityLogger:
    return ActivityLogger(store, clock)


@pytest.fixture
def notifier(config) -> LoggingNotifier:
    return LoggingNotifier(config)


@pytest.fixture
def auth_service(config, users, hasher, sessions, attempts, activity, notifier, clock) -> AuthService:
    """AuthService wired to the in-memory store and frozen clock."""
    return AuthService(
        config=config,
        users=users,
        hasher=hasher,
        sessions=sessions,
        attempts=attempts,
        activity=activity,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def handlers(auth_service, sessions) -> AuthHandlers:
    return AuthHandlers(auth_service, sessions)


@pytest.fixture
def registered(auth_service, context):
    """A registered user (TEST_EMAIL / TEST_PASSWORD). Returns the AuthSession."""
    return auth_service.register(
        RegisterRequest(name="Alice", email=TEST_EMAIL, password=TEST_PASSWORD),
        context,
    )
