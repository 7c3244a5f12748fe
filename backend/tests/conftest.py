import os

# Must be set before any smarttask import: config validation is skipped and
# the default engine is in-memory when TESTING is on.
os.environ["TESTING"] = "1"

from unittest.mock import AsyncMock  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from smarttask.auth.jwt_tokens import JwtTokenService  # noqa: E402
from smarttask.config import get_settings  # noqa: E402
from smarttask.crud import crud  # noqa: E402
from smarttask.database import Base  # noqa: E402
from smarttask.database import make_engine  # noqa: E402
from smarttask.database import make_sessionmaker  # noqa: E402
from smarttask.dispatch.access_policy import AccessPolicyRegistry  # noqa: E402
from smarttask.main import create_app  # noqa: E402
from smarttask.models.enums import UserRole  # noqa: E402
from smarttask.utils.security import hash_password  # noqa: E402

# Create a test database - using in-memory SQLite for tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

test_engine = make_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool for in-memory database
)

TestingSessionLocal = make_sessionmaker(test_engine)

DEFAULT_PASSWORD = "s3cret-pass"

# Hashing with production iteration counts makes every fixture user slow.
_PASSWORD_HASH_CACHE: dict = {}


def _hashed(password: str) -> str:
    if password not in _PASSWORD_HASH_CACHE:
        _PASSWORD_HASH_CACHE[password] = hash_password(password, iterations=1_000)
    return _PASSWORD_HASH_CACHE[password]


@pytest.fixture
def session_factory():
    """Fresh schema per test on the shared in-memory engine."""

    Base.metadata.create_all(bind=test_engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    s = get_settings()
    s.override(openai_api_key="sk-test", openai_model="gpt-test", environment="test")
    return s


@pytest.fixture
def token_service(settings):
    return JwtTokenService(settings)


@pytest.fixture
def policy():
    """Isolated allow-list so admin mutations never leak between tests."""
    return AccessPolicyRegistry.with_defaults()


@pytest.fixture
def openai_client():
    """AsyncOpenAI stand-in; set ``.reply`` content via ``set_reply``."""

    client = MagicMock()
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = "This is a mock response from the LLM"
    client.chat.completions.create = AsyncMock(return_value=response)

    def set_reply(content: str) -> None:
        response.choices[0].message.content = content

    client.set_reply = set_reply
    return client


@pytest.fixture
def app(settings, session_factory, policy, openai_client):
    return create_app(settings=settings, session_factory=session_factory, policy=policy, openai_client=openai_client)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make_user(
        username: str = "alice",
        email: str = "alice@example.com",
        password: str = DEFAULT_PASSWORD,
        role: str = UserRole.USER.value,
        full_name: str = "Alice Example",
    ):
        return crud.create_user(
            db,
            username=username,
            email=email,
            password_hash=_hashed(password),
            full_name=full_name,
            role=role,
        )

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(username="root", email="root@example.com", role=UserRole.ADMIN.value, full_name="Root Admin")


@pytest.fixture
def auth_headers(token_service):
    def _auth_headers(u):
        return {"Authorization": f"Bearer {token_service.generate_access_token(u)}"}

    return _auth_headers
