import os
from collections.abc import AsyncGenerator
from datetime import timedelta
from unittest.mock import MagicMock

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Tests always run against an in-memory SQLite database, never the configured one.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("S3_BUCKET_NAME", "recipebox-test")
os.environ.setdefault("S3_PUBLIC_BASE_URL", "https://cdn.test/")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from recipebox.core.identity_providers import (  # noqa: E402
    IdentityProvider,
    IdentityVerificationError,
)
from recipebox.core.redis_client import get_redis_client  # noqa: E402
from recipebox.core.security import create_access_token, password_hasher  # noqa: E402
from recipebox.core.storage import BlobStore, get_blob_store  # noqa: E402
from recipebox.database import get_db  # noqa: E402
from recipebox.dependencies import get_identity_provider  # noqa: E402
from recipebox.main import app  # noqa: E402
from recipebox.models import metadata  # noqa: E402
from recipebox.schemas.auth import ProviderAssertion  # noqa: E402
from recipebox.services.identity_store import IdentityStore  # noqa: E402


class InMemoryBlobStore(BlobStore):
    """Blob store double that keeps objects in a dict."""

    base_url = "https://cdn.test/"

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_put = False
        self.fail_delete = False
        self.lose_writes = False

    def put(self, key: str, data: bytes, content_type: str) -> str:
        self.calls.append(("put", key))
        if self.fail_put:
            raise OSError("bucket unavailable")
        if not self.lose_writes:
            self.objects[key] = data
        return f"{self.base_url}{key}"

    def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        if self.fail_delete:
            raise OSError("bucket unavailable")
        self.objects.pop(key, None)

    def head_check(self, key: str) -> bool:
        self.calls.append(("head", key))
        return key in self.objects

    def key_from_url(self, url: str) -> str | None:
        if not url or not url.startswith(self.base_url):
            return None
        return url[len(self.base_url) :] or None


class FakeIdentityProvider(IdentityProvider):
    """Identity provider double resolving known tokens to fixed assertions."""

    def __init__(self):
        self.assertions: dict[str, ProviderAssertion] = {}

    async def verify(self, id_token: str) -> ProviderAssertion:
        try:
            return self.assertions[id_token]
        except KeyError:
            raise IdentityVerificationError("Invalid ID token")


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a fresh schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def identity_store() -> IdentityStore:
    return IdentityStore()


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis double: empty cache, no revoked tokens."""
    redis_client = MagicMock()
    redis_client.get.return_value = None
    redis_client.exists.return_value = 0
    return redis_client


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    mock_redis: MagicMock,
    blob_store: InMemoryBlobStore,
    identity_provider: FakeIdentityProvider,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: mock_redis
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession, identity_store: IdentityStore) -> dict:
    """Credential account with password ``correct-horse``."""
    return await identity_store.create(
        db_session,
        email="cook@example.com",
        provider="credential",
        password_hash=password_hasher.hash("correct-horse"),
        display_name="Julia Child",
        first_name="Julia",
        last_name="Child",
    )


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession, identity_store: IdentityStore) -> dict:
    """Google account belonging to someone else."""
    return await identity_store.create(
        db_session,
        email="baker@example.com",
        provider="google",
        display_name="Paul Hollywood",
        verified=True,
    )


def _bearer(user: dict) -> dict:
    token = create_access_token(data={"sub": str(user["id"])}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user: dict) -> dict:
    """Create authentication headers for testing protected endpoints."""
    return _bearer(test_user)


@pytest.fixture
def headers_for():
    """Build authentication headers for an arbitrary identity record."""
    return _bearer
