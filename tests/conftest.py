"""
Test infrastructure for the article votes API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- httpx's ASGITransport does not run the lifespan, so the test ``Store`` is
  published on ``app.state.store`` directly, exactly where the lifespan
  would put the production one.
- All tables are created fresh before each test and dropped after, giving
  each test a clean isolated state without needing transactions or truncation.
- Identity verification uses ``FakeVerifier``: a fixed token -> identity map.
"""
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from votes_api.database import Base, Store
from votes_api.identity import Identity, TokenVerificationError
from votes_api.main import app
from votes_api.models import Article

# ---------------------------------------------------------------------------
# Test store — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

store_test = Store(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
store_test.connected = True


class FakeVerifier:
    """Accepts the tokens listed in ``tokens``; anything else is invalid."""

    def __init__(self, tokens: dict[str, Identity]) -> None:
        self.tokens = tokens
        self.calls: list[str] = []

    async def verify(self, token: str) -> Identity:
        self.calls.append(token)
        try:
            return self.tokens[token]
        except KeyError:
            raise TokenVerificationError("token rejected") from None


fake_verifier = FakeVerifier({"good-token": Identity(uid="uid-1", email="reader@example.com")})

app.state.store = store_test
app.state.verifier = fake_verifier


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def create_article(session: AsyncSession, name: str = "foo", **fields) -> Article:
    """Insert an article directly (the API never creates articles)."""
    created = datetime.now(timezone.utc) - timedelta(days=1)
    values = {
        "title": f"Title of {name}",
        "image": f"https://img.example.com/{name}.png",
        "content": f"Content of {name}",
        "vote_count": 0,
        "created_at": created,
        "last_updated_at": created,
    }
    values.update(fields)
    article = Article(name=name, **values)
    session.add(article)
    await session.commit()
    return article


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    app.state.store = store_test
    app.state.verifier = fake_verifier
    fake_verifier.calls.clear()
    store_test.connected = True
    async with store_test.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with store_test.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that need to interact with the
    database directly (e.g. seeding articles, asserting stored rows).
    """
    async with store_test.session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def make_article(db_session: AsyncSession):
    """Factory fixture: ``await make_article("name", vote_count=3)``."""

    async def _make(name: str, **fields) -> Article:
        return await create_article(db_session, name, **fields)

    return _make


@pytest_asyncio.fixture
async def article(db_session: AsyncSession) -> Article:
    return await create_article(db_session, "foo")
