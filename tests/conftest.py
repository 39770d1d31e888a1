import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.models import Post, User
from app.db.session import Base, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """One in-memory SQLite database per test, shared by every connection."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def sample_data(db_session: AsyncSession) -> None:
    """
    Users (createdAt ascending u1..u4):
      u1 Alice  alice@acme.com   posts p1 (published), p2 (draft)
      u2 Bob    bob@acme.com     posts p3 (draft)
      u3 (none) carol@other.org  posts p4 (published)
      u4 Dave   dave@other.org   no posts
    """
    users = [
        User(id="u1", email="alice@acme.com", name="Alice", created_at=datetime(2024, 1, 1), updated_at=datetime(2024, 1, 1)),
        User(id="u2", email="bob@acme.com", name="Bob", created_at=datetime(2024, 2, 1), updated_at=datetime(2024, 2, 1)),
        User(id="u3", email="carol@other.org", name=None, created_at=datetime(2024, 3, 1), updated_at=datetime(2024, 3, 1)),
        User(id="u4", email="dave@other.org", name="Dave", created_at=datetime(2024, 4, 1), updated_at=datetime(2024, 4, 1)),
    ]
    posts = [
        Post(id="p1", title="Intro to FastAPI", content="FastAPI makes APIs easy", published=True,
             author_id="u1", created_at=datetime(2024, 1, 10), updated_at=datetime(2024, 1, 10)),
        Post(id="p2", title="SQLAlchemy tips", content="Use selectinload for collections", published=False,
             author_id="u1", created_at=datetime(2024, 2, 10), updated_at=datetime(2024, 2, 10)),
        Post(id="p3", title="Draft on pydantic", content=None, published=False,
             author_id="u2", created_at=datetime(2024, 3, 10), updated_at=datetime(2024, 3, 10)),
        Post(id="p4", title="Async Python", content="asyncio all the way down", published=True,
             author_id="u3", created_at=datetime(2024, 4, 10), updated_at=datetime(2024, 4, 10)),
    ]
    db_session.add_all(users)
    await db_session.flush()
    db_session.add_all(posts)
    await db_session.commit()
