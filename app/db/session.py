from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings


def engine_options(database_url: str) -> Dict[str, Any]:
    """Pool settings per backend.

    Postgres connections are pinged before use and recycled after 5 minutes so
    idle connections closed by the server are never handed out. SQLite (local
    runs, tests) keeps the default pool.
    """
    if database_url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True, "pool_recycle": 300}


engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    future=True,
    **engine_options(settings.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session. Listing endpoints only read, so nothing is committed."""
    async with AsyncSessionLocal() as session:
        yield session
