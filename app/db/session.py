from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings

# Postgres schemas: tenancy tables live in "core", fee ledger tables in "school".
CORE_SCHEMA = "core"
SCHOOL_SCHEMA = "school"

# Idle connections are pinged before use and recycled, since the database side closes them.
engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    future=True,
    pool_pre_ping=True,
    pool_recycle=settings.db_pool_recycle_seconds,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; every service function commits or rolls back its own unit of work."""
    async with AsyncSessionLocal() as session:
        yield session
