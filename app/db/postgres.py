"""PostgreSQL Database Configuration"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from typing import AsyncGenerator

from app.config import settings
from app.db.base import Base

connect_args = {}
if settings.database_url.startswith("postgresql+asyncpg"):
    # Server-side bound for every statement; the repository layer adds its own wait_for
    connect_args["command_timeout"] = settings.store_timeout_seconds

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    poolclass=NullPool,
    connect_args=connect_args,
)

# Create async session factory
async_session = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


def get_session_factory() -> async_sessionmaker:
    """Dependency for components that open their own short-lived sessions (audit, push)."""
    return async_session
