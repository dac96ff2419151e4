"""
Database session configuration.

One async engine for the courier database (asyncpg in production, aiosqlite
under test). Sessions keep attributes loaded after commit so services can
serialize a parcel for its lifecycle events without another round trip.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.app.core.config import settings

# Pool sizing comes from settings (DB_POOL_SIZE, DB_MAX_OVERFLOW)
engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Shared by the User, Parcel, Location and AuditLog models
Base = declarative_base()


async def get_db():
    """
    Request-scoped session. Services own their commits; this only closes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
