"""
Async SQLAlchemy engine and session factory.

Uses ``asyncpg`` as the PostgreSQL driver for non-blocking I/O.  The engine
runs every transaction at ``settings.transaction_isolation`` (SERIALIZABLE
by default) so concurrent allocations against the same vehicle cannot both
commit.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from fleetflow.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    isolation_level=settings.transaction_isolation,
    pool_size=20,
    max_overflow=10,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""
