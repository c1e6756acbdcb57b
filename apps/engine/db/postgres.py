"""PostgreSQL connection handle with configurable pooling.

Pool configuration via settings:
- POSTGRES_POOL_MIN_SIZE: Minimum connections (default: 2)
- POSTGRES_POOL_MAX_SIZE: Maximum connections (default: 10)
- POSTGRES_POOL_RECYCLE: Connection recycle time in seconds (default: 3600)

The handle is owned by the caller and passed to the stores that need it:

    async with PostgresDatabase.from_settings(settings) as database:
        store = SqlDecisionStore(database)
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy.exc import (
    DBAPIError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.exc import (
    TimeoutError as SQLAlchemyTimeoutError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config import Settings, get_settings
from utils.logging import get_logger
from utils.retry import with_retry

logger = get_logger(__name__)

# Exceptions that indicate the store itself is unavailable
POSTGRES_UNAVAILABLE_EXCEPTIONS = (
    OperationalError,  # Connection issues, server disconnects
    InterfaceError,  # Interface-level errors
    DBAPIError,  # Generic database errors (filtered by connection_invalidated)
    SQLAlchemyTimeoutError,  # Pool checkout timeouts
    ConnectionError,  # Socket-level connection errors
    TimeoutError,  # General timeouts
    OSError,  # Low-level I/O errors
)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy declarative models."""

    pass


def is_unavailable_error(exc: BaseException) -> bool:
    """Check if an exception means the database could not be reached.

    Args:
        exc: The exception that was raised

    Returns:
        True if the error is a connectivity or timeout failure
    """
    if isinstance(exc, POSTGRES_UNAVAILABLE_EXCEPTIONS):
        # OperationalError and InterfaceError are DBAPIError subclasses and are
        # always connectivity failures; bare DBAPIErrors only when the
        # connection was invalidated
        if isinstance(exc, (OperationalError, InterfaceError)):
            return True
        if isinstance(exc, DBAPIError) and not exc.connection_invalidated:
            return False
        return True
    return False


class PostgresDatabase:
    """Owns one async engine and its session factory."""

    def __init__(self, database_url: str, echo: bool = False, **pool_options: Any):
        self.database_url = database_url
        self.echo = echo
        self.pool_options = pool_options
        self.engine: Optional[AsyncEngine] = None
        self._session_maker: Optional[async_sessionmaker[AsyncSession]] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PostgresDatabase":
        settings = settings or get_settings()
        return cls(
            settings.database_url,
            echo=settings.debug,
            pool_size=settings.postgres_pool_min_size,
            max_overflow=settings.postgres_pool_max_size - settings.postgres_pool_min_size,
            pool_recycle=settings.postgres_pool_recycle,
        )

    async def open(self, create_tables: bool = False) -> None:
        """Create the engine; optionally create missing tables with retry."""
        logger.info(f"Initializing PostgreSQL connection pool: {self.pool_options}")

        self.engine = create_async_engine(
            self.database_url,
            echo=self.echo,
            pool_pre_ping=True,
            **self.pool_options,
        )
        self._session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        if create_tables:

            async def _create_tables():
                async with self.engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)

            await with_retry(
                _create_tables,
                is_retryable=is_unavailable_error,
                max_retries=3,
                base_delay=1.0,
                operation_name="PostgreSQL table creation",
            )

        logger.info("PostgreSQL connection pool initialized successfully")

    async def close(self) -> None:
        """Dispose of the connection pool."""
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self._session_maker = None
            logger.info("PostgreSQL connection pool closed")

    async def __aenter__(self) -> "PostgresDatabase":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session from the pool, rolling back on error."""
        if self._session_maker is None:
            raise RuntimeError("PostgresDatabase is not open")
        async with self._session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
