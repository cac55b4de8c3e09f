from typing import AsyncGenerator, AsyncIterator, Optional
from contextlib import asynccontextmanager

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from school_api.core.config import settings
from school_api.core.errors import DatabaseError
from school_api.core.logging import logger


class Database:
    """
    Explicitly constructed data-access handle.

    The application owns exactly one instance, opens it on startup and closes
    it on shutdown. Request handlers receive sessions from it through
    dependency injection instead of importing a global engine.
    """

    def __init__(self, url: str, echo: bool = False, **engine_options):
        self.url = url
        self.echo = echo
        self.engine_options = engine_options
        self.engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None

    @classmethod
    def from_settings(cls) -> "Database":
        options = {"pool_pre_ping": True}
        if not settings.is_sqlite:
            options.update(
                pool_size=settings.DATABASE_POOL_SIZE,   # Maximum number of connections in the pool
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
                pool_timeout=30,                          # Seconds to wait on checkout
                pool_recycle=1800,                        # Recycle connections after 30 minutes
            )
        return cls(settings.DATABASE_URL, echo=settings.DATABASE_ECHO, **options)

    @property
    def is_connected(self) -> bool:
        return self.engine is not None

    async def connect(self) -> None:
        """Create the engine and session factory; calling twice is a no-op"""
        if self.engine is not None:
            return
        self.engine = create_async_engine(self.url, echo=self.echo, **self.engine_options)
        self._sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False
        )
        logger.info("Database engine created")

    async def disconnect(self) -> None:
        """Close database connections"""
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self._sessionmaker = None
        logger.info("Database engine disposed")

    async def create_all(self) -> None:
        """Initialize database tables"""
        from school_api.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        from school_api.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Provide a session bound to this handle.
        Usage: async with database.session() as session:
        """
        if self._sessionmaker is None:
            raise DatabaseError("Database is not connected")
        session = self._sessionmaker()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_database(request: Request) -> Database:
    """FastAPI dependency returning the application's database handle"""
    return request.app.state.database


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async database session.
    Usage: db: AsyncSession = Depends(get_db)
    """
    async with get_database(request).session() as session:
        yield session
