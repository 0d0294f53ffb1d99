"""
Database base configuration and async session management
"""

from typing import Any, AsyncIterator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings

# Base class for models (must be defined first)
Base = declarative_base()


def get_database_url(database_url: Optional[str] = None) -> str:
    """Get database URL, converting to async format if needed"""
    database_url = database_url or settings.DATABASE_URL or "postgresql+asyncpg://localhost/errandbit"
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


class Database:
    """
    Owns the engine and session factory for one process.

    The engine is created lazily on first use and disposed by close().
    The application constructs one instance at startup and hands it to
    whatever needs sessions; tests construct their own.
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None, **engine_kwargs: Any):
        self.url = get_database_url(url)
        self.echo = settings.DEBUG if echo is None else echo
        self.engine_kwargs = engine_kwargs
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def engine(self) -> AsyncEngine:
        """Get or create the async database engine (lazy initialization)"""
        if self._engine is None:
            kwargs = {"echo": self.echo, "future": True}
            if not self.url.startswith("sqlite"):
                kwargs["pool_pre_ping"] = True
            kwargs.update(self.engine_kwargs)
            self._engine = create_async_engine(self.url, **kwargs)
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker:
        """Get or create the async session factory (lazy initialization)"""
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autocommit=False,
                autoflush=False
            )
        return self._session_factory

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self) -> None:
        """Create all tables directly (tests and local tooling; production uses Alembic)"""
        import app.db.all_models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None


def get_database(request: Request) -> Database:
    """FastAPI dependency returning the application's Database"""
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise RuntimeError("Database not initialized")
    return database


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """
    Async dependency to get database session.
    Use this in FastAPI route dependencies.

    Example:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Item))
            return result.scalars().all()
    """
    database = get_database(request)
    async with database.session() as session:
        try:
            yield session
        finally:
            await session.close()
