import logging
from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    url = url.strip()
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("sqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


class Base(DeclarativeBase):
    pass


class Database:
    """Engine and session factory for the assessment store.

    Built once at startup and shared by every request through ``app.state``.
    ``connect()`` may be called any number of times; only the first call
    creates the engine and the tables.
    """

    def __init__(self, url: str):
        self.url = normalize_database_url(url)
        self.engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_connected(self) -> bool:
        return self.engine is not None

    def _engine_kwargs(self) -> dict:
        kwargs: dict = {"echo": False}
        if self.is_sqlite:
            if ":memory:" in self.url:
                # one shared connection, otherwise every session sees an empty database
                kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
        else:
            kwargs.update(pool_size=5, max_overflow=10, pool_pre_ping=True)
        return kwargs

    async def connect(self) -> None:
        if self.is_connected:
            logger.debug("Reusing existing database engine")
            return

        self.engine = create_async_engine(self.url, **self._engine_kwargs())
        self._sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

        async with self.engine.begin() as conn:
            from damage_intake.models import assessment  # noqa: F401
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database connected (%s)", self.url.split("://", 1)[0])

    def session(self) -> AsyncSession:
        if self._sessionmaker is None:
            raise RuntimeError("Database.connect() has not been awaited")
        return self._sessionmaker()

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
        self.engine = None
        self._sessionmaker = None


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
