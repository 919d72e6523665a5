import logging

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from votes_api.config import Settings
from votes_api.errors import StoreUnavailable
from votes_api.middleware import install_query_counter

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Store:
    """
    Lifetime-scoped handle on the article store.

    Owns the async engine (and therefore the connection pool shared by every
    request) plus the session factory.  The application creates one instance
    in its lifespan, publishes it as ``app.state.store`` and closes it on
    shutdown; nothing else holds a module-level connection.
    """

    def __init__(self, url: str | URL, *, echo: bool = False, **engine_kwargs) -> None:
        self.url = make_url(url)
        self.engine = create_async_engine(
            self.url,
            echo=echo,
            pool_pre_ping=True,
            **engine_kwargs,
        )
        # Register the per-request SQL query counter on this engine.
        install_query_counter(self.engine)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self.connected = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "Store":
        url = make_url(settings.DATABASE_URL)
        if settings.DATABASE_NAME:
            url = url.set(database=settings.DATABASE_NAME)
        return cls(url, echo=settings.DEBUG)

    async def connect(self, create_schema: bool = True) -> None:
        """
        Ping the store and optionally create missing tables.

        The models module must already be imported so that
        ``Base.metadata`` knows every table.

        Raises whatever the driver raises when the store is unreachable so
        that application startup aborts.
        """
        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if create_schema:
                await conn.run_sync(Base.metadata.create_all)
        self.connected = True
        logger.info("Connected to store: %s", self.masked_url)

    async def close(self) -> None:
        await self.engine.dispose()
        self.connected = False
        logger.info("Store connection closed")

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as exc:
            logger.warning("Store ping failed: %s", exc)
            return False
        return True

    @property
    def masked_url(self) -> str:
        return self.url.render_as_string(hide_password=True)

    def status(self) -> dict:
        return {
            "connected": self.connected,
            "database": self.url.database,
            "uri": self.masked_url,
        }


async def get_db(request: Request):
    store: Store | None = getattr(request.app.state, "store", None)
    if store is None or not store.connected:
        raise StoreUnavailable()
    async with store.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
