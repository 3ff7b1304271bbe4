from sqlalchemy.orm import declarative_base
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from sqlalchemy import event
from core.config import settings
import logging
from typing import Optional

Base = declarative_base()
logger = logging.getLogger("refearn")

def _to_async_database_url(url: str) -> str:
    if not url:
        return url
    # Prefer aiomysql for MySQL, aiosqlite for SQLite
    if url.startswith("mysql+pymysql://"):
        return url.replace("mysql+pymysql://", "mysql+aiomysql://", 1)
    if url.startswith("mysql://"):
        return url.replace("mysql://", "mysql+aiomysql://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url

def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")

def create_engine(database_url: Optional[str] = None, echo: bool = False) -> AsyncEngine:
    """Build an async engine for the given URL (defaults to settings.DATABASE_URL).

    Pool sizing only applies to server databases; SQLite keeps SQLAlchemy's defaults.
    """
    url = _to_async_database_url(database_url or settings.DATABASE_URL)
    if _is_sqlite(url):
        engine = create_async_engine(url, future=True, echo=echo)
    else:
        # pool_recycle < DB wait_timeout (often 600s); short pool_timeout to fail fast
        engine = create_async_engine(
            url,
            future=True,
            echo=echo,
            pool_pre_ping=settings.DB_PRE_PING,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            connect_args={"connect_timeout": settings.DB_CONNECT_TIMEOUT},
        )
    _attach_pool_logging(engine)
    return engine

def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

def _attach_pool_logging(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        logger.debug("DB connect: id=%s", id(connection_record))

    @event.listens_for(engine.sync_engine, "close")
    def _on_close(dbapi_connection, connection_record):
        logger.debug("DB close: id=%s", id(connection_record))

    @event.listens_for(engine.sync_engine, "checkout")
    def _on_checkout(dbapi_connection, connection_record, connection_proxy):
        logger.debug("DB checkout: id=%s", id(connection_record))

    @event.listens_for(engine.sync_engine, "checkin")
    def _on_checkin(dbapi_connection, connection_record):
        logger.debug("DB checkin: id=%s", id(connection_record))
