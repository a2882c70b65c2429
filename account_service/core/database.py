"""
Database configuration and connection management for the account service.
Implements async SQLAlchemy engines and session factories built from settings.
"""
from typing import AsyncGenerator
from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import (
    create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
)
from sqlalchemy.engine import make_url
from sqlalchemy.pool import NullPool, StaticPool
import structlog

from .config import Settings
from ..models.base import Base

logger = structlog.get_logger()


def is_memory_database(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and (
        url.database in (None, "", ":memory:") or url.query.get("mode") == "memory"
    )


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine described by DATABASE_URL.

    Only in-memory SQLite shares a single connection; every other database
    gives each session its own connection and transaction.
    """
    if is_memory_database(settings.DATABASE_URL):
        # The database lives only as long as its one connection
        return create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DATABASE_ECHO,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    if settings.DATABASE_URL.startswith("sqlite"):
        return create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DATABASE_ECHO,
            poolclass=NullPool,
            connect_args={"timeout": settings.DATABASE_BUSY_TIMEOUT_SECONDS},
        )

    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO,
        pool_size=settings.DATABASE_POOL_SIZE,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Database dependency that provides an async session per request.
    Repositories commit their own writes; anything left open is rolled back.
    """
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
        except HTTPException:
            await session.rollback()
            raise
        except Exception as e:
            await session.rollback()
            logger.error("Database session error", error=str(e))
            raise


async def close_db_connections(engine: AsyncEngine) -> None:
    """Close all database connections on shutdown."""
    await engine.dispose()
    logger.info("Database connections closed")
