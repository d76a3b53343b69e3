"""
Engine, session factory and declarative base.

Request handlers get a session through ``get_db``; scheduled jobs open one
with ``get_db_session``. Both commit on success and roll back on error, so
services only flush or commit their own units of work.
"""
import json
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from sellerhub.config import settings

logger = logging.getLogger(__name__)

_PSYCOPG_SCHEMES = ("postgresql+asyncpg://", "postgresql://", "postgres://")


def _encode_json_value(value):
    # Event metadata carries amounts, ids and timestamps
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def custom_json_dumps(obj) -> str:
    """Serializer for JSON columns."""
    return json.dumps(obj, default=_encode_json_value)


def _psycopg_url(url: str) -> str:
    for scheme in _PSYCOPG_SCHEMES:
        if url.startswith(scheme):
            return "postgresql+psycopg://" + url[len(scheme):]
    return url


def sync_database_url(url: str) -> str:
    """Driver URL for synchronous tools such as Alembic."""
    if url.startswith("sqlite+aiosqlite://"):
        return "sqlite://" + url[len("sqlite+aiosqlite://"):]
    return _psycopg_url(url)


def build_engine(url: str, echo: bool = False):
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            echo=echo,
            json_serializer=custom_json_dumps,
            connect_args={"check_same_thread": False},
        )

    from psycopg.types.json import set_json_dumps

    set_json_dumps(custom_json_dumps)

    return create_async_engine(
        _psycopg_url(url),
        echo=echo,
        json_serializer=custom_json_dumps,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        # pgbouncer in transaction mode cannot hold prepared statements
        connect_args={"prepare_threshold": None, "connect_timeout": 30},
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_session():
    """Session scope for scheduled jobs."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables. Alembic owns every later schema change."""
    from sellerhub import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Payout schema ready ({len(Base.metadata.tables)} tables)")
