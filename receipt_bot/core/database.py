"""Database configuration and session management.

This module constructs an asynchronous SQLAlchemy engine and session
factory for the bot.  The connection string comes from
``settings.DATABASE_URL``; plain ``sqlite://`` URLs are upgraded to the
``aiosqlite`` driver so the whole bot can stay on a single event loop.

Nothing here is used as a hidden global by the flows: the entry points
build an engine once and hand the session factory to
``ReceiptStore`` explicitly.  The module-level ``engine`` and
``AsyncSessionLocal`` exist for the inspection API.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base

from receipt_bot.core.config import get_database_url

logger = logging.getLogger(__name__)

# Declarative base
Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # pragma: no cover - driver hook
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: Optional[str] = None, **kwargs: Any) -> AsyncEngine:
    """Create an async engine for ``url`` (defaults to the configured URL)."""
    db_url = url or get_database_url()
    engine_kwargs: dict[str, Any] = dict(echo=False)
    engine_kwargs.update(kwargs)
    new_engine = create_async_engine(db_url, **engine_kwargs)
    if make_url(db_url).get_backend_name() == "sqlite":
        event.listen(new_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return new_engine


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine()

# Create session factory
AsyncSessionLocal = build_sessionmaker(engine)


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Create all tables defined on the declarative ``Base``.

    Typically called once during startup.
    """
    target = bind or engine
    async with target.begin() as conn:
        # Import all models to ensure metadata is populated
        from receipt_bot.models import tables  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready (%s)", target.url.render_as_string(hide_password=True))
