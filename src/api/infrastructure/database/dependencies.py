"""Database dependency injection for FastAPI.

Provides async session factories for the central registry database and the
shared AUTOCOMMIT admin engine used for database-level DDL.
"""

from __future__ import annotations

import threading
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from infrastructure.database.engines import (
    create_admin_engine,
    create_read_engine,
    create_write_engine,
)
from infrastructure.observability import DefaultConnectionProbe
from infrastructure.settings import get_database_settings

# Module-level probe for observability
_probe = DefaultConnectionProbe()

# Module-level engine instances (created on first use)
_write_engine: AsyncEngine | None = None
_read_engine: AsyncEngine | None = None
_admin_engine: AsyncEngine | None = None

# Module-level sessionmaker instances (created with engines)
_write_sessionmaker: async_sessionmaker[AsyncSession] | None = None
_read_sessionmaker: async_sessionmaker[AsyncSession] | None = None

# Thread lock for safe engine initialization
_engine_lock = threading.Lock()


def get_write_engine() -> AsyncEngine:
    """Get the central write engine (singleton).

    Uses double-check locking for thread-safe initialization and caches
    the sessionmaker alongside the engine.

    Returns:
        Configured async engine for write operations
    """
    global _write_engine, _write_sessionmaker
    if _write_engine is None:
        with _engine_lock:
            if _write_engine is None:
                settings = get_database_settings()
                _write_engine = create_write_engine(settings)
                _write_sessionmaker = async_sessionmaker(
                    _write_engine,
                    expire_on_commit=False,
                    class_=AsyncSession,
                )
                _probe.engine_created(database=settings.database, kind="write")
    return _write_engine


def get_read_engine() -> AsyncEngine:
    """Get the central read engine (singleton).

    Returns:
        Configured async engine for read operations
    """
    global _read_engine, _read_sessionmaker
    if _read_engine is None:
        with _engine_lock:
            if _read_engine is None:
                settings = get_database_settings()
                _read_engine = create_read_engine(settings)
                _read_sessionmaker = async_sessionmaker(
                    _read_engine,
                    expire_on_commit=False,
                    class_=AsyncSession,
                )
                _probe.engine_created(database=settings.database, kind="read")
    return _read_engine


def get_admin_engine() -> AsyncEngine:
    """Get the AUTOCOMMIT admin engine (singleton).

    Returns:
        Engine suitable for CREATE/DROP DATABASE and advisory locks
    """
    global _admin_engine
    if _admin_engine is None:
        with _engine_lock:
            if _admin_engine is None:
                settings = get_database_settings()
                _admin_engine = create_admin_engine(settings)
                _probe.engine_created(database=settings.database, kind="admin")
    return _admin_engine


def get_write_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Get the central write sessionmaker, creating the engine if needed."""
    get_write_engine()
    assert _write_sessionmaker is not None
    return _write_sessionmaker


async def get_write_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a write session for mutations (FastAPI dependency).

    The session is configured to NOT auto-commit. Callers must explicitly
    manage transactions using `async with session.begin()`.

    Yields:
        AsyncSession for database operations
    """
    async with get_write_sessionmaker()() as session:
        yield session


async def get_read_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a read-only session for queries (FastAPI dependency).

    Application code should use this session only for read operations.

    Yields:
        AsyncSession for read-only database operations
    """
    get_read_engine()
    assert _read_sessionmaker is not None

    async with _read_sessionmaker() as session:
        yield session


async def close_database_connections() -> None:
    """Close all central database engine connections.

    Should be called on application shutdown. Also resets sessionmakers
    to allow reinitialization.
    """
    global _write_engine, _read_engine, _admin_engine
    global _write_sessionmaker, _read_sessionmaker

    if _write_engine is not None:
        await _write_engine.dispose()
        _probe.engine_disposed(kind="write")
        _write_engine = None
        _write_sessionmaker = None

    if _read_engine is not None:
        await _read_engine.dispose()
        _probe.engine_disposed(kind="read")
        _read_engine = None
        _read_sessionmaker = None

    if _admin_engine is not None:
        await _admin_engine.dispose()
        _probe.engine_disposed(kind="admin")
        _admin_engine = None
