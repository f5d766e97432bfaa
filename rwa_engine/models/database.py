"""
Async SQLAlchemy session factory for the audit sink.

The engine is created on first use, so a service running with
AUDIT_ENABLED=false never opens a database connection.
"""
from __future__ import annotations

from functools import lru_cache
from typing import AsyncIterator, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from rwa_engine.core.config import Settings, get_settings


@lru_cache
def get_db_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, pool_pre_ping=True)


@lru_cache
def get_session_factory(database_url: str) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_db_engine(database_url), expire_on_commit=False)


async def get_db(settings: Settings = Depends(get_settings)) -> AsyncIterator[Optional[AsyncSession]]:
    """FastAPI dependency: an audit session, or None when auditing is off."""
    if not settings.audit_enabled:
        yield None
        return
    async with get_session_factory(settings.database_url)() as session:
        yield session
