"""
SQLAlchemy declarative base and async engine/session factory.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from dotareg.config import settings


class Base(DeclarativeBase):
    pass


def _unicode_lower(value: Optional[str]) -> Optional[str]:
    return value.lower() if isinstance(value, str) else value


@event.listens_for(Engine, "connect")
def _sqlite_unicode_lower(dbapi_connection, connection_record) -> None:
    # SQLite's built-in lower() folds ASCII only; the lower(name) unique
    # indexes need the same folding as PostgreSQL.
    if "sqlite" in type(dbapi_connection).__module__:
        dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


engine = create_async_engine(
    settings.async_database_url,
    echo=False,
    pool_pre_ping=True,
)

AsyncSessionFactory: async_sessionmaker[AsyncSession] = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
