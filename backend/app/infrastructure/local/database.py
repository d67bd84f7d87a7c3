"""
SQLite database configuration and ORM models.

This module defines the SQLAlchemy ORM model backing the persistent tree store
and database initialization.
"""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.core.config import get_settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


# ===========================================
# ORM Models
# ===========================================


class TreeNodeORM(Base):
    """One leaf of the realtime tree, addressed by its full path."""

    __tablename__ = "tree_nodes"

    path = Column(String(1024), primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ===========================================
# Database Session Management
# ===========================================


def get_engine(database_url: str | None = None):
    """Get async engine instance."""
    settings = get_settings()
    return create_async_engine(database_url or settings.DATABASE_URL, echo=False)


def get_session_factory(engine=None):
    """Get async session factory."""
    engine = engine or get_engine()
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine=None):
    """Initialize database tables."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
