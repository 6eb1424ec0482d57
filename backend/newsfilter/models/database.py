"""
SQLAlchemy database models for newsfilter.
Uses SQLAlchemy 2.0 async patterns.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
    func,
)
from sqlalchemy.ext.asyncio import AsyncAttrs, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# =============================================================================
# Base
# =============================================================================

class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""
    pass


# =============================================================================
# Sources
# =============================================================================

class DBSource(Base):
    """Configured external origin. Edited outside the fetch pipeline."""
    __tablename__ = "sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    config: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    config_key: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    last_fetched_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    articles: Mapped[list["DBArticle"]] = relationship(back_populates="source", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("kind IN ('feed', 'board', 'page')", name="ck_sources_kind"),
    )


# =============================================================================
# Articles
# =============================================================================

class DBEpisode(Base):
    """Downstream curation object that articles can be pinned to."""
    __tablename__ = "episodes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())


class DBArticle(Base):
    """Stored article with relevance verdict."""
    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sources.id", ondelete="CASCADE"), nullable=False
    )
    external_id: Mapped[str] = mapped_column(Text, nullable=False)

    # Core metadata
    title: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(Text)
    author: Mapped[Optional[str]] = mapped_column(Text)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    raw_content: Mapped[Optional[str]] = mapped_column(Text)

    # Relevance (written together by the classifier)
    relevance_score: Mapped[Optional[float]] = mapped_column(Float)
    relevance_reason: Mapped[Optional[str]] = mapped_column(Text)
    is_relevant: Mapped[Optional[bool]] = mapped_column(Boolean)
    filtered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Owned by downstream curation
    is_saved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    saved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    episode_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("episodes.id", ondelete="SET NULL")
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    source: Mapped["DBSource"] = relationship(back_populates="articles")

    __table_args__ = (
        Index("ix_articles_url", "url", unique=True),
        Index("ix_articles_source_id", "source_id"),
        Index("ix_articles_published_at", "published_at"),
        Index("ix_articles_filtered_at", "filtered_at"),
        Index("ix_articles_episode_id", "episode_id"),
    )


# =============================================================================
# Criteria & Settings
# =============================================================================

class DBCriterion(Base):
    """User-defined relevance rubric."""
    __tablename__ = "criteria"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())


class DBAppSetting(Base):
    """Key/value application setting."""
    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())


# =============================================================================
# Fetch Log
# =============================================================================

class DBFetchLog(Base):
    """One row per per-source fetch attempt. Never updated."""
    __tablename__ = "fetch_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sources.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(10), nullable=False)
    articles_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("status IN ('success', 'error')", name="ck_fetch_log_status"),
        Index("ix_fetch_log_source_id", "source_id"),
        Index("ix_fetch_log_started_at", "started_at"),
    )


# =============================================================================
# Database Connection
# =============================================================================

def _enable_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str):
        self.engine = create_async_engine(
            database_url,
            echo=False,  # Set to True for SQL logging
            future=True,
        )
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_pragmas)
        self.async_session = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
        )

    async def create_tables(self):
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        """Close pooled connections."""
        await self.engine.dispose()
