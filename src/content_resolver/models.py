"""SQLAlchemy ORM models for the persistent store.

The persistent store is the source of truth: it enforces the uniqueness
invariants so racing writers lose quietly instead of corrupting state.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from content_resolver.entities import EntityType
from content_resolver.utils.clock import utcnow


def new_id() -> str:
    """Primary keys are random hex UUIDs."""
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    """Declarative base for all tables."""


class ExternalSource(Base):
    """One upstream provider identity."""

    __tablename__ = "external_sources"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    api_endpoint: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    rate_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class NormalizedEntityRow(Base):
    """A reconciled entity of any kind in the hierarchy."""

    __tablename__ = "normalized_entities"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    entity_type: Mapped[EntityType] = mapped_column(Enum(EntityType, native_enum=False, length=20), nullable=False)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    source_id: Mapped[str] = mapped_column(String(32), ForeignKey("external_sources.id"), nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(String(32), ForeignKey("normalized_entities.id"), nullable=True)
    # parent_id or "" - NULLs never collide in a unique index, "" does
    scope: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_canonical: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    canonical_id: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("normalized_entities.id"), nullable=True
    )
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    domain: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    web_page: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    alpha_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    provider: Mapped[str] = mapped_column(String(50), nullable=False, default="unknown")
    attributes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("entity_type", "source_id", "external_id", name="uq_entity_source_external"),
        Index(
            "uq_entity_canonical_name",
            "entity_type",
            "scope",
            "normalized_name",
            unique=True,
            sqlite_where=text("is_canonical = 1"),
            postgresql_where=text("is_canonical"),
        ),
        Index("ix_entity_normalized_name", "entity_type", "normalized_name"),
        Index("ix_entity_country_canonical", "country", "is_canonical"),
    )


class SearchCacheRow(Base):
    """Tier-2 cache entry keyed by (normalized_query, entity_type)."""

    __tablename__ = "search_cache"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    normalized_query: Mapped[str] = mapped_column(String(500), nullable=False)
    entity_type: Mapped[EntityType] = mapped_column(Enum(EntityType, native_enum=False, length=20), nullable=False)
    result_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    result_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("normalized_query", "entity_type", name="uq_search_cache_key"),
        Index("ix_search_cache_expires", "expires_at"),
    )


class SearchLogRow(Base):
    """Append-only analytics row."""

    __tablename__ = "search_logs"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    raw_query: Mapped[str] = mapped_column(String(500), nullable=False)
    normalized_query: Mapped[str] = mapped_column(String(500), nullable=False)
    entity_type: Mapped[EntityType] = mapped_column(Enum(EntityType, native_enum=False, length=20), nullable=False)
    cache_hit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    result_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    latency_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_search_logs_user", "user_id", "created_at"),
        Index("ix_search_logs_created", "created_at"),
    )
