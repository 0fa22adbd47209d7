"""SQLAlchemy models for the persistence layer.

This module defines the database schema for API keys, weekly usage
counters and request logs using SQLAlchemy ORM. Timestamps are stored as
naive UTC.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class ApiKey(Base):
    """An issued API key.

    Attributes:
        key: The full API key.
        name: Account display name.
        tier: Tier key (free, starter, growth).
        configs: Config names the key may use.
        created_at: When the key was issued.
        analytics_password_hash: Hash of the analytics export password.
    """

    __tablename__ = "api_keys"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String)
    tier: Mapped[str] = mapped_column(String, default="starter")
    configs: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime)
    analytics_password_hash: Mapped[Optional[str]] = mapped_column(
        String, nullable=True
    )


class WeeklyUsage(Base):
    """Request counter of a key for the current week."""

    __tablename__ = "weekly_usage"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    week_start: Mapped[date] = mapped_column(Date)
    count: Mapped[int] = mapped_column(Integer, default=0)


class RequestLog(Base):
    """One logged planning or chat request."""

    __tablename__ = "request_logs"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    api_key: Mapped[str] = mapped_column(String, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, index=True)
    config: Mapped[str] = mapped_column(String)
    goal: Mapped[str] = mapped_column(Text)
    success: Mapped[bool] = mapped_column(Boolean)
    response_time_ms: Mapped[int] = mapped_column(Integer, default=0)
