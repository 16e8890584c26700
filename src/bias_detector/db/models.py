"""
Database models for Bias Detector.

Tables: StoredAnalysis
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class StoredAnalysis(Base):
    """
    A saved bias analysis, one per (user, article URL).

    ``created_at`` is assigned by the service and refreshed whenever the
    analysis is saved again for the same URL.
    """

    __tablename__ = "analyses"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    bias_score: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    bias_meaning: Mapped[str | None] = mapped_column(Text, nullable=True)
    justification: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "url", name="uq_analyses_user_url"),
        Index("ix_analyses_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"StoredAnalysis(id={self.id!r}, url={self.url!r}, bias_score={self.bias_score!r})"
