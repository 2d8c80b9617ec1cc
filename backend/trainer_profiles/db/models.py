"""ORM models for trainer records and the profile audit trail."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin

JSONType = JSON

TRAINER_ROLE = "trainer"


class TrainerProfileModel(TimestampMixin, Base):
    """Canonical user profile row; trainers are the rows whose ``role`` is ``trainer``."""

    __tablename__ = "user_profiles"
    __table_args__ = (
        Index("ix_user_profiles_slug", "slug", unique=True),
        Index("ix_user_profiles_user_id", "user_id"),
        Index("ix_user_profiles_role", "role"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    slug: Mapped[str | None] = mapped_column(String(160), nullable=True)
    role: Mapped[str] = mapped_column(String(32), default=TRAINER_ROLE, nullable=False)
    status: Mapped[str | None] = mapped_column(String(32), default="active", nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    specialties: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    profile_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ProfileAuditEventModel(Base):
    __tablename__ = "profile_audit_events"
    __table_args__ = (Index("ix_profile_audit_events_type", "event_type"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    trainer_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True
    )
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    actor: Mapped[str | None] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    trainer: Mapped[TrainerProfileModel | None] = relationship()


__all__ = [
    "ProfileAuditEventModel",
    "TRAINER_ROLE",
    "TrainerProfileModel",
]
