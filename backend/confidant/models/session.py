"""Session ORM — exclusive pairing of one user and one counselor.

Invariants:
    - At most one is_active row per user_id (uq_sessions_active_user)
    - At most one is_active row per current_counselor_id (uq_sessions_active_counselor)
    - current_counselor_id == counselor_id until the first transfer
    - is_active only ever flips True → False
    - rating_score written at most once (conditional update on IS NULL)

Design Decisions:
    - Partial unique indexes are the commit-time source of truth for exclusivity:
      two racing inserts cannot both commit, the loser gets IntegrityError
    - Transfers in their own append-only table, loaded eagerly (selectin) because
      every authorization check needs the chain
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Index, Integer, String, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from confidant.db.base import Base


class CounselingSession(Base):
    """Session aggregate root — owns transfers and messages."""
    __tablename__ = "sessions"
    __table_args__ = (
        Index(
            "uq_sessions_active_user", "user_id", unique=True,
            postgresql_where=text("is_active"), sqlite_where=text("is_active"),
        ),
        Index(
            "uq_sessions_active_counselor", "current_counselor_id", unique=True,
            postgresql_where=text("is_active"), sqlite_where=text("is_active"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True,
    )
    counselor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("counselors.id"), nullable=False, index=True,
    )
    current_counselor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("counselors.id"), nullable=False,
    )
    previous_counselor_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("counselors.id"), nullable=True,
    )
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    end_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    consent_given: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    consent_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    transfer_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    rating_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    transfers: Mapped[list["SessionTransfer"]] = relationship(
        "SessionTransfer", back_populates="session",
        order_by="SessionTransfer.timestamp",
        cascade="all, delete-orphan", lazy="selectin",
    )
