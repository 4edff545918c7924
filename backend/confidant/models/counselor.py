"""Counselor ORM — vetted responder with availability, approval and strike state.

Invariants:
    - is_approved=False or is_suspended=True → never eligible for matching
    - strikes, sessions_handled, rating_count, rating_total are >= 0 and only
      changed through in-database increments (col = col + n)
    - availability holds an Availability value; there is no "pending" literal,
      pending approval is not is_approved and not is_suspended

Design Decisions:
    - rating_average derived, not stored: total/count are the atomic pair
    - Profile fields optional: self-registration collects them best-effort
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, Boolean, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from confidant.core.domain_types import Availability
from confidant.db.base import Base


class Counselor(Base):
    """Counselor entity."""
    __tablename__ = "counselors"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    external_chat_handle: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True,
    )
    availability: Mapped[str] = mapped_column(
        String(16), nullable=False, default=Availability.AWAY.value, index=True,
    )
    is_approved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    is_suspended: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    strikes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sessions_handled: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rating_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    languages_spoken: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    domain_expertise: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    years_experience: Mapped[int | None] = mapped_column(Integer, nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    last_active_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def rating_average(self) -> float:
        if not self.rating_count:
            return 0.0
        return self.rating_total / self.rating_count
