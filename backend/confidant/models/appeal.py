"""Appeal ORM — a suspended counselor's request to have access restored.

Invariants:
    - Resolved exactly once; outcome holds an AppealOutcome value when processed
    - strikes_at_filing is a snapshot, never updated
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from confidant.db.base import Base


class Appeal(Base):
    """Counselor appeal."""
    __tablename__ = "appeals"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    counselor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("counselors.id"), nullable=False, index=True,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    strikes_at_filing: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    processed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    processed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    outcome: Mapped[str | None] = mapped_column(String(32), nullable=True)
