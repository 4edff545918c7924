"""User ORM — anonymous help-seeker identity.

Invariants:
    - id (UUID) is the only identity ever shown to counselors
    - external_chat_handle is unique and never leaves the broker except to the transport
    - conversation_state holds a ConversationState value

Design Decisions:
    - conversation_state stored here (not in a separate table): the router reads it
      on every inbound message
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from confidant.core.domain_types import ConversationState
from confidant.db.base import Base


class User(Base):
    """Anonymous user created on first contact."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    external_chat_handle: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True,
    )
    conversation_state: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ConversationState.IDLE.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
