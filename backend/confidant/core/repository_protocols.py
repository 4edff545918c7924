"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Pure rules in core/ read entities through these Protocols, not ORM classes
    - Notification delivery is reached only through Notifier

Design Decisions:
    - Protocol over ABC: structural subtyping, ORM rows satisfy them as-is
    - Notifier.send is async because implementations do IO; callers never await
      it on the request path (fire-and-forget via background tasks)
"""

from datetime import datetime
from typing import Protocol, Sequence
from uuid import UUID


class TransferLike(Protocol):
    """One hand-off between counselors inside a session."""
    from_counselor_id: UUID
    to_counselor_id: UUID


class SessionLike(Protocol):
    """Structural contract for Session objects passed to pure rules.

    Avoids coupling core rules to the ORM model while giving mypy
    real type information (unlike Any).
    """
    id: UUID
    user_id: UUID
    counselor_id: UUID
    current_counselor_id: UUID
    previous_counselor_id: UUID | None
    is_active: bool
    start_time: datetime
    rating_score: int | None
    transfers: Sequence[TransferLike]


class CounselorLike(Protocol):
    """Eligibility-relevant counselor fields."""
    id: UUID
    is_approved: bool
    is_suspended: bool


class Notifier(Protocol):
    """Contract for the chat transport's outbound side — implemented by shell."""
    async def send(self, chat_id: str, text: str) -> None: ...
