"""Session Rules — pure validation for session lifecycle, routing and history access.

Invariants:
    - Pure: no IO, no DB, no async — callers pass entities in, get values or errors out
    - A counselor participant is the original, current or previous counselor, or
      either side of any transfer; approval status is never consulted
    - A user message always goes to the CURRENT counselor
    - Duration rounds half up to whole minutes

Design Decisions:
    - Raises typed ConfidantErrors instead of returning error dicts: every caller is
      a service that propagates them unchanged to the API layer
    - Naive datetimes are treated as UTC: SQLite drops tzinfo on round-trip
"""

import math
from datetime import datetime, timezone
from uuid import UUID

from confidant.core.domain_types import SenderType
from confidant.core.errors import (
    AuthorizationError, ConflictError, ConflictReason, ErrorContext,
    UnavailableError, ValidationError,
)
from confidant.core.repository_protocols import CounselorLike, SessionLike


MIN_RATING: int = 1
MAX_RATING: int = 5

CONSENT_DISCLOSURE_TEXT: str = (
    "Before we begin, please note: This counseling session is anonymous. "
    "Messages may be logged for safety and quality purposes. "
    "Do not share personally identifying information. "
    "By continuing, you consent to participate under these terms."
)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_duration_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between start and end, rounded half up."""
    elapsed_ms = (as_utc(end) - as_utc(start)).total_seconds() * 1000
    return max(0, math.floor(elapsed_ms / 60_000 + 0.5))


def require_consent(consent_given: bool) -> None:
    if not consent_given:
        raise ValidationError(
            "Consent is required before starting a session.", field="consent_given",
        )


def require_eligible(counselor: CounselorLike) -> None:
    """Unapproved or suspended counselors never take sessions."""
    if not counselor.is_approved or counselor.is_suspended:
        raise UnavailableError(
            "Counselor not available for session.",
            ErrorContext(counselor_id=str(counselor.id)),
        )


def participant_ids(session: SessionLike) -> set[UUID]:
    """Every counselor who has held, holds, or appears in the transfer chain."""
    ids = {session.counselor_id, session.current_counselor_id}
    if session.previous_counselor_id is not None:
        ids.add(session.previous_counselor_id)
    for transfer in session.transfers:
        ids.add(transfer.from_counselor_id)
        ids.add(transfer.to_counselor_id)
    return ids


def is_authorized(
    session: SessionLike, requester_id: UUID, requester_type: SenderType,
) -> bool:
    if requester_type is SenderType.USER:
        return requester_id == session.user_id
    return requester_id in participant_ids(session)


def authorize_requester(
    session: SessionLike, requester_id: UUID, requester_type: SenderType,
) -> None:
    if not is_authorized(session, requester_id, requester_type):
        raise AuthorizationError(
            f"{requester_type.value.capitalize()} is not authorized for this session.",
            ErrorContext(session_id=str(session.id)),
        )


def require_active(session: SessionLike) -> None:
    if not session.is_active:
        raise ConflictError(
            "Active session not found.", ConflictReason.SESSION_INACTIVE,
            ErrorContext(session_id=str(session.id)),
        )


def resolve_recipient(
    session: SessionLike, sender_type: SenderType,
) -> tuple[UUID, SenderType]:
    """Opposite side of the session from the sender."""
    if sender_type is SenderType.USER:
        return session.current_counselor_id, sender_type.counterpart
    return session.user_id, sender_type.counterpart


def normalize_content(content: str) -> str:
    trimmed = (content or "").strip()
    if not trimmed:
        raise ValidationError("Message content cannot be empty.", field="content")
    return trimmed


def validate_rating(score: int) -> int:
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValidationError("Rating must be a whole number.", field="score")
    if not MIN_RATING <= score <= MAX_RATING:
        raise ValidationError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}.", field="score",
        )
    return score


def validate_transfer(
    session: SessionLike,
    from_counselor_id: UUID,
    to_counselor_id: UUID,
    reason: str,
) -> str:
    """Check a hand-off request. Returns the trimmed reason."""
    if from_counselor_id != session.current_counselor_id:
        raise AuthorizationError(
            "Only the current counselor can transfer this session.",
            ErrorContext(session_id=str(session.id)),
        )
    require_active(session)
    if to_counselor_id == from_counselor_id:
        raise ValidationError(
            "Cannot transfer a session to the same counselor.",
            field="to_counselor_id",
        )
    trimmed = (reason or "").strip()
    if not trimmed:
        raise ValidationError("Transfer reason is required.", field="reason")
    return trimmed


def parse_sender_type(value: str | SenderType) -> SenderType:
    if isinstance(value, SenderType):
        return value
    try:
        return SenderType(value)
    except ValueError:
        raise ValidationError(
            f"Invalid sender type: {value}. Must be one of: user, counselor",
            field="sender_type",
        ) from None
