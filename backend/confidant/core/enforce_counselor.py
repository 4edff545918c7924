"""Counselor Rules — availability literals, access and matching eligibility.

Invariants:
    - Only available/busy/away are settable availability values
    - has_access == is_approved and not is_suspended
    - Matching eligibility additionally requires availability == available
"""

from confidant.core.domain_types import Availability
from confidant.core.errors import ValidationError
from confidant.core.repository_protocols import CounselorLike


def parse_availability(status: str | Availability) -> Availability:
    """Turn a status literal into Availability or raise ValidationError."""
    if isinstance(status, Availability):
        return status
    try:
        return Availability(status)
    except ValueError:
        valid = ", ".join(a.value for a in Availability)
        raise ValidationError(
            f"Invalid status: {status}. Must be one of: {valid}", field="status",
        ) from None


def has_access(counselor: CounselorLike) -> bool:
    return counselor.is_approved and not counselor.is_suspended


def is_pending_approval(counselor: CounselorLike) -> bool:
    """Registered but never approved (removed counselors are also suspended)."""
    return not counselor.is_approved and not counselor.is_suspended


def is_matchable(counselor: CounselorLike, availability: Availability) -> bool:
    return availability is Availability.AVAILABLE and has_access(counselor)
