"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - All valid states encoded as Enums — no raw string matching
    - Availability has no "pending approval" member: approval is the is_approved flag

Design Decisions:
    - str Enums: serialize to JSON without custom encoders and store as VARCHAR
"""

from enum import Enum


# ─── Enums ───────────────────────────────────────────────────────

class Availability(str, Enum):
    """Counselor availability — maps to counselors.availability."""
    AVAILABLE = "available"
    BUSY = "busy"
    AWAY = "away"


class SenderType(str, Enum):
    """Which side of a session sent a message (or is requesting history)."""
    USER = "user"
    COUNSELOR = "counselor"

    @property
    def counterpart(self) -> "SenderType":
        if self is SenderType.USER:
            return SenderType.COUNSELOR
        return SenderType.USER


class ReportAction(str, Enum):
    """Admin decision on a report."""
    STRIKE = "strike"
    DISMISS = "dismiss"


class AppealOutcome(str, Enum):
    """Admin decision on an appeal. REVOKE_SUSPENSION is strictly narrower than APPROVE."""
    APPROVE = "approve"
    REVOKE_SUSPENSION = "revoke_suspension"


class ConversationState(str, Enum):
    """Where a user is in the chat flow — owned by the conversation layer."""
    IDLE = "idle"
    SUBMITTING_PRAYER = "submitting_prayer"
    WAITING_COUNSELOR = "waiting_counselor"
    IN_SESSION = "in_session"
    VIEWING_HISTORY = "viewing_history"
    REPORTING = "reporting"
    POST_SESSION = "post_session"
    APPEALING = "appealing"


class AdminAction(str, Enum):
    """Audit labels written by the broker itself."""
    APPROVE_COUNSELOR = "approve_counselor"
    REMOVE_COUNSELOR = "remove_counselor"
    SET_AVAILABILITY = "set_availability"
    PROCESS_REPORT = "process_report"
    APPEAL_APPROVE = "appeal_approve"
    APPEAL_REVOKE_SUSPENSION = "appeal_revoke_suspension"
    TERMINATE_USER_SESSIONS = "terminate_user_sessions"
