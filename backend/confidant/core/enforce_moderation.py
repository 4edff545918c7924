"""Moderation Rules — strike escalation thresholds and appeal remedies, pure.

Invariants:
    - revoke_threshold >= suspend_threshold >= 1, checked at construction
    - Escalation is monotonic: returned updates never clear suspension or restore approval
    - Crossing revoke implies isApproved=False; crossing suspend implies isSuspended=True
    - REVOKE_SUSPENSION never grants approval; APPROVE is the only strike reset

Design Decisions:
    - StrikePolicy returns a column->value dict, the shell applies it in one UPDATE
      (ADR: pure core decides, shell writes)
    - Frozen dataclass: thresholds are fixed for the lifetime of an engine
"""

from dataclasses import dataclass

from confidant.core.domain_types import AppealOutcome, Availability
from confidant.core.errors import ErrorContext, UnavailableError, ValidationError
from confidant.core.repository_protocols import CounselorLike


DEFAULT_SUSPEND_THRESHOLD: int = 3
DEFAULT_REVOKE_THRESHOLD: int = 5


@dataclass(frozen=True)
class StrikePolicy:
    """Strike counts at which a counselor is suspended or loses approval."""
    suspend_threshold: int = DEFAULT_SUSPEND_THRESHOLD
    revoke_threshold: int = DEFAULT_REVOKE_THRESHOLD

    def __post_init__(self):
        if self.suspend_threshold < 1:
            raise ValueError("Suspend threshold must be at least 1.")
        if self.revoke_threshold < self.suspend_threshold:
            raise ValueError(
                "Revoke threshold must be greater than or equal to suspend threshold.",
            )

    def escalation_for(self, strikes: int) -> dict:
        """Column updates implied by a counselor now holding `strikes` strikes."""
        if strikes >= self.revoke_threshold:
            return {
                "is_approved": False,
                "is_suspended": True,
                "availability": Availability.AWAY.value,
            }
        if strikes >= self.suspend_threshold:
            return {
                "is_suspended": True,
                "availability": Availability.AWAY.value,
            }
        return {}


def normalize_reason(reason: str) -> str:
    trimmed = (reason or "").strip()
    if not trimmed:
        raise ValidationError("Report reason is required.", field="reason")
    return trimmed


def normalize_appeal_message(message: str) -> str:
    trimmed = (message or "").strip()
    if not trimmed:
        raise ValidationError("Appeal message is required.", field="message")
    return trimmed


def require_appealable(counselor: CounselorLike) -> None:
    """Appeals are only open to suspended counselors."""
    if not counselor.is_suspended:
        raise UnavailableError(
            "Appeals are only available for suspended counselors.",
            ErrorContext(counselor_id=str(counselor.id)),
        )


def appeal_remedy(outcome: AppealOutcome) -> dict:
    """Column updates for an appeal outcome."""
    if outcome is AppealOutcome.APPROVE:
        return {"is_approved": True, "is_suspended": False, "strikes": 0}
    return {"is_suspended": False, "availability": Availability.AWAY.value}
