"""Session rules — pure checks over plain objects standing in for ORM rows."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from confidant.core.domain_types import SenderType
from confidant.core.enforce_session import (
    authorize_requester, compute_duration_minutes, is_authorized, normalize_content,
    parse_sender_type, participant_ids, require_active, require_consent,
    require_eligible, resolve_recipient, validate_rating, validate_transfer,
)
from confidant.core.errors import (
    AuthorizationError, ConflictError, ConflictReason, UnavailableError,
    ValidationError,
)


@dataclass
class FakeTransfer:
    from_counselor_id: UUID
    to_counselor_id: UUID


@dataclass
class FakeSession:
    user_id: UUID
    counselor_id: UUID
    current_counselor_id: UUID
    previous_counselor_id: UUID | None = None
    is_active: bool = True
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    rating_score: int | None = None
    transfers: list = field(default_factory=list)
    id: UUID = field(default_factory=uuid4)


@dataclass
class FakeCounselor:
    is_approved: bool = True
    is_suspended: bool = False
    id: UUID = field(default_factory=uuid4)


def _session(**kwargs) -> FakeSession:
    c = uuid4()
    return FakeSession(user_id=uuid4(), counselor_id=c, current_counselor_id=c, **kwargs)


# ─── Duration ────────────────────────────────────────────────────

def test_duration_rounds_half_up():
    start = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert compute_duration_minutes(start, start + timedelta(seconds=89)) == 1
    assert compute_duration_minutes(start, start + timedelta(seconds=90)) == 2
    assert compute_duration_minutes(start, start + timedelta(minutes=10, seconds=29)) == 10


def test_duration_accepts_naive_start_as_utc():
    start = datetime(2026, 1, 1, 12, 0)
    end = datetime(2026, 1, 1, 12, 5, tzinfo=timezone.utc)
    assert compute_duration_minutes(start, end) == 5


def test_duration_zero_for_instant_session():
    now = datetime.now(timezone.utc)
    assert compute_duration_minutes(now, now) == 0


# ─── Consent & eligibility ───────────────────────────────────────

def test_require_consent_rejects_false():
    with pytest.raises(ValidationError):
        require_consent(False)
    require_consent(True)


@pytest.mark.parametrize("approved,suspended", [(False, False), (True, True), (False, True)])
def test_require_eligible_rejects_unapproved_or_suspended(approved, suspended):
    with pytest.raises(UnavailableError):
        require_eligible(FakeCounselor(is_approved=approved, is_suspended=suspended))


# ─── Participants ────────────────────────────────────────────────

def test_participants_include_whole_transfer_chain():
    c1, c2, c3 = uuid4(), uuid4(), uuid4()
    session = FakeSession(
        user_id=uuid4(), counselor_id=c1, current_counselor_id=c3,
        previous_counselor_id=c2,
        transfers=[FakeTransfer(c1, c2), FakeTransfer(c2, c3)],
    )
    assert participant_ids(session) == {c1, c2, c3}


def test_outsider_counselor_not_authorized():
    session = _session()
    assert not is_authorized(session, uuid4(), SenderType.COUNSELOR)
    with pytest.raises(AuthorizationError):
        authorize_requester(session, uuid4(), SenderType.COUNSELOR)


def test_counselor_id_cannot_pose_as_user():
    session = _session()
    assert not is_authorized(session, session.counselor_id, SenderType.USER)
    assert is_authorized(session, session.user_id, SenderType.USER)


def test_require_active_raises_session_inactive():
    with pytest.raises(ConflictError) as exc:
        require_active(_session(is_active=False))
    assert exc.value.reason is ConflictReason.SESSION_INACTIVE


# ─── Routing ─────────────────────────────────────────────────────

def test_user_message_goes_to_current_counselor():
    c1, c2 = uuid4(), uuid4()
    session = FakeSession(user_id=uuid4(), counselor_id=c1, current_counselor_id=c2)
    assert resolve_recipient(session, SenderType.USER) == (c2, SenderType.COUNSELOR)


def test_counselor_message_goes_to_user():
    session = _session()
    assert resolve_recipient(session, SenderType.COUNSELOR) == (
        session.user_id, SenderType.USER,
    )


def test_normalize_content_trims_and_rejects_blank():
    assert normalize_content("  hello \n") == "hello"
    with pytest.raises(ValidationError):
        normalize_content("   ")


def test_parse_sender_type_rejects_unknown():
    assert parse_sender_type("user") is SenderType.USER
    with pytest.raises(ValidationError):
        parse_sender_type("admin")


# ─── Rating ──────────────────────────────────────────────────────

@pytest.mark.parametrize("score", [1, 3, 5])
def test_validate_rating_accepts_range(score):
    assert validate_rating(score) == score


@pytest.mark.parametrize("score", [0, 6, -1, 4.5, "5", True])
def test_validate_rating_rejects_outside_or_non_int(score):
    with pytest.raises(ValidationError):
        validate_rating(score)


# ─── Transfer ────────────────────────────────────────────────────

def test_validate_transfer_requires_current_counselor():
    session = _session()
    with pytest.raises(AuthorizationError):
        validate_transfer(session, uuid4(), uuid4(), "shift ended")


def test_validate_transfer_rejects_self_transfer():
    session = _session()
    c = session.current_counselor_id
    with pytest.raises(ValidationError):
        validate_transfer(session, c, c, "shift ended")


def test_validate_transfer_rejects_blank_reason():
    session = _session()
    with pytest.raises(ValidationError):
        validate_transfer(session, session.current_counselor_id, uuid4(), "  ")


def test_validate_transfer_rejects_inactive_session():
    session = _session(is_active=False)
    with pytest.raises(ConflictError):
        validate_transfer(session, session.current_counselor_id, uuid4(), "shift")


def test_validate_transfer_returns_trimmed_reason():
    session = _session()
    assert validate_transfer(
        session, session.current_counselor_id, uuid4(), "  shift ended ",
    ) == "shift ended"
