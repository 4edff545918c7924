"""SessionBroker — exclusivity, lifecycle bookkeeping, transfer and rating.

Invariants:
    - One active session per user and per current counselor
    - end_session idempotent; sessions_handled incremented exactly once
    - rate_session accepted at most once, only after the session ended
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from confidant.core.errors import (
    AuthorizationError, ConflictError, ConflictReason, NotFoundError,
    UnavailableError, ValidationError,
)
from confidant.models.counselor import Counselor
from confidant.models.session import CounselingSession
from confidant.models.session_transfer import SessionTransfer
from confidant.services.session_broker import SessionBroker, is_exclusivity_violation


@pytest.fixture
def broker(test_db):
    return SessionBroker(test_db)


async def _counselor(test_db, counselor_id) -> Counselor:
    return await test_db.get(Counselor, counselor_id, populate_existing=True)


# ─── create_session ─────────────────────────────────────────────

async def test_create_session_pairs_and_marks_counselor_busy(
    broker, test_db, make_user, make_counselor,
):
    user = await make_user()
    counselor = await make_counselor()

    session = await broker.create_session(user.id, counselor.id, True)

    assert session.is_active
    assert session.consent_given
    assert session.consent_timestamp is not None
    assert session.current_counselor_id == counselor.id
    assert session.transfer_count == 0
    assert (await _counselor(test_db, counselor.id)).availability == "busy"
    await test_db.refresh(user)
    assert user.conversation_state == "in_session"


async def test_create_session_requires_consent(broker, make_user, make_counselor):
    user = await make_user()
    counselor = await make_counselor()
    with pytest.raises(ValidationError):
        await broker.create_session(user.id, counselor.id, False)


async def test_create_session_unknown_user_or_counselor(broker, make_user, make_counselor):
    user = await make_user()
    counselor = await make_counselor()
    with pytest.raises(NotFoundError):
        await broker.create_session(uuid4(), counselor.id, True)
    with pytest.raises(NotFoundError):
        await broker.create_session(user.id, uuid4(), True)


@pytest.mark.parametrize("approved,suspended", [(False, False), (True, True)])
async def test_create_session_ineligible_counselor(
    broker, make_user, make_counselor, approved, suspended,
):
    user = await make_user()
    counselor = await make_counselor(is_approved=approved, is_suspended=suspended)
    with pytest.raises(UnavailableError):
        await broker.create_session(user.id, counselor.id, True)


async def test_second_session_for_user_rejected(broker, make_user, make_counselor):
    user = await make_user()
    c1 = await make_counselor()
    c2 = await make_counselor()
    await broker.create_session(user.id, c1.id, True)

    with pytest.raises(ConflictError) as exc:
        await broker.create_session(user.id, c2.id, True)
    assert exc.value.reason is ConflictReason.USER_HAS_ACTIVE_SESSION


async def test_second_session_for_counselor_rejected(broker, make_user, make_counselor):
    u1 = await make_user()
    u2 = await make_user()
    counselor = await make_counselor()
    await broker.create_session(u1.id, counselor.id, True)

    with pytest.raises(ConflictError) as exc:
        await broker.create_session(u2.id, counselor.id, True)
    assert exc.value.reason is ConflictReason.COUNSELOR_HAS_ACTIVE_SESSION


async def test_stale_precheck_still_blocked_at_commit(
    broker, test_db, make_user, make_counselor,
):
    """The unique index rejects the insert even when the pre-check misses."""
    u1 = await make_user()
    u2 = await make_user()
    counselor = await make_counselor()
    await broker.create_session(u1.id, counselor.id, True)

    async def stale_lookup(counselor_id):
        return None

    broker.get_active_session_for_counselor = stale_lookup
    with pytest.raises(ConflictError) as exc:
        await broker.create_session(u2.id, counselor.id, True)
    assert exc.value.reason is ConflictReason.COUNSELOR_HAS_ACTIVE_SESSION

    result = await test_db.execute(
        select(CounselingSession).where(CounselingSession.is_active.is_(True)),
    )
    assert len(result.scalars().all()) == 1


async def test_unrelated_integrity_error_is_not_a_conflict(
    broker, monkeypatch, make_user, make_counselor,
):
    user = await make_user()
    counselor = await make_counselor()

    async def failing_commit():
        raise IntegrityError(
            "INSERT INTO sessions", {},
            Exception("NOT NULL constraint failed: sessions.start_time"),
        )

    monkeypatch.setattr(broker.db, "commit", failing_commit)
    with pytest.raises(IntegrityError):
        await broker.create_session(user.id, counselor.id, True)


@pytest.mark.parametrize("detail, expected", [
    ("UNIQUE constraint failed: sessions.user_id", True),
    ("UNIQUE constraint failed: sessions.current_counselor_id", True),
    ('duplicate key value violates unique constraint "uq_sessions_active_user"', True),
    ('duplicate key value violates unique constraint "uq_sessions_active_counselor"', True),
    ("FOREIGN KEY constraint failed", False),
    ('duplicate key value violates unique constraint "users_pkey"', False),
])
def test_exclusivity_violation_detection(detail, expected):
    error = IntegrityError("INSERT INTO sessions", {}, Exception(detail))
    assert is_exclusivity_violation(error) is expected


# ─── end_session ────────────────────────────────────────────────

async def test_end_session_frees_counselor_and_counts(
    broker, test_db, make_user, make_counselor,
):
    user = await make_user()
    counselor = await make_counselor()
    session = await broker.create_session(user.id, counselor.id, True)

    ended = await broker.end_session(session.id)

    assert not ended.is_active
    assert ended.end_time is not None
    assert ended.duration_minutes == 0
    refreshed = await _counselor(test_db, counselor.id)
    assert refreshed.availability == "available"
    assert refreshed.sessions_handled == 1
    await test_db.refresh(user)
    assert user.conversation_state == "post_session"


async def test_end_session_is_idempotent(broker, test_db, make_user, make_counselor):
    user = await make_user()
    counselor = await make_counselor()
    session = await broker.create_session(user.id, counselor.id, True)

    first = await broker.end_session(session.id)
    second = await broker.end_session(session.id)

    assert second.end_time == first.end_time
    assert (await _counselor(test_db, counselor.id)).sessions_handled == 1


async def test_end_session_duration_rounds_half_up(
    broker, test_db, make_user, make_counselor,
):
    user = await make_user()
    counselor = await make_counselor()
    session = await broker.create_session(user.id, counselor.id, True)
    await test_db.execute(
        update(CounselingSession)
        .where(CounselingSession.id == session.id)
        .values(start_time=datetime.now(timezone.utc) - timedelta(minutes=10, seconds=40))
    )
    await test_db.commit()

    ended = await broker.end_session(session.id)
    assert ended.duration_minutes == 11


async def test_end_unknown_session(broker):
    with pytest.raises(NotFoundError):
        await broker.end_session(uuid4())


async def test_end_session_keeps_suspended_counselor_away(
    broker, test_db, make_user, make_counselor,
):
    user = await make_user()
    counselor = await make_counselor()
    session = await broker.create_session(user.id, counselor.id, True)
    await test_db.execute(
        update(Counselor)
        .where(Counselor.id == counselor.id)
        .values(is_suspended=True, availability="away")
    )
    await test_db.commit()

    await broker.end_session(session.id)
    assert (await _counselor(test_db, counselor.id)).availability == "away"


async def test_user_can_book_again_after_end(broker, make_user, make_counselor):
    user = await make_user()
    counselor = await make_counselor()
    first = await broker.create_session(user.id, counselor.id, True)
    await broker.end_session(first.id)

    second = await broker.create_session(user.id, counselor.id, True)
    assert second.id != first.id
    assert second.is_active


# ─── transfer_session ───────────────────────────────────────────

async def test_transfer_moves_session_and_records_chain(
    broker, test_db, make_user, make_counselor,
):
    user = await make_user()
    c1 = await make_counselor()
    c2 = await make_counselor()
    session = await broker.create_session(user.id, c1.id, True)

    moved = await broker.transfer_session(session.id, c1.id, c2.id, "  shift over ")

    assert moved.current_counselor_id == c2.id
    assert moved.previous_counselor_id == c1.id
    assert moved.counselor_id == c1.id
    assert moved.transfer_count == 1
    assert [(t.from_counselor_id, t.to_counselor_id, t.reason) for t in moved.transfers] == [
        (c1.id, c2.id, "shift over"),
    ]
    assert (await _counselor(test_db, c1.id)).availability == "available"
    assert (await _counselor(test_db, c2.id)).availability == "busy"


async def test_transferred_in_counselor_cannot_take_second_session(
    broker, make_user, make_counselor,
):
    u1 = await make_user()
    u2 = await make_user()
    c1 = await make_counselor()
    c2 = await make_counselor()
    session = await broker.create_session(u1.id, c1.id, True)
    await broker.transfer_session(session.id, c1.id, c2.id, "handoff")

    with pytest.raises(ConflictError) as exc:
        await broker.create_session(u2.id, c2.id, True)
    assert exc.value.reason is ConflictReason.COUNSELOR_HAS_ACTIVE_SESSION

    second = await broker.create_session(u2.id, c1.id, True)
    assert second.is_active
    assert second.current_counselor_id == c1.id


async def test_transfer_by_non_current_counselor_rejected(
    broker, make_user, make_counselor,
):
    user = await make_user()
    c1 = await make_counselor()
    c2 = await make_counselor()
    c3 = await make_counselor()
    session = await broker.create_session(user.id, c1.id, True)

    with pytest.raises(AuthorizationError):
        await broker.transfer_session(session.id, c3.id, c2.id, "reason")


async def test_transfer_to_self_or_without_reason_rejected(
    broker, make_user, make_counselor,
):
    user = await make_user()
    c1 = await make_counselor()
    c2 = await make_counselor()
    session = await broker.create_session(user.id, c1.id, True)

    with pytest.raises(ValidationError):
        await broker.transfer_session(session.id, c1.id, c1.id, "reason")
    with pytest.raises(ValidationError):
        await broker.transfer_session(session.id, c1.id, c2.id, "   ")


async def test_transfer_target_missing_or_ineligible(broker, make_user, make_counselor):
    user = await make_user()
    c1 = await make_counselor()
    suspended = await make_counselor(is_suspended=True)
    session = await broker.create_session(user.id, c1.id, True)

    with pytest.raises(NotFoundError):
        await broker.transfer_session(session.id, c1.id, uuid4(), "reason")
    with pytest.raises(UnavailableError):
        await broker.transfer_session(session.id, c1.id, suspended.id, "reason")


async def test_transfer_to_busy_counselor_rejected(
    broker, test_db, make_user, make_counselor,
):
    u1 = await make_user()
    u2 = await make_user()
    c1 = await make_counselor()
    c2 = await make_counselor()
    session = await broker.create_session(u1.id, c1.id, True)
    await broker.create_session(u2.id, c2.id, True)

    with pytest.raises(ConflictError) as exc:
        await broker.transfer_session(session.id, c1.id, c2.id, "reason")
    assert exc.value.reason is ConflictReason.COUNSELOR_HAS_ACTIVE_SESSION
    result = await test_db.execute(select(SessionTransfer))
    assert result.scalars().all() == []


async def test_transfer_of_ended_session_rejected(broker, make_user, make_counselor):
    user = await make_user()
    c1 = await make_counselor()
    c2 = await make_counselor()
    session = await broker.create_session(user.id, c1.id, True)
    await broker.end_session(session.id)

    with pytest.raises(ConflictError):
        await broker.transfer_session(session.id, c1.id, c2.id, "reason")


async def test_end_after_transfer_credits_current_counselor(
    broker, test_db, make_user, make_counselor,
):
    user = await make_user()
    c1 = await make_counselor()
    c2 = await make_counselor()
    session = await broker.create_session(user.id, c1.id, True)
    await broker.transfer_session(session.id, c1.id, c2.id, "handoff")

    await broker.end_session(session.id)

    assert (await _counselor(test_db, c2.id)).sessions_handled == 1
    assert (await _counselor(test_db, c1.id)).sessions_handled == 0


# ─── rate_session ───────────────────────────────────────────────

async def test_rating_updates_counselor_average(
    broker, test_db, make_user, make_counselor,
):
    user = await make_user()
    counselor = await make_counselor()
    session = await broker.create_session(user.id, counselor.id, True)
    await broker.end_session(session.id)

    rated = await broker.rate_session(session.id, user.id, 4)

    assert rated.rating_score == 4
    refreshed = await _counselor(test_db, counselor.id)
    assert refreshed.rating_count == 1
    assert refreshed.rating_average == 4.0


async def test_second_rating_is_ignored(broker, test_db, make_user, make_counselor):
    user = await make_user()
    counselor = await make_counselor()
    session = await broker.create_session(user.id, counselor.id, True)
    await broker.end_session(session.id)
    await broker.rate_session(session.id, user.id, 5)

    again = await broker.rate_session(session.id, user.id, 1)

    assert again.rating_score == 5
    refreshed = await _counselor(test_db, counselor.id)
    assert refreshed.rating_count == 1
    assert refreshed.rating_total == 5


async def test_rating_active_session_rejected(broker, make_user, make_counselor):
    user = await make_user()
    counselor = await make_counselor()
    session = await broker.create_session(user.id, counselor.id, True)

    with pytest.raises(ConflictError) as exc:
        await broker.rate_session(session.id, user.id, 5)
    assert exc.value.reason is ConflictReason.SESSION_STILL_ACTIVE


async def test_rating_by_other_user_rejected(broker, make_user, make_counselor):
    user = await make_user()
    other = await make_user()
    counselor = await make_counselor()
    session = await broker.create_session(user.id, counselor.id, True)
    await broker.end_session(session.id)

    with pytest.raises(AuthorizationError):
        await broker.rate_session(session.id, other.id, 5)


@pytest.mark.parametrize("score", [0, 6])
async def test_rating_out_of_range(broker, make_user, make_counselor, score):
    user = await make_user()
    counselor = await make_counselor()
    session = await broker.create_session(user.id, counselor.id, True)
    await broker.end_session(session.id)

    with pytest.raises(ValidationError):
        await broker.rate_session(session.id, user.id, score)


# ─── bulk termination ───────────────────────────────────────────

async def test_terminate_all_for_user(broker, make_user, make_counselor):
    user = await make_user()
    counselor = await make_counselor()
    session = await broker.create_session(user.id, counselor.id, True)

    assert await broker.terminate_all_for_user(user.id) == 1
    assert not (await broker.get_session(session.id)).is_active
    assert await broker.terminate_all_for_user(user.id) == 0


async def test_terminate_all_for_counselor_covers_handed_off_sessions(
    broker, make_user, make_counselor,
):
    user = await make_user()
    c1 = await make_counselor()
    c2 = await make_counselor()
    session = await broker.create_session(user.id, c1.id, True)
    await broker.transfer_session(session.id, c1.id, c2.id, "handoff")

    assert await broker.terminate_all_for_counselor(c1.id) == 1
    assert await broker.get_active_session_for_counselor(c2.id) is None


async def test_terminate_all_for_counselor_covers_every_earlier_holder(
    broker, make_user, make_counselor,
):
    user = await make_user()
    c1, c2, c3, c4 = [await make_counselor() for _ in range(4)]
    session = await broker.create_session(user.id, c1.id, True)
    await broker.transfer_session(session.id, c1.id, c2.id, "first handoff")
    await broker.transfer_session(session.id, c2.id, c3.id, "second handoff")
    await broker.transfer_session(session.id, c3.id, c4.id, "third handoff")

    # after the third handoff only the transfer rows still name c2
    assert await broker.terminate_all_for_counselor(c2.id) == 1
    ended = await broker.get_session(session.id)
    assert not ended.is_active
    assert await broker.terminate_all_for_counselor(c3.id) == 0


async def test_terminate_all_for_counselor_covers_previous_counselor(
    broker, make_user, make_counselor,
):
    user = await make_user()
    c1, c2, c3 = [await make_counselor() for _ in range(3)]
    session = await broker.create_session(user.id, c1.id, True)
    await broker.transfer_session(session.id, c1.id, c2.id, "first handoff")
    await broker.transfer_session(session.id, c2.id, c3.id, "second handoff")

    assert await broker.terminate_all_for_counselor(c2.id) == 1
    assert await broker.get_active_session_for_counselor(c3.id) is None
