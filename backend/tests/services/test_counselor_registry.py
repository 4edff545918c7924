"""CounselorRegistry — availability, matching query, approval and removal."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import select

from confidant.core.errors import NotFoundError, ValidationError
from confidant.models.audit_entry import AuditEntry
from confidant.models.counselor import Counselor
from confidant.services.counselor_registry import CounselorRegistry
from confidant.services.session_broker import SessionBroker


@pytest.fixture
def registry(test_db):
    return CounselorRegistry(test_db)


async def test_set_availability_records_change(registry, make_counselor):
    counselor = await make_counselor(availability="away")
    counselor_id = counselor.id

    updated = await registry.set_availability(counselor_id, "available")

    assert updated.availability == "available"
    history = await registry.get_availability_history(counselor_id)
    assert [(h.previous_status, h.new_status) for h in history] == [("away", "available")]
    assert history[0].changed_by == str(counselor_id)


async def test_set_availability_rejects_unknown_literal(registry, make_counselor):
    counselor = await make_counselor()
    with pytest.raises(ValidationError) as exc:
        await registry.set_availability(counselor.id, "pending_approval")
    assert "Must be one of: available, busy, away" in exc.value.message


async def test_set_availability_unknown_counselor(registry):
    with pytest.raises(NotFoundError):
        await registry.set_availability(uuid4(), "away")


async def test_available_counselor_skips_ineligible(registry, make_counselor):
    await make_counselor(is_approved=False)
    await make_counselor(is_suspended=True)
    await make_counselor(availability="busy")
    await make_counselor(availability="away")
    assert await registry.get_available_counselor() is None

    eligible = await make_counselor()
    assert await registry.get_available_counselor() == eligible.id


async def test_available_counselor_prefers_least_recently_active(registry, make_counselor):
    now = datetime.now(timezone.utc)
    await make_counselor(last_active_at=now)
    idle = await make_counselor(last_active_at=now - timedelta(hours=2))
    assert await registry.get_available_counselor() == idle.id


async def test_available_counselor_honors_exclusions(registry, make_counselor):
    first = await make_counselor()
    assert await registry.get_available_counselor(exclude={first.id}) is None


async def test_approve_counselor_writes_audit(registry, test_db, make_counselor):
    pending = await make_counselor(is_approved=False, availability="away")

    approved = await registry.approve_counselor("900", pending.id)

    assert approved.is_approved and not approved.is_suspended
    assert await registry.has_access(pending.id)
    entries = (await test_db.execute(select(AuditEntry))).scalars().all()
    assert [(e.admin_id, e.action, e.target_id) for e in entries] == [
        ("900", "approve_counselor", str(pending.id)),
    ]


async def test_approve_unknown_counselor(registry):
    with pytest.raises(NotFoundError):
        await registry.approve_counselor("900", uuid4())


async def test_remove_counselor_ends_sessions_first(
    registry, test_db, make_user, make_counselor,
):
    user = await make_user()
    counselor = await make_counselor()
    broker = SessionBroker(test_db)
    session = await broker.create_session(user.id, counselor.id, True)

    removed = await registry.remove_counselor("900", counselor.id)

    assert not removed.is_approved
    assert removed.is_suspended
    assert removed.availability == "away"
    assert removed.sessions_handled == 1
    assert not (await broker.get_session(session.id)).is_active
    assert not await registry.has_access(counselor.id)
    entry = (await test_db.execute(select(AuditEntry))).scalar_one()
    assert entry.action == "remove_counselor"
    assert entry.details == {"sessions_ended": 1}


async def test_remove_intermediate_counselor_ends_handed_off_session(
    registry, test_db, make_user, make_counselor,
):
    user = await make_user()
    c1, c2, c3 = [await make_counselor() for _ in range(3)]
    broker = SessionBroker(test_db)
    session = await broker.create_session(user.id, c1.id, True)
    await broker.transfer_session(session.id, c1.id, c2.id, "first handoff")
    await broker.transfer_session(session.id, c2.id, c3.id, "second handoff")

    await registry.remove_counselor("900", c2.id)

    assert not (await broker.get_session(session.id)).is_active
    third = await test_db.get(Counselor, c3.id, populate_existing=True)
    assert third.sessions_handled == 1
    assert third.availability == "available"
    entry = (await test_db.execute(select(AuditEntry))).scalar_one()
    assert entry.details == {"sessions_ended": 1}


async def test_has_access_false_for_unknown(registry):
    assert await registry.has_access(uuid4()) is False


async def test_counselor_stats(registry, test_db, make_user, make_counselor):
    user = await make_user()
    counselor = await make_counselor()
    broker = SessionBroker(test_db)
    session = await broker.create_session(user.id, counselor.id, True)
    await broker.end_session(session.id)
    await broker.rate_session(session.id, user.id, 3)

    stats = await registry.get_counselor_stats(counselor.id)

    assert stats["sessions_handled"] == 1
    assert stats["rating_count"] == 1
    assert stats["rating_average"] == 3.0
    assert stats["strikes"] == 0
    assert stats["pending_approval"] is False


async def test_list_counselors_newest_first(registry, make_counselor):
    now = datetime.now(timezone.utc)
    older = await make_counselor(created_at=now - timedelta(days=1))
    newer = await make_counselor(created_at=now)

    page = await registry.list_counselors(page=1, page_size=5)

    assert [c.id for c in page.items] == [newer.id, older.id]
    assert page.total == 2
    assert page.total_pages == 1


async def test_stats_flag_unapproved_counselor_as_pending(registry, make_counselor):
    counselor = await make_counselor(is_approved=False, availability="away")

    stats = await registry.get_counselor_stats(counselor.id)

    assert stats["pending_approval"] is True
