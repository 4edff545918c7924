"""Counselor Registry — availability, approval, removal and counselor read models.

Invariants:
    - Only available/busy/away are accepted by set_availability (ValidationError)
    - Every availability change writes an AvailabilityChange row in the same commit
    - get_available_counselor never returns an unapproved, suspended or non-available
      counselor
    - Admin operations stage their audit entry in the same commit as the change

Design Decisions:
    - Least-recently-active first when several counselors are free: spreads load
      without a separate round-robin cursor
    - remove_counselor ends sessions through SessionBroker so each ended session gets
      the normal bookkeeping (duration, user state)
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.core.domain_types import AdminAction, Availability
from confidant.core.enforce_counselor import (
    has_access, is_pending_approval, parse_availability,
)
from confidant.core.errors import NotFoundError
from confidant.core.pagination import (
    DEFAULT_PAGE_SIZE, Page, build_page, page_window,
)
from confidant.models.availability_change import AvailabilityChange
from confidant.models.counselor import Counselor
from confidant.services.audit_recorder import AuditRecorder
from confidant.services.session_broker import SessionBroker

logger = logging.getLogger(__name__)


class CounselorRegistry:
    """Counselor state transitions and lookups."""

    def __init__(self, db: AsyncSession, audit: AuditRecorder | None = None):
        self.db = db
        self.audit = audit or AuditRecorder(db)

    async def get_counselor(self, counselor_id: UUID) -> Counselor:
        counselor = await self.db.get(Counselor, counselor_id, populate_existing=True)
        if not counselor:
            raise NotFoundError("Counselor", str(counselor_id))
        return counselor

    async def set_availability(
        self,
        counselor_id: UUID,
        status: str | Availability,
        changed_by: str | None = None,
    ) -> Counselor:
        new_status = parse_availability(status)
        counselor = await self.get_counselor(counselor_id)
        previous = counselor.availability
        now = datetime.now(timezone.utc)

        await self.db.execute(
            update(Counselor)
            .where(Counselor.id == counselor_id)
            .values(availability=new_status.value, last_active_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.add(AvailabilityChange(
            counselor_id=counselor_id,
            previous_status=previous,
            new_status=new_status.value,
            changed_by=str(changed_by or counselor_id),
            timestamp=now,
        ))
        await self.db.commit()
        logger.info(
            f"Availability {previous} -> {new_status.value}",
            extra={"counselor_id": counselor_id},
        )
        return await self.get_counselor(counselor_id)

    async def get_available_counselor(
        self, exclude: Iterable[UUID] = (),
    ) -> UUID | None:
        query = select(Counselor.id).where(
            Counselor.availability == Availability.AVAILABLE.value,
            Counselor.is_approved.is_(True),
            Counselor.is_suspended.is_(False),
        )
        excluded = list(exclude)
        if excluded:
            query = query.where(Counselor.id.not_in(excluded))
        result = await self.db.execute(
            query.order_by(Counselor.last_active_at.asc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def has_access(self, counselor_id: UUID) -> bool:
        counselor = await self.db.get(Counselor, counselor_id, populate_existing=True)
        return counselor is not None and has_access(counselor)

    # ─── Admin ──────────────────────────────────────────────────

    async def approve_counselor(self, admin_id: str, counselor_id: UUID) -> Counselor:
        result = await self.db.execute(
            update(Counselor)
            .where(Counselor.id == counselor_id)
            .values(
                is_approved=True,
                is_suspended=False,
                last_active_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundError("Counselor", str(counselor_id))
        self.audit.stage(admin_id, AdminAction.APPROVE_COUNSELOR, str(counselor_id))
        await self.db.commit()
        logger.info(
            "Counselor approved",
            extra={"counselor_id": counselor_id, "admin_id": admin_id},
        )
        return await self.get_counselor(counselor_id)

    async def remove_counselor(self, admin_id: str, counselor_id: UUID) -> Counselor:
        """End the counselor's sessions, then revoke access."""
        await self.get_counselor(counselor_id)
        ended = await SessionBroker(self.db).terminate_all_for_counselor(counselor_id)

        await self.db.execute(
            update(Counselor)
            .where(Counselor.id == counselor_id)
            .values(
                is_approved=False,
                is_suspended=True,
                availability=Availability.AWAY.value,
            )
            .execution_options(synchronize_session=False)
        )
        self.audit.stage(
            admin_id, AdminAction.REMOVE_COUNSELOR, str(counselor_id),
            {"sessions_ended": ended},
        )
        await self.db.commit()
        logger.warning(
            "Counselor removed",
            extra={"counselor_id": counselor_id, "admin_id": admin_id},
        )
        return await self.get_counselor(counselor_id)

    # ─── Read models ────────────────────────────────────────────

    async def get_counselor_stats(self, counselor_id: UUID) -> dict:
        counselor = await self.get_counselor(counselor_id)
        return {
            "counselor_id": counselor.id,
            "availability": counselor.availability,
            "is_approved": counselor.is_approved,
            "is_suspended": counselor.is_suspended,
            "pending_approval": is_pending_approval(counselor),
            "strikes": counselor.strikes,
            "sessions_handled": counselor.sessions_handled,
            "rating_count": counselor.rating_count,
            "rating_average": round(counselor.rating_average, 2),
            "last_active_at": counselor.last_active_at,
        }

    async def list_counselors(
        self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[Counselor]:
        total = await self.db.scalar(select(func.count()).select_from(Counselor))
        window = page_window(page, page_size, total or 0)
        result = await self.db.execute(
            select(Counselor)
            .order_by(Counselor.created_at.desc())
            .offset(window.offset)
            .limit(window.page_size)
            .execution_options(populate_existing=True)
        )
        return build_page(list(result.scalars().all()), window)

    async def get_availability_history(
        self, counselor_id: UUID, limit: int = 50,
    ) -> list[AvailabilityChange]:
        await self.get_counselor(counselor_id)
        result = await self.db.execute(
            select(AvailabilityChange)
            .where(AvailabilityChange.counselor_id == counselor_id)
            .order_by(AvailabilityChange.timestamp.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
