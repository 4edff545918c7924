"""Session Broker — exclusive user↔counselor pairing, lifecycle, transfer and rating.

Invariants:
    - At most one active session per user and per current counselor; the partial
      unique indexes decide races, pre-checks only produce nicer errors
    - Only violations of those two indexes become ConflictError; any other
      IntegrityError propagates to the DatabaseError mapping
    - Counselor-wide termination reaches every session the counselor ever held,
      including hops recorded only in session_transfers
    - create_session marks the counselor busy in the same transaction
    - end_session is idempotent: a second call returns the ended session unchanged
    - sessions_handled and rating aggregates move by in-database increments
    - rate_session succeeds at most once per session

Design Decisions:
    - Conditional UPDATEs (WHERE is_active / WHERE rating_score IS NULL) + rowcount
      instead of SELECT FOR UPDATE: same behavior on PostgreSQL and SQLite
    - Every read re-loads with populate_existing so a long-lived AsyncSession never
      hands back stale identity-map rows
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import case, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.core.domain_types import Availability, ConversationState
from confidant.core.enforce_session import (
    CONSENT_DISCLOSURE_TEXT, compute_duration_minutes, require_consent,
    require_eligible, validate_rating, validate_transfer,
)
from confidant.core.errors import (
    AuthorizationError, ConflictError, ConflictReason, ErrorContext, NotFoundError,
)
from confidant.models.counselor import Counselor
from confidant.models.session import CounselingSession
from confidant.models.session_transfer import SessionTransfer
from confidant.models.user import User

logger = logging.getLogger(__name__)


EXCLUSIVITY_INDEXES = ("uq_sessions_active_user", "uq_sessions_active_counselor")
# SQLite names the indexed columns instead of the index.
_SQLITE_EXCLUSIVITY_COLUMNS = ("sessions.user_id", "sessions.current_counselor_id")


def is_exclusivity_violation(error: IntegrityError) -> bool:
    detail = str(error.orig)
    if any(name in detail for name in EXCLUSIVITY_INDEXES):
        return True
    return "UNIQUE" in detail and any(
        col in detail for col in _SQLITE_EXCLUSIVITY_COLUMNS
    )


def _release_availability():
    """Back to available unless suspended meanwhile."""
    return case(
        (Counselor.is_suspended.is_(False), Availability.AVAILABLE.value),
        else_=Counselor.availability,
    )


class SessionBroker:
    """Owns the session lifecycle."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def consent_disclosure_text() -> str:
        return CONSENT_DISCLOSURE_TEXT

    # ─── Reads ──────────────────────────────────────────────────

    async def _first(self, *criteria) -> CounselingSession | None:
        result = await self.db.execute(
            select(CounselingSession)
            .where(*criteria)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_session(self, session_id: UUID) -> CounselingSession:
        session = await self._first(CounselingSession.id == session_id)
        if not session:
            raise NotFoundError("Session", str(session_id))
        return session

    async def get_active_session_for_user(
        self, user_id: UUID,
    ) -> CounselingSession | None:
        return await self._first(
            CounselingSession.user_id == user_id,
            CounselingSession.is_active.is_(True),
        )

    async def get_active_session_for_counselor(
        self, counselor_id: UUID,
    ) -> CounselingSession | None:
        return await self._first(
            CounselingSession.current_counselor_id == counselor_id,
            CounselingSession.is_active.is_(True),
        )

    async def list_sessions_for_user(
        self, user_id: UUID, limit: int = 20,
    ) -> list[CounselingSession]:
        """Past and present sessions, newest first."""
        result = await self.db.execute(
            select(CounselingSession)
            .where(CounselingSession.user_id == user_id)
            .order_by(CounselingSession.start_time.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # ─── Lifecycle ──────────────────────────────────────────────

    async def create_session(
        self, user_id: UUID, counselor_id: UUID, consent_given: bool,
    ) -> CounselingSession:
        require_consent(consent_given)
        user = await self.db.get(User, user_id, populate_existing=True)
        if not user:
            raise NotFoundError("User", str(user_id))
        counselor = await self.db.get(Counselor, counselor_id, populate_existing=True)
        if not counselor:
            raise NotFoundError("Counselor", str(counselor_id))
        require_eligible(counselor)

        context = ErrorContext(user_id=str(user_id), counselor_id=str(counselor_id))
        if await self.get_active_session_for_user(user_id):
            raise ConflictError(
                "User already has an active session.",
                ConflictReason.USER_HAS_ACTIVE_SESSION, context,
            )
        if await self.get_active_session_for_counselor(counselor_id):
            raise ConflictError(
                "Counselor already has an active session.",
                ConflictReason.COUNSELOR_HAS_ACTIVE_SESSION, context,
            )

        now = datetime.now(timezone.utc)
        session = CounselingSession(
            user_id=user_id,
            counselor_id=counselor_id,
            current_counselor_id=counselor_id,
            start_time=now,
            is_active=True,
            consent_given=True,
            consent_timestamp=now,
            transfer_count=0,
        )
        try:
            self.db.add(session)
            await self.db.execute(
                update(Counselor)
                .where(Counselor.id == counselor_id)
                .values(availability=Availability.BUSY.value, last_active_at=now)
                .execution_options(synchronize_session=False)
            )
            await self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(
                    conversation_state=ConversationState.IN_SESSION.value,
                    last_seen_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if not is_exclusivity_violation(e):
                raise
            raise await self._exclusivity_conflict(user_id, context) from e

        logger.info(
            "Session created",
            extra={
                "session_id": session.id,
                "user_id": user_id,
                "counselor_id": counselor_id,
            },
        )
        return await self.get_session(session.id)

    async def _exclusivity_conflict(
        self, user_id: UUID, context: ErrorContext,
    ) -> ConflictError:
        """Work out which side lost a commit-time race."""
        if await self.get_active_session_for_user(user_id):
            return ConflictError(
                "User already has an active session.",
                ConflictReason.USER_HAS_ACTIVE_SESSION, context,
            )
        return ConflictError(
            "Counselor already has an active session.",
            ConflictReason.COUNSELOR_HAS_ACTIVE_SESSION, context,
        )

    async def end_session(self, session_id: UUID) -> CounselingSession:
        session = await self.get_session(session_id)
        if not session.is_active:
            return session

        end_time = datetime.now(timezone.utc)
        result = await self.db.execute(
            update(CounselingSession)
            .where(
                CounselingSession.id == session_id,
                CounselingSession.is_active.is_(True),
            )
            .values(
                is_active=False,
                end_time=end_time,
                duration_minutes=compute_duration_minutes(session.start_time, end_time),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Ended concurrently; the other caller did the bookkeeping.
            await self.db.rollback()
            return await self.get_session(session_id)

        await self.db.execute(
            update(Counselor)
            .where(Counselor.id == session.current_counselor_id)
            .values(
                sessions_handled=Counselor.sessions_handled + 1,
                availability=_release_availability(),
                last_active_at=end_time,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(User)
            .where(User.id == session.user_id)
            .values(conversation_state=ConversationState.POST_SESSION.value)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(
            "Session ended",
            extra={
                "session_id": session_id,
                "counselor_id": session.current_counselor_id,
            },
        )
        return await self.get_session(session_id)

    async def transfer_session(
        self,
        session_id: UUID,
        from_counselor_id: UUID,
        to_counselor_id: UUID,
        reason: str,
    ) -> CounselingSession:
        session = await self.get_session(session_id)
        reason = validate_transfer(session, from_counselor_id, to_counselor_id, reason)
        target = await self.db.get(Counselor, to_counselor_id, populate_existing=True)
        if not target:
            raise NotFoundError("Counselor", str(to_counselor_id))
        require_eligible(target)

        context = ErrorContext(
            session_id=str(session_id), counselor_id=str(to_counselor_id),
        )
        if await self.get_active_session_for_counselor(to_counselor_id):
            raise ConflictError(
                "Target counselor already has an active session.",
                ConflictReason.COUNSELOR_HAS_ACTIVE_SESSION, context,
            )

        now = datetime.now(timezone.utc)
        try:
            result = await self.db.execute(
                update(CounselingSession)
                .where(
                    CounselingSession.id == session_id,
                    CounselingSession.is_active.is_(True),
                    CounselingSession.current_counselor_id == from_counselor_id,
                )
                .values(
                    current_counselor_id=to_counselor_id,
                    previous_counselor_id=from_counselor_id,
                    transfer_count=CounselingSession.transfer_count + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                raise ConflictError(
                    "Session changed before the transfer completed.",
                    ConflictReason.SESSION_INACTIVE, context,
                )
            self.db.add(SessionTransfer(
                session_id=session_id,
                from_counselor_id=from_counselor_id,
                to_counselor_id=to_counselor_id,
                reason=reason,
                timestamp=now,
            ))
            await self.db.execute(
                update(Counselor)
                .where(Counselor.id == from_counselor_id)
                .values(availability=_release_availability(), last_active_at=now)
                .execution_options(synchronize_session=False)
            )
            await self.db.execute(
                update(Counselor)
                .where(Counselor.id == to_counselor_id)
                .values(availability=Availability.BUSY.value, last_active_at=now)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if not is_exclusivity_violation(e):
                raise
            raise ConflictError(
                "Target counselor already has an active session.",
                ConflictReason.COUNSELOR_HAS_ACTIVE_SESSION, context,
            ) from e

        logger.info(
            "Session transferred",
            extra={"session_id": session_id, "counselor_id": to_counselor_id},
        )
        return await self.get_session(session_id)

    async def rate_session(
        self, session_id: UUID, user_id: UUID, score: int,
    ) -> CounselingSession:
        score = validate_rating(score)
        session = await self.get_session(session_id)
        if session.user_id != user_id:
            raise AuthorizationError(
                "Only the session's user can rate it.",
                ErrorContext(session_id=str(session_id)),
            )
        if session.is_active:
            raise ConflictError(
                "Session must end before it can be rated.",
                ConflictReason.SESSION_STILL_ACTIVE,
                ErrorContext(session_id=str(session_id)),
            )
        if session.rating_score is not None:
            return session

        result = await self.db.execute(
            update(CounselingSession)
            .where(
                CounselingSession.id == session_id,
                CounselingSession.rating_score.is_(None),
            )
            .values(rating_score=score, rated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            return await self.get_session(session_id)

        await self.db.execute(
            update(Counselor)
            .where(Counselor.id == session.current_counselor_id)
            .values(
                rating_total=Counselor.rating_total + score,
                rating_count=Counselor.rating_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(
            "Session rated",
            extra={"session_id": session_id, "counselor_id": session.current_counselor_id},
        )
        return await self.get_session(session_id)

    # ─── Bulk termination ───────────────────────────────────────

    async def _end_all(self, *criteria) -> int:
        result = await self.db.execute(
            select(CounselingSession.id).where(
                CounselingSession.is_active.is_(True), *criteria,
            )
        )
        ended = 0
        for session_id in list(result.scalars().all()):
            session = await self.get_session(session_id)
            if session.is_active:
                await self.end_session(session_id)
                ended += 1
        return ended

    async def terminate_all_for_user(self, user_id: UUID) -> int:
        count = await self._end_all(CounselingSession.user_id == user_id)
        logger.info(f"Terminated {count} session(s)", extra={"user_id": user_id})
        return count

    async def terminate_all_for_counselor(self, counselor_id: UUID) -> int:
        """Ends every active session the counselor holds or has held at any point."""
        in_transfer_chain = (
            select(SessionTransfer.id)
            .where(
                SessionTransfer.session_id == CounselingSession.id,
                or_(
                    SessionTransfer.from_counselor_id == counselor_id,
                    SessionTransfer.to_counselor_id == counselor_id,
                ),
            )
            .exists()
        )
        count = await self._end_all(or_(
            CounselingSession.counselor_id == counselor_id,
            CounselingSession.current_counselor_id == counselor_id,
            CounselingSession.previous_counselor_id == counselor_id,
            in_transfer_chain,
        ))
        logger.info(
            f"Terminated {count} session(s)", extra={"counselor_id": counselor_id},
        )
        return count
