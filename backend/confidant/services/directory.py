"""Directory — registration and lookup of users and counselors by chat handle.

Invariants:
    - register_user is idempotent per handle and touches last_seen_at
    - A handle registers as counselor at most once (ConflictError otherwise)
    - New counselors start unapproved, unsuspended, away (pending approval)
    - resolve_requester: an accessible counselor record wins over a user record

Design Decisions:
    - Unique constraint on external_chat_handle decides registration races:
      the loser re-reads the winner's row instead of failing
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.core.domain_types import Availability, ConversationState, SenderType
from confidant.core.enforce_counselor import has_access
from confidant.core.errors import (
    ConflictError, ConflictReason, NotFoundError, ValidationError,
)
from confidant.models.counselor import Counselor
from confidant.models.user import User

logger = logging.getLogger(__name__)

COUNSELOR_PROFILE_FIELDS = (
    "full_name", "username", "languages_spoken", "domain_expertise",
    "years_experience", "country", "location",
)


@dataclass(frozen=True)
class Requester:
    """Who an inbound chat handle speaks as."""
    id: UUID
    type: SenderType


class Directory:
    """User and counselor records keyed by external chat handle."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Users ──────────────────────────────────────────────────

    async def get_user(self, user_id: UUID) -> User:
        user = await self.db.get(User, user_id, populate_existing=True)
        if not user:
            raise NotFoundError("User", str(user_id))
        return user

    async def get_user_by_handle(self, handle: str) -> User | None:
        result = await self.db.execute(
            select(User)
            .where(User.external_chat_handle == handle)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def register_user(self, handle: str) -> User:
        """Return the user for this handle, creating it on first contact."""
        existing = await self.get_user_by_handle(handle)
        if existing:
            existing.last_seen_at = datetime.now(timezone.utc)
            await self.db.commit()
            return existing
        user = User(external_chat_handle=handle)
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_user_by_handle(handle)
            if existing is None:
                raise
            return existing
        logger.info("User registered", extra={"user_id": user.id})
        return user

    async def set_conversation_state(
        self, user_id: UUID, state: str | ConversationState,
    ) -> None:
        try:
            state = ConversationState(state)
        except ValueError:
            raise ValidationError(
                f"Invalid conversation state: {state}", field="state",
            ) from None
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(conversation_state=state.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundError("User", str(user_id))
        await self.db.commit()

    # ─── Counselors ─────────────────────────────────────────────

    async def get_counselor_by_handle(self, handle: str) -> Counselor | None:
        result = await self.db.execute(
            select(Counselor)
            .where(Counselor.external_chat_handle == handle)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def register_counselor(self, handle: str, **profile) -> Counselor:
        """Self-registration. The counselor waits for admin approval."""
        if await self.get_counselor_by_handle(handle):
            raise ConflictError(
                "This chat is already registered as a counselor.",
                ConflictReason.ALREADY_REGISTERED,
            )
        fields = {
            key: value for key, value in profile.items()
            if key in COUNSELOR_PROFILE_FIELDS and value is not None
        }
        counselor = Counselor(
            external_chat_handle=handle,
            availability=Availability.AWAY.value,
            is_approved=False,
            is_suspended=False,
            **fields,
        )
        self.db.add(counselor)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(
                "This chat is already registered as a counselor.",
                ConflictReason.ALREADY_REGISTERED,
            )
        logger.info(
            "Counselor registered, pending approval",
            extra={"counselor_id": counselor.id},
        )
        return counselor

    # ─── Resolution ─────────────────────────────────────────────

    async def resolve_requester(self, handle: str) -> Requester | None:
        counselor = await self.get_counselor_by_handle(handle)
        if counselor and has_access(counselor):
            return Requester(counselor.id, SenderType.COUNSELOR)
        user = await self.get_user_by_handle(handle)
        if user:
            return Requester(user.id, SenderType.USER)
        return None

    async def resolve_chat_handle(
        self, entity_id: UUID, entity_type: SenderType,
    ) -> str | None:
        """Transport address for a user or counselor id."""
        model = User if entity_type is SenderType.USER else Counselor
        return await self.db.scalar(
            select(model.external_chat_handle).where(model.id == entity_id),
        )
