"""Matchmaker — pairs a waiting user with a free counselor, retrying lost races.

Invariants:
    - Never pairs a user with a counselor record that shares their chat handle
    - At most max_attempts candidates are tried per call; each candidate once
    - A counselor-side conflict moves on to the next candidate; a user-side
      conflict is raised (the user is already in a session)

Design Decisions:
    - Returns None when nobody is free: "no counselor" is an expected outcome the
      conversation layer answers with a waiting message, not an error
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from confidant.core.domain_types import Availability
from confidant.core.enforce_counselor import is_matchable
from confidant.core.enforce_session import require_consent
from confidant.core.errors import (
    ConflictError, ConflictReason, ErrorContext, NotFoundError, UnavailableError,
)
from confidant.models.session import CounselingSession
from confidant.services.counselor_registry import CounselorRegistry
from confidant.services.directory import Directory
from confidant.services.session_broker import SessionBroker

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS: int = 3


class Matchmaker:
    """Finds and books a counselor for a user."""

    def __init__(self, db: AsyncSession, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.db = db
        self.max_attempts = max_attempts
        self.broker = SessionBroker(db)
        self.registry = CounselorRegistry(db)
        self.directory = Directory(db)

    async def match_user(
        self, user_id: UUID, consent_given: bool,
    ) -> CounselingSession | None:
        require_consent(consent_given)
        user_handle = (await self.directory.get_user(user_id)).external_chat_handle
        if await self.broker.get_active_session_for_user(user_id):
            raise ConflictError(
                "User already has an active session.",
                ConflictReason.USER_HAS_ACTIVE_SESSION,
                ErrorContext(user_id=str(user_id)),
            )

        tried: set[UUID] = set()
        for attempt in range(1, self.max_attempts + 1):
            candidate_id = await self.registry.get_available_counselor(exclude=tried)
            if candidate_id is None:
                break
            tried.add(candidate_id)

            try:
                candidate = await self.registry.get_counselor(candidate_id)
            except NotFoundError:
                continue
            if not is_matchable(candidate, Availability(candidate.availability)):
                continue
            if candidate.external_chat_handle == user_handle:
                logger.info(
                    "Skipping counselor sharing the user's chat",
                    extra={"counselor_id": candidate_id, "attempt": attempt},
                )
                continue
            if await self.broker.get_active_session_for_counselor(candidate_id):
                logger.info(
                    "Counselor already in a session, skipping",
                    extra={"counselor_id": candidate_id, "attempt": attempt},
                )
                continue

            try:
                return await self.broker.create_session(user_id, candidate_id, True)
            except ConflictError as e:
                if e.reason is ConflictReason.USER_HAS_ACTIVE_SESSION:
                    raise
                logger.info(
                    "Counselor taken before booking, trying next",
                    extra={"counselor_id": candidate_id, "attempt": attempt},
                )
            except UnavailableError:
                logger.info(
                    "Counselor lost eligibility before booking, trying next",
                    extra={"counselor_id": candidate_id, "attempt": attempt},
                )

        logger.info("No counselor available", extra={"user_id": user_id})
        return None
