"""Session Routes — consent disclosure, matching, booking, ending, transfer and rating.

Invariants:
    - Every state change goes through SessionBroker / Matchmaker; routes hold no rules
    - Participants are notified after the response (best-effort)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.api.dependencies import get_notifier
from confidant.api.notify import schedule_notification
from confidant.config import get_settings
from confidant.core.domain_types import SenderType
from confidant.core.repository_protocols import Notifier
from confidant.infrastructure.database import get_db
from confidant.models.session import CounselingSession
from confidant.schemas.session import (
    ConsentDisclosure, MatchRequest, MatchResponse, RatingRequest, SessionCreate,
    SessionResponse, TransferRequest,
)
from confidant.services.directory import Directory
from confidant.services.matchmaker import Matchmaker
from confidant.services.notification_dispatch import (
    SESSION_ENDED_TEXT, SESSION_STARTED_COUNSELOR_TEXT, SESSION_STARTED_USER_TEXT,
    SESSION_TRANSFERRED_COUNSELOR_TEXT, SESSION_TRANSFERRED_USER_TEXT,
)
from confidant.services.session_broker import SessionBroker

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


async def _notify_started(
    session: CounselingSession,
    background_tasks: BackgroundTasks,
    notifier: Notifier,
    directory: Directory,
) -> None:
    await schedule_notification(
        background_tasks, notifier, directory,
        session.user_id, SenderType.USER, SESSION_STARTED_USER_TEXT,
    )
    await schedule_notification(
        background_tasks, notifier, directory,
        session.current_counselor_id, SenderType.COUNSELOR,
        SESSION_STARTED_COUNSELOR_TEXT,
    )


@router.get("/consent-disclosure", response_model=ConsentDisclosure)
async def get_consent_disclosure():
    return ConsentDisclosure(text=SessionBroker.consent_disclosure_text())


@router.post("/match", response_model=MatchResponse)
async def match_user(
    body: MatchRequest,
    background_tasks: BackgroundTasks,
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    """Book the first free counselor, or report that nobody is free."""
    matchmaker = Matchmaker(db, max_attempts=get_settings().max_match_attempts)
    session = await matchmaker.match_user(body.user_id, body.consent_given)
    if session is None:
        return MatchResponse(matched=False)
    await _notify_started(session, background_tasks, notifier, matchmaker.directory)
    return MatchResponse(matched=True, session=session)


@router.post(
    "", response_model=SessionResponse, status_code=status.HTTP_201_CREATED,
)
async def create_session(
    body: SessionCreate,
    background_tasks: BackgroundTasks,
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    session = await SessionBroker(db).create_session(
        body.user_id, body.counselor_id, body.consent_given,
    )
    await _notify_started(session, background_tasks, notifier, Directory(db))
    return session


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: UUID, db: AsyncSession = Depends(get_db)):
    return await SessionBroker(db).get_session(session_id)


@router.post("/{session_id}/end", response_model=SessionResponse)
async def end_session(
    session_id: UUID,
    background_tasks: BackgroundTasks,
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    broker = SessionBroker(db)
    was_active = (await broker.get_session(session_id)).is_active
    session = await broker.end_session(session_id)
    if was_active:
        directory = Directory(db)
        await schedule_notification(
            background_tasks, notifier, directory,
            session.user_id, SenderType.USER, SESSION_ENDED_TEXT,
        )
        await schedule_notification(
            background_tasks, notifier, directory,
            session.current_counselor_id, SenderType.COUNSELOR, SESSION_ENDED_TEXT,
        )
    return session


@router.post("/{session_id}/transfer", response_model=SessionResponse)
async def transfer_session(
    session_id: UUID,
    body: TransferRequest,
    background_tasks: BackgroundTasks,
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    session = await SessionBroker(db).transfer_session(
        session_id, body.from_counselor_id, body.to_counselor_id, body.reason,
    )
    directory = Directory(db)
    await schedule_notification(
        background_tasks, notifier, directory,
        session.user_id, SenderType.USER, SESSION_TRANSFERRED_USER_TEXT,
    )
    await schedule_notification(
        background_tasks, notifier, directory,
        session.current_counselor_id, SenderType.COUNSELOR,
        SESSION_TRANSFERRED_COUNSELOR_TEXT,
    )
    return session


@router.post("/{session_id}/rating", response_model=SessionResponse)
async def rate_session(
    session_id: UUID, body: RatingRequest, db: AsyncSession = Depends(get_db),
):
    return await SessionBroker(db).rate_session(session_id, body.user_id, body.score)
