"""User Routes — registration, conversation state and admin session termination."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.api.dependencies import require_admin
from confidant.core.domain_types import AdminAction
from confidant.infrastructure.database import get_db
from confidant.schemas.directory import (
    ConversationStateUpdate, UserRegister, UserResponse,
)
from confidant.schemas.session import SessionResponse, TerminationResponse
from confidant.services.audit_recorder import AuditRecorder
from confidant.services.directory import Directory
from confidant.services.session_broker import SessionBroker

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.post("", response_model=UserResponse)
async def register_user(body: UserRegister, db: AsyncSession = Depends(get_db)):
    """Idempotent: first contact creates, later calls return the same user."""
    return await Directory(db).register_user(body.external_chat_handle)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: UUID, db: AsyncSession = Depends(get_db)):
    return await Directory(db).get_user(user_id)


@router.put("/{user_id}/state", response_model=UserResponse)
async def set_conversation_state(
    user_id: UUID, body: ConversationStateUpdate, db: AsyncSession = Depends(get_db),
):
    directory = Directory(db)
    await directory.set_conversation_state(user_id, body.state)
    return await directory.get_user(user_id)


@router.get("/{user_id}/active-session", response_model=SessionResponse | None)
async def get_active_session(user_id: UUID, db: AsyncSession = Depends(get_db)):
    await Directory(db).get_user(user_id)
    return await SessionBroker(db).get_active_session_for_user(user_id)


@router.get("/{user_id}/sessions", response_model=list[SessionResponse])
async def list_sessions(
    user_id: UUID,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    await Directory(db).get_user(user_id)
    return await SessionBroker(db).list_sessions_for_user(user_id, limit)


@router.post("/{user_id}/terminate-sessions", response_model=TerminationResponse)
async def terminate_user_sessions(
    user_id: UUID,
    admin_id: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await Directory(db).get_user(user_id)
    ended = await SessionBroker(db).terminate_all_for_user(user_id)
    await AuditRecorder(db).record_admin_action(
        admin_id, AdminAction.TERMINATE_USER_SESSIONS, str(user_id),
        {"sessions_ended": ended},
    )
    return TerminationResponse(sessions_ended=ended)
