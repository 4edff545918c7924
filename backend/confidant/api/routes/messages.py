"""Message Routes — send within a session, read history, accept raw inbound lines.

Invariants:
    - The recipient is notified with a role label only, never the sender's identity
    - Inbound lines from senders outside a session return routed=false, not an error
"""

import logging
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.api.dependencies import get_notifier
from confidant.api.notify import schedule_notification
from confidant.core.domain_types import SenderType
from confidant.core.repository_protocols import Notifier
from confidant.infrastructure.database import get_db
from confidant.schemas.common import page_fields
from confidant.schemas.message import (
    InboundMessage, InboundResult, MessageCreate, MessagePage, MessageResponse,
    RoutedMessageResponse,
)
from confidant.services.message_router import MessageRouter, RoutedMessage
from confidant.services.notification_dispatch import format_relayed

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["messages"])


async def _relay(
    routed: RoutedMessage,
    message_router: MessageRouter,
    background_tasks: BackgroundTasks,
    notifier: Notifier,
) -> RoutedMessageResponse:
    sender_type = SenderType(routed.message.sender_type)
    await schedule_notification(
        background_tasks, notifier, message_router.directory,
        routed.recipient_id, routed.recipient_type,
        format_relayed(sender_type, routed.message.content),
    )
    return RoutedMessageResponse(
        message=MessageResponse.model_validate(routed.message),
        recipient_id=routed.recipient_id,
        recipient_type=routed.recipient_type.value,
    )


@router.post("/sessions/{session_id}/messages", response_model=RoutedMessageResponse)
async def route_message(
    session_id: UUID,
    body: MessageCreate,
    background_tasks: BackgroundTasks,
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    message_router = MessageRouter(db)
    routed = await message_router.route_message(
        session_id, body.sender_id, body.sender_type, body.content,
    )
    return await _relay(routed, message_router, background_tasks, notifier)


@router.get("/sessions/{session_id}/messages", response_model=MessagePage)
async def get_message_history(
    session_id: UUID,
    requester_id: UUID,
    requester_type: Literal["user", "counselor"],
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    result = await MessageRouter(db).get_message_history_page(
        session_id, requester_id, requester_type, page, page_size,
    )
    return MessagePage(messages=result.items, **page_fields(result))


@router.post("/messages/inbound", response_model=InboundResult)
async def route_inbound(
    body: InboundMessage,
    background_tasks: BackgroundTasks,
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    message_router = MessageRouter(db)
    routed = await message_router.route_inbound(body.external_chat_handle, body.content)
    if routed is None:
        return InboundResult(routed=False)
    result = await _relay(routed, message_router, background_tasks, notifier)
    return InboundResult(routed=True, result=result)
