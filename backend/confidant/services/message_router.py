"""Message Router — delivers chat lines between the two sides of an active session.

Invariants:
    - Only an active session routes; sender must be a participant of that session
    - User → current counselor; counselor → user
    - Stored content is trimmed and non-empty
    - History is chronological and readable by every counselor in the transfer chain,
      including after the session ended

Design Decisions:
    - route_inbound resolves a raw chat handle: counselor role wins over user role
      when one handle holds both
    - A user is routed only while their conversation state is in_session; other
      states (prayer submission, reporting, appealing) belong to the conversation layer
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.core.domain_types import ConversationState, SenderType
from confidant.core.enforce_session import (
    authorize_requester, normalize_content, parse_sender_type, require_active,
    resolve_recipient,
)
from confidant.core.pagination import Page, build_page, page_window
from confidant.models.message import Message
from confidant.services.directory import Directory
from confidant.services.session_broker import SessionBroker

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT: int = 50


@dataclass(frozen=True)
class RoutedMessage:
    """A stored message and who should receive it."""
    message: Message
    recipient_id: UUID
    recipient_type: SenderType


class MessageRouter:
    """Stores and addresses messages."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.broker = SessionBroker(db)
        self.directory = Directory(db)

    async def route_message(
        self,
        session_id: UUID,
        sender_id: UUID,
        sender_type: str | SenderType,
        content: str,
    ) -> RoutedMessage:
        sender_type = parse_sender_type(sender_type)
        session = await self.broker.get_session(session_id)
        authorize_requester(session, sender_id, sender_type)
        require_active(session)
        text = normalize_content(content)

        message = Message(
            session_id=session_id,
            sender_id=sender_id,
            sender_type=sender_type.value,
            content=text,
        )
        self.db.add(message)
        await self.db.commit()

        recipient_id, recipient_type = resolve_recipient(session, sender_type)
        logger.debug(
            f"Routed {sender_type.value} message",
            extra={"session_id": session_id},
        )
        return RoutedMessage(message, recipient_id, recipient_type)

    async def route_inbound(self, handle: str, content: str) -> RoutedMessage | None:
        """Route a raw inbound chat line. None when the sender is not in a session."""
        requester = await self.directory.resolve_requester(handle)
        if requester is None:
            return None

        if requester.type is SenderType.COUNSELOR:
            session = await self.broker.get_active_session_for_counselor(requester.id)
        else:
            user = await self.directory.get_user(requester.id)
            if user.conversation_state != ConversationState.IN_SESSION.value:
                return None
            session = await self.broker.get_active_session_for_user(requester.id)
        if session is None:
            return None
        return await self.route_message(
            session.id, requester.id, requester.type, content,
        )

    async def get_message_history(
        self,
        session_id: UUID,
        requester_id: UUID,
        requester_type: str | SenderType,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[Message]:
        await self._authorize_history(session_id, requester_id, requester_type)
        result = await self.db.execute(
            select(Message)
            .where(Message.session_id == session_id)
            .order_by(Message.timestamp.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_message_history_page(
        self,
        session_id: UUID,
        requester_id: UUID,
        requester_type: str | SenderType,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Message]:
        await self._authorize_history(session_id, requester_id, requester_type)
        total = await self.db.scalar(
            select(func.count())
            .select_from(Message)
            .where(Message.session_id == session_id)
        )
        window = page_window(page, page_size, total or 0)
        result = await self.db.execute(
            select(Message)
            .where(Message.session_id == session_id)
            .order_by(Message.timestamp.asc())
            .offset(window.offset)
            .limit(window.page_size)
        )
        return build_page(list(result.scalars().all()), window)

    async def _authorize_history(
        self, session_id: UUID, requester_id: UUID, requester_type: str | SenderType,
    ) -> None:
        requester_type = parse_sender_type(requester_type)
        session = await self.broker.get_session(session_id)
        authorize_requester(session, requester_id, requester_type)
