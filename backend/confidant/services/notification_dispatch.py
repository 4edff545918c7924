"""Notification Dispatch — best-effort outbound delivery through a Notifier.

Invariants:
    - Delivery failures are logged and never propagate to the caller
    - Chat handles are looked up while the request's DB session is still open;
      background tasks only carry (handle, text)

Design Decisions:
    - Scheduled via FastAPI BackgroundTasks after the response: a slow chat API
      never delays routing
"""

import logging

from confidant.core.domain_types import SenderType
from confidant.core.repository_protocols import Notifier

logger = logging.getLogger(__name__)

SESSION_STARTED_USER_TEXT = (
    "You are now connected with a counselor. Type your message to begin."
)
SESSION_STARTED_COUNSELOR_TEXT = (
    "A new anonymous user has been connected to you. Please greet them."
)
SESSION_ENDED_TEXT = "This session has ended. Thank you."
SESSION_TRANSFERRED_USER_TEXT = (
    "Your session has been transferred to another counselor."
)
SESSION_TRANSFERRED_COUNSELOR_TEXT = (
    "A session has been transferred to you. Previous messages are in the history."
)
COUNSELOR_APPROVED_TEXT = "Your counselor registration has been approved."
APPEAL_RESOLVED_TEXT = "Your appeal has been reviewed: {outcome}."


def label_for(sender_type: SenderType) -> str:
    """Prefix shown to the recipient; the counterpart is never identified."""
    return "Counselor" if sender_type is SenderType.COUNSELOR else "User"


def format_relayed(sender_type: SenderType, content: str) -> str:
    return f"{label_for(sender_type)}: {content}"


async def deliver(notifier: Notifier, chat_id: str | None, text: str) -> None:
    if not chat_id:
        logger.warning("Skipping notification without a chat handle")
        return
    try:
        await notifier.send(chat_id, text)
    except Exception as e:
        logger.warning(f"Notification delivery failed: {e}")
