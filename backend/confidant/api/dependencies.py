"""API Dependencies — admin gate, strike policy and notifier lookups for routes.

Invariants:
    - Admin routes require X-Admin-Id to be one of settings.admin_chat_ids
    - The notifier lives on app.state (built once in lifespan)
"""

from fastapi import Header, Request

from confidant.config import get_settings
from confidant.core.enforce_moderation import StrikePolicy
from confidant.core.errors import AuthorizationError
from confidant.core.repository_protocols import Notifier
from confidant.infrastructure.telegram_notifier import LoggingNotifier


async def require_admin(x_admin_id: str | None = Header(None)) -> str:
    if not x_admin_id or x_admin_id not in get_settings().admin_chat_ids:
        raise AuthorizationError("Admin access required.")
    return x_admin_id


def get_strike_policy() -> StrikePolicy:
    settings = get_settings()
    return StrikePolicy(
        suspend_threshold=settings.report_suspend_threshold,
        revoke_threshold=settings.report_revoke_threshold,
    )


def get_notifier(request: Request) -> Notifier:
    notifier = getattr(request.app.state, "notifier", None)
    return notifier or LoggingNotifier()
