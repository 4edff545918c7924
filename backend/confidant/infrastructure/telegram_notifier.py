"""Telegram Notifier — best-effort outbound text through the Bot API sendMessage call.

Invariants:
    - send() never raises: transport and HTTP failures are logged and dropped
    - No retries: delivery to an offline or blocked chat is not guaranteed
    - The bot token never appears in log records

Design Decisions:
    - httpx.AsyncClient injected or created per notifier: tests pass a client
      backed by httpx.MockTransport, production shares one pooled client
    - LoggingNotifier when no token is configured: local runs work without Telegram
"""

import logging

import httpx

from confidant.config import Settings
from confidant.core.repository_protocols import Notifier

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Sends plain-text messages to Telegram chats."""

    def __init__(
        self,
        bot_token: str,
        api_base: str = "https://api.telegram.org",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._url = f"{api_base.rstrip('/')}/bot{bot_token}/sendMessage"
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._owns_client = client is None

    async def send(self, chat_id: str, text: str) -> None:
        try:
            response = await self._client.post(
                self._url, json={"chat_id": chat_id, "text": text},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Telegram rejected message (HTTP {e.response.status_code})",
                extra={"error_code": "NOTIFY_REJECTED"},
            )
        except httpx.HTTPError as e:
            logger.warning(
                f"Telegram delivery failed: {type(e).__name__}",
                extra={"error_code": "NOTIFY_FAILED"},
            )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class LoggingNotifier:
    """Stand-in transport that only logs — used when no bot token is set."""

    async def send(self, chat_id: str, text: str) -> None:
        logger.info(f"Notification suppressed (no transport configured): {len(text)} chars")

    async def aclose(self) -> None:
        return None


def build_notifier(settings: Settings) -> Notifier:
    if settings.telegram_bot_token:
        return TelegramNotifier(
            settings.telegram_bot_token,
            api_base=settings.telegram_api_base,
            timeout_seconds=settings.notification_timeout_seconds,
        )
    return LoggingNotifier()
