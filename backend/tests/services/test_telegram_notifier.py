"""TelegramNotifier — request shape and failure handling via httpx.MockTransport."""

import json

import httpx

from confidant.config import Settings
from confidant.infrastructure.telegram_notifier import (
    LoggingNotifier, TelegramNotifier, build_notifier,
)
from confidant.services.notification_dispatch import deliver


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_send_posts_chat_id_and_text():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"ok": True})

    notifier = TelegramNotifier("TOKEN", client=_client(handler))
    await notifier.send("12345", "hello")

    assert seen == [("/botTOKEN/sendMessage", {"chat_id": "12345", "text": "hello"})]


async def test_send_swallows_http_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"ok": False})

    notifier = TelegramNotifier("TOKEN", client=_client(handler))
    await notifier.send("12345", "hello")


async def test_send_swallows_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    notifier = TelegramNotifier("TOKEN", client=_client(handler))
    await notifier.send("12345", "hello")


async def test_deliver_survives_failing_notifier():
    class Broken:
        async def send(self, chat_id, text):
            raise RuntimeError("boom")

    await deliver(Broken(), "12345", "hello")


async def test_deliver_skips_missing_handle():
    sent = []

    class Recording:
        async def send(self, chat_id, text):
            sent.append(chat_id)

    await deliver(Recording(), None, "hello")
    assert sent == []


def test_build_notifier_without_token_logs_only():
    assert isinstance(build_notifier(Settings(telegram_bot_token=None)), LoggingNotifier)
    assert isinstance(build_notifier(Settings(telegram_bot_token="T")), TelegramNotifier)
