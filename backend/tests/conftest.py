"""Root conftest — shared test configuration."""

import os

os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("ADMIN_CHAT_IDS", "900,901")
os.environ.pop("TELEGRAM_BOT_TOKEN", None)
