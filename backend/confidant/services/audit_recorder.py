"""Audit Recorder — append-only log of administrative actions.

Invariants:
    - Entries are inserted, never updated or deleted
    - action label is required (non-empty after strip)
    - stage() joins the caller's transaction; record_admin_action() commits on its own
    - Listings are newest-first

Design Decisions:
    - stage() lets registry/moderation write the audit row in the same commit as
      the state change it describes (no orphan entries, no missing entries)
"""

import logging
from enum import Enum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.core.errors import ValidationError
from confidant.core.pagination import Page, build_page, page_window
from confidant.models.audit_entry import AuditEntry

logger = logging.getLogger(__name__)


class AuditRecorder:
    """Writes and pages AuditEntry rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def stage(
        self,
        admin_id: str,
        action: str | Enum,
        target_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditEntry:
        """Add an entry to the current transaction without committing."""
        label = action.value if isinstance(action, Enum) else (action or "").strip()
        if not label:
            raise ValidationError("Audit action label is required.", field="action")
        entry = AuditEntry(
            admin_id=str(admin_id),
            action=label,
            target_id=str(target_id) if target_id is not None else None,
            details=details,
        )
        self.db.add(entry)
        return entry

    async def record_admin_action(
        self,
        admin_id: str,
        action: str | Enum,
        target_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditEntry:
        entry = self.stage(admin_id, action, target_id, details)
        await self.db.commit()
        logger.info(
            f"Admin action recorded: {entry.action}",
            extra={"admin_id": entry.admin_id, "action": entry.action},
        )
        return entry

    async def get_recent_admin_actions(
        self, page: int = 1, page_size: int = 25,
    ) -> Page[AuditEntry]:
        total = await self.db.scalar(select(func.count()).select_from(AuditEntry))
        window = page_window(page, page_size, total or 0)
        result = await self.db.execute(
            select(AuditEntry)
            .order_by(AuditEntry.timestamp.desc())
            .offset(window.offset)
            .limit(window.page_size)
        )
        return build_page(list(result.scalars().all()), window)
