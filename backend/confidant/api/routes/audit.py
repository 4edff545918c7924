"""Audit Routes — admin-only read of the audit log and recording of external actions."""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.api.dependencies import require_admin
from confidant.infrastructure.database import get_db
from confidant.schemas.common import page_fields
from confidant.schemas.moderation import AuditEntryResponse, AuditPage, AuditRecord
from confidant.services.audit_recorder import AuditRecorder

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/audit", tags=["audit"])


@router.get("", response_model=AuditPage)
async def get_recent_admin_actions(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await AuditRecorder(db).get_recent_admin_actions(page, page_size)
    return AuditPage(entries=result.items, **page_fields(result))


@router.post(
    "", response_model=AuditEntryResponse, status_code=status.HTTP_201_CREATED,
)
async def record_admin_action(
    body: AuditRecord,
    admin_id: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await AuditRecorder(db).record_admin_action(
        admin_id, body.action, body.target_id, body.details,
    )
