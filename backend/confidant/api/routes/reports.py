"""Report Routes — users file reports, admins review and process them."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.api.dependencies import get_strike_policy, require_admin
from confidant.core.enforce_moderation import StrikePolicy
from confidant.infrastructure.database import get_db
from confidant.schemas.common import page_fields
from confidant.schemas.moderation import (
    ReportCreate, ReportPage, ReportProcess, ReportResponse,
)
from confidant.services.moderation_engine import ModerationEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.post(
    "", response_model=ReportResponse, status_code=status.HTTP_201_CREATED,
)
async def submit_report(body: ReportCreate, db: AsyncSession = Depends(get_db)):
    return await ModerationEngine(db).submit_report(
        body.session_id, body.counselor_id, body.reason,
    )


@router.get("/pending", response_model=ReportPage)
async def get_pending_reports(
    page: int = Query(1, ge=1),
    page_size: int = Query(5, ge=1, le=100),
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await ModerationEngine(db).get_pending_reports(page, page_size)
    return ReportPage(reports=result.items, **page_fields(result))


@router.post("/{report_id}/process", response_model=ReportResponse)
async def process_report(
    report_id: UUID,
    body: ReportProcess,
    admin_id: str = Depends(require_admin),
    policy: StrikePolicy = Depends(get_strike_policy),
    db: AsyncSession = Depends(get_db),
):
    """Idempotent: an already processed report comes back unchanged."""
    return await ModerationEngine(db, policy).process_report(
        report_id, admin_id, body.action,
    )
