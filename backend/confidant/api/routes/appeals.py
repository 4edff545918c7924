"""Appeal Routes — suspended counselors appeal, admins resolve."""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.api.dependencies import get_notifier, require_admin
from confidant.api.notify import schedule_notification
from confidant.core.domain_types import SenderType
from confidant.core.repository_protocols import Notifier
from confidant.infrastructure.database import get_db
from confidant.schemas.common import page_fields
from confidant.schemas.moderation import (
    AppealCreate, AppealPage, AppealResolve, AppealResponse,
)
from confidant.services.directory import Directory
from confidant.services.moderation_engine import ModerationEngine
from confidant.services.notification_dispatch import APPEAL_RESOLVED_TEXT

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/appeals", tags=["appeals"])


@router.post(
    "", response_model=AppealResponse, status_code=status.HTTP_201_CREATED,
)
async def submit_appeal(body: AppealCreate, db: AsyncSession = Depends(get_db)):
    return await ModerationEngine(db).submit_appeal(body.counselor_id, body.message)


@router.get("/pending", response_model=AppealPage)
async def get_pending_appeals(
    page: int = Query(1, ge=1),
    page_size: int = Query(5, ge=1, le=100),
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await ModerationEngine(db).get_pending_appeals(page, page_size)
    return AppealPage(appeals=result.items, **page_fields(result))


@router.post("/{appeal_id}/resolve", response_model=AppealResponse)
async def resolve_appeal(
    appeal_id: UUID,
    body: AppealResolve,
    background_tasks: BackgroundTasks,
    admin_id: str = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    appeal = await ModerationEngine(db).resolve_appeal(appeal_id, admin_id, body.outcome)
    await schedule_notification(
        background_tasks, notifier, Directory(db),
        appeal.counselor_id, SenderType.COUNSELOR,
        APPEAL_RESOLVED_TEXT.format(outcome=appeal.outcome.replace("_", " ")),
    )
    return appeal
