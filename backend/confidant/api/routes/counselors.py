"""Counselor Routes — self-registration, availability, stats and admin approval.

Invariants:
    - Listing, approval and removal are admin-only (X-Admin-Id)
    - Availability set by an admin is audited; set by the counselor it is not
"""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.api.dependencies import get_notifier, require_admin
from confidant.api.notify import schedule_notification
from confidant.core.domain_types import AdminAction, SenderType
from confidant.core.repository_protocols import Notifier
from confidant.infrastructure.database import get_db
from confidant.schemas.common import page_fields
from confidant.schemas.directory import (
    AvailabilityChangeResponse, AvailabilityUpdate, CounselorPage, CounselorRegister,
    CounselorResponse, CounselorStatsResponse,
)
from confidant.schemas.moderation import ReportResponse
from confidant.schemas.session import SessionResponse
from confidant.services.counselor_registry import CounselorRegistry
from confidant.services.directory import Directory
from confidant.services.moderation_engine import ModerationEngine
from confidant.services.notification_dispatch import COUNSELOR_APPROVED_TEXT
from confidant.services.session_broker import SessionBroker

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/counselors", tags=["counselors"])


@router.post(
    "", response_model=CounselorResponse, status_code=status.HTTP_201_CREATED,
)
async def register_counselor(
    body: CounselorRegister, db: AsyncSession = Depends(get_db),
):
    profile = body.model_dump(exclude={"external_chat_handle"})
    return await Directory(db).register_counselor(body.external_chat_handle, **profile)


@router.get("", response_model=CounselorPage)
async def list_counselors(
    page: int = Query(1, ge=1),
    page_size: int = Query(5, ge=1, le=100),
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await CounselorRegistry(db).list_counselors(page, page_size)
    return CounselorPage(counselors=result.items, **page_fields(result))


@router.get("/{counselor_id}", response_model=CounselorResponse)
async def get_counselor(counselor_id: UUID, db: AsyncSession = Depends(get_db)):
    return await CounselorRegistry(db).get_counselor(counselor_id)


@router.get("/{counselor_id}/stats", response_model=CounselorStatsResponse)
async def get_counselor_stats(
    counselor_id: UUID, db: AsyncSession = Depends(get_db),
):
    return await CounselorRegistry(db).get_counselor_stats(counselor_id)


@router.get("/{counselor_id}/access")
async def get_access(counselor_id: UUID, db: AsyncSession = Depends(get_db)):
    return {"has_access": await CounselorRegistry(db).has_access(counselor_id)}


@router.put("/{counselor_id}/availability", response_model=CounselorResponse)
async def set_availability(
    counselor_id: UUID,
    body: AvailabilityUpdate,
    x_admin_id: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
):
    registry = CounselorRegistry(db)
    if x_admin_id is None:
        return await registry.set_availability(counselor_id, body.status)
    admin_id = await require_admin(x_admin_id)
    counselor = await registry.set_availability(counselor_id, body.status, admin_id)
    await registry.audit.record_admin_action(
        admin_id, AdminAction.SET_AVAILABILITY, str(counselor_id),
        {"status": counselor.availability},
    )
    return counselor


@router.get(
    "/{counselor_id}/availability-history",
    response_model=list[AvailabilityChangeResponse],
)
async def get_availability_history(
    counselor_id: UUID,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    return await CounselorRegistry(db).get_availability_history(counselor_id, limit)


@router.get("/{counselor_id}/active-session", response_model=SessionResponse | None)
async def get_active_session(
    counselor_id: UUID, db: AsyncSession = Depends(get_db),
):
    await CounselorRegistry(db).get_counselor(counselor_id)
    return await SessionBroker(db).get_active_session_for_counselor(counselor_id)


@router.get("/{counselor_id}/reports", response_model=list[ReportResponse])
async def get_reports(
    counselor_id: UUID,
    include_processed: bool = Query(True),
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ModerationEngine(db).get_reports_for_counselor(
        counselor_id, include_processed,
    )


@router.post("/{counselor_id}/approve", response_model=CounselorResponse)
async def approve_counselor(
    counselor_id: UUID,
    background_tasks: BackgroundTasks,
    admin_id: str = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    counselor = await CounselorRegistry(db).approve_counselor(admin_id, counselor_id)
    await schedule_notification(
        background_tasks, notifier, Directory(db),
        counselor.id, SenderType.COUNSELOR, COUNSELOR_APPROVED_TEXT,
    )
    return counselor


@router.post("/{counselor_id}/remove", response_model=CounselorResponse)
async def remove_counselor(
    counselor_id: UUID,
    admin_id: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await CounselorRegistry(db).remove_counselor(admin_id, counselor_id)
