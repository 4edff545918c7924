"""Moderation Engine — reports, strikes with threshold escalation, and appeals.

Invariants:
    - A report is processed at most once; re-processing returns it unchanged
    - A STRIKE increments strikes in the database and applies escalation in the
      same transaction: >= suspend threshold suspends, >= revoke threshold also
      revokes approval
    - Escalation only ever tightens; only an appeal loosens
    - An appeal is resolved at most once (ConflictError on the second attempt)
    - Only the session's original counselor can be reported for that session

Design Decisions:
    - strikes read back via UPDATE ... RETURNING so concurrent strikes each see
      their own post-increment count and cross thresholds exactly once
    - Audit entries staged into the same commit as the moderation change
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from confidant.core.domain_types import AdminAction, AppealOutcome, ReportAction
from confidant.core.enforce_moderation import (
    StrikePolicy, appeal_remedy, normalize_appeal_message, normalize_reason,
    require_appealable,
)
from confidant.core.errors import (
    AuthorizationError, ConflictError, ConflictReason, ErrorContext, NotFoundError,
    ValidationError,
)
from confidant.core.pagination import (
    DEFAULT_PAGE_SIZE, Page, build_page, page_window,
)
from confidant.models.appeal import Appeal
from confidant.models.counselor import Counselor
from confidant.models.report import Report
from confidant.models.session import CounselingSession
from confidant.services.audit_recorder import AuditRecorder

logger = logging.getLogger(__name__)


def _parse_report_action(action: str | ReportAction) -> ReportAction:
    try:
        return ReportAction(action)
    except ValueError:
        raise ValidationError(
            f"Invalid action: {action}. Must be one of: strike, dismiss",
            field="action",
        ) from None


def _parse_appeal_outcome(outcome: str | AppealOutcome) -> AppealOutcome:
    try:
        return AppealOutcome(outcome)
    except ValueError:
        raise ValidationError(
            f"Invalid outcome: {outcome}. Must be one of: approve, revoke_suspension",
            field="outcome",
        ) from None


class ModerationEngine:
    """Report and appeal workflows."""

    def __init__(
        self,
        db: AsyncSession,
        policy: StrikePolicy | None = None,
        audit: AuditRecorder | None = None,
    ):
        self.db = db
        self.policy = policy or StrikePolicy()
        self.audit = audit or AuditRecorder(db)

    # ─── Reports ────────────────────────────────────────────────

    async def submit_report(
        self, session_id: UUID, counselor_id: UUID, reason: str,
    ) -> Report:
        reason = normalize_reason(reason)
        session = await self.db.get(CounselingSession, session_id)
        if not session:
            raise NotFoundError("Session", str(session_id))
        if not await self.db.get(Counselor, counselor_id):
            raise NotFoundError("Counselor", str(counselor_id))
        if session.counselor_id != counselor_id:
            raise AuthorizationError(
                "Counselor did not handle this session.",
                ErrorContext(session_id=str(session_id), counselor_id=str(counselor_id)),
            )

        report = Report(session_id=session_id, counselor_id=counselor_id, reason=reason)
        self.db.add(report)
        await self.db.commit()
        logger.info(
            "Report submitted",
            extra={"report_id": report.id, "counselor_id": counselor_id},
        )
        return report

    async def get_report(self, report_id: UUID) -> Report:
        report = await self.db.get(Report, report_id, populate_existing=True)
        if not report:
            raise NotFoundError("Report", str(report_id))
        return report

    async def process_report(
        self, report_id: UUID, admin_id: str, action: str | ReportAction,
    ) -> Report:
        action = _parse_report_action(action)
        report = await self.get_report(report_id)
        if report.processed:
            return report

        result = await self.db.execute(
            update(Report)
            .where(Report.id == report_id, Report.processed.is_(False))
            .values(
                processed=True,
                processed_at=datetime.now(timezone.utc),
                processed_by=str(admin_id),
                action=action.value,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            return await self.get_report(report_id)

        details = {"action": action.value, "counselor_id": str(report.counselor_id)}
        if action is ReportAction.STRIKE:
            details["strikes"] = await self._apply_strike(report.counselor_id)
        self.audit.stage(admin_id, AdminAction.PROCESS_REPORT, str(report_id), details)
        await self.db.commit()
        logger.info(
            f"Report processed: {action.value}",
            extra={"report_id": report_id, "admin_id": admin_id},
        )
        return await self.get_report(report_id)

    async def _apply_strike(self, counselor_id: UUID) -> int:
        result = await self.db.execute(
            update(Counselor)
            .where(Counselor.id == counselor_id)
            .values(strikes=Counselor.strikes + 1)
            .returning(Counselor.strikes)
            .execution_options(synchronize_session=False)
        )
        strikes = result.scalar_one_or_none()
        if strikes is None:
            await self.db.rollback()
            raise NotFoundError("Counselor", str(counselor_id))

        escalation = self.policy.escalation_for(strikes)
        if escalation:
            await self.db.execute(
                update(Counselor)
                .where(Counselor.id == counselor_id)
                .values(**escalation)
                .execution_options(synchronize_session=False)
            )
            level = "revoked" if escalation.get("is_approved") is False else "suspended"
            logger.warning(
                f"Counselor {level} at {strikes} strikes",
                extra={"counselor_id": counselor_id},
            )
        return strikes

    async def get_pending_reports(
        self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[Report]:
        pending = Report.processed.is_(False)
        total = await self.db.scalar(
            select(func.count()).select_from(Report).where(pending)
        )
        window = page_window(page, page_size, total or 0)
        result = await self.db.execute(
            select(Report)
            .where(pending)
            .order_by(Report.timestamp.desc())
            .offset(window.offset)
            .limit(window.page_size)
        )
        return build_page(list(result.scalars().all()), window)

    async def get_reports_for_counselor(
        self, counselor_id: UUID, include_processed: bool = True,
    ) -> list[Report]:
        query = select(Report).where(Report.counselor_id == counselor_id)
        if not include_processed:
            query = query.where(Report.processed.is_(False))
        result = await self.db.execute(query.order_by(Report.timestamp.desc()))
        return list(result.scalars().all())

    # ─── Appeals ────────────────────────────────────────────────

    async def submit_appeal(self, counselor_id: UUID, message: str) -> Appeal:
        message = normalize_appeal_message(message)
        counselor = await self.db.get(Counselor, counselor_id, populate_existing=True)
        if not counselor:
            raise NotFoundError("Counselor", str(counselor_id))
        require_appealable(counselor)

        appeal = Appeal(
            counselor_id=counselor_id,
            message=message,
            strikes_at_filing=counselor.strikes,
        )
        self.db.add(appeal)
        await self.db.commit()
        logger.info(
            "Appeal submitted",
            extra={"appeal_id": appeal.id, "counselor_id": counselor_id},
        )
        return appeal

    async def get_appeal(self, appeal_id: UUID) -> Appeal:
        appeal = await self.db.get(Appeal, appeal_id, populate_existing=True)
        if not appeal:
            raise NotFoundError("Appeal", str(appeal_id))
        return appeal

    async def resolve_appeal(
        self, appeal_id: UUID, admin_id: str, outcome: str | AppealOutcome,
    ) -> Appeal:
        outcome = _parse_appeal_outcome(outcome)
        appeal = await self.get_appeal(appeal_id)
        already = ConflictError(
            "Appeal has already been resolved.",
            ConflictReason.ALREADY_PROCESSED,
            ErrorContext(counselor_id=str(appeal.counselor_id)),
        )
        if appeal.processed:
            raise already

        result = await self.db.execute(
            update(Appeal)
            .where(Appeal.id == appeal_id, Appeal.processed.is_(False))
            .values(
                processed=True,
                processed_at=datetime.now(timezone.utc),
                processed_by=str(admin_id),
                outcome=outcome.value,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise already

        await self.db.execute(
            update(Counselor)
            .where(Counselor.id == appeal.counselor_id)
            .values(**appeal_remedy(outcome))
            .execution_options(synchronize_session=False)
        )
        audit_action = (
            AdminAction.APPEAL_APPROVE if outcome is AppealOutcome.APPROVE
            else AdminAction.APPEAL_REVOKE_SUSPENSION
        )
        self.audit.stage(
            admin_id, audit_action, str(appeal.counselor_id),
            {"appeal_id": str(appeal_id)},
        )
        await self.db.commit()
        logger.info(
            f"Appeal resolved: {outcome.value}",
            extra={"appeal_id": appeal_id, "counselor_id": appeal.counselor_id},
        )
        return await self.get_appeal(appeal_id)

    async def get_pending_appeals(
        self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[Appeal]:
        pending = Appeal.processed.is_(False)
        total = await self.db.scalar(
            select(func.count()).select_from(Appeal).where(pending)
        )
        window = page_window(page, page_size, total or 0)
        result = await self.db.execute(
            select(Appeal)
            .where(pending)
            .order_by(Appeal.timestamp.desc())
            .offset(window.offset)
            .limit(window.page_size)
        )
        return build_page(list(result.scalars().all()), window)
