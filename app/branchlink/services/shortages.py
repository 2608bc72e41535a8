from __future__ import annotations

import logging
import uuid

from app.branchlink.core.clock import Clock, utcnow
from app.branchlink.core.context import RequestContext
from app.branchlink.core.error_catalog import not_found, state_conflict, validation_error
from app.branchlink.core.logging import log_event
from app.branchlink.core.metrics import metrics
from app.branchlink.db.models import ShortageReport, ShortageStatus
from app.branchlink.repos.shortages import ShortageQueryFilters, ShortageRepository
from app.branchlink.services.audit import AuditEventPayload, AuditService

logger = logging.getLogger(__name__)


def shortage_snapshot(report: ShortageReport) -> dict:
    return {
        "id": str(report.id),
        "requester_branch_id": report.requester_branch_id,
        "product_code": report.product_code,
        "requested_quantity": report.requested_quantity,
        "provided_quantity": report.provided_quantity,
        "status": report.status,
        "archived_by_requester": report.archived_by_requester,
    }


class ShortageTracker:
    """Standing backlog of items no branch could supply.

    Resolving a report never opens a transfer request; the requester asks again.
    """

    def __init__(self, db, *, clock: Clock = utcnow, notifier=None, context: RequestContext | None = None):
        self.db = db
        self.clock = clock
        self.notifier = notifier
        self.context = context
        self.repo = ShortageRepository(db)

    def list(self, filters: ShortageQueryFilters) -> list[ShortageReport]:
        return self.repo.list_reports(filters)

    def get(self, report_id: uuid.UUID) -> ShortageReport:
        report = self.repo.get(report_id)
        if report is None:
            raise not_found("shortage report", str(report_id))
        return report

    def report(self, branch_id: str, product_code: str, quantity: int) -> ShortageReport:
        if quantity is None or quantity <= 0:
            raise validation_error("quantity must be greater than zero", quantity=quantity)
        report = ShortageReport(
            id=uuid.uuid4(),
            requester_branch_id=branch_id,
            product_code=product_code,
            requested_quantity=quantity,
            status=ShortageStatus.OPEN,
            archived_by_requester=False,
            created_at=self.clock(),
        )
        self.repo.add(report)
        self.db.commit()
        metrics.increment_shortage_opened()
        log_event(logger, "shortage_opened", report_id=str(report.id), branch_id=branch_id, product_code=product_code)
        self._audit("shortage.report", report, before=None)
        if self.notifier is not None:
            self.notifier.warning(f"No branch can supply {quantity} x {product_code}; shortage recorded")
        return report

    def resolve(self, report_id: uuid.UUID, provided_quantity: int) -> ShortageReport:
        if provided_quantity is None or provided_quantity <= 0:
            raise validation_error("provided_quantity must be greater than zero", provided_quantity=provided_quantity)
        report = self.get(report_id)
        if report.status != ShortageStatus.OPEN:
            raise state_conflict("shortage report is already resolved", report_id=str(report.id), status=report.status)
        before = shortage_snapshot(report)
        updated = self.repo.guarded_update(
            report.id,
            expected_status=ShortageStatus.OPEN,
            values={
                "status": ShortageStatus.RESOLVED,
                "provided_quantity": provided_quantity,
                "resolved_at": self.clock(),
            },
        )
        if not updated:
            self.db.rollback()
            raise state_conflict("shortage report changed concurrently", report_id=str(report.id))
        self.db.commit()
        report = self.get(report.id)
        log_event(logger, "shortage_resolved", report_id=str(report.id), provided_quantity=provided_quantity)
        self._audit("shortage.resolve", report, before=before)
        if self.notifier is not None:
            self.notifier.success(
                f"{report.product_code} is available again for {report.requester_branch_id}; please re-request"
            )
        return report

    def archive(self, report_id: uuid.UUID) -> ShortageReport:
        report = self.get(report_id)
        before = shortage_snapshot(report)
        self.repo.guarded_update(report.id, expected_status=None, values={"archived_by_requester": True})
        self.db.commit()
        report = self.get(report.id)
        self._audit("shortage.archive", report, before=before)
        return report

    def _audit(self, action: str, report: ShortageReport, *, before: dict | None) -> None:
        AuditService(self.db, clock=self.clock).record_event(
            AuditEventPayload(
                trace_id=self.context.trace_id if self.context else None,
                actor=self.context.actor if self.context else None,
                action=action,
                entity_type="shortage_report",
                entity_id=str(report.id),
                before=before,
                after=shortage_snapshot(report),
            )
        )
