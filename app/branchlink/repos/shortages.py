from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import func, select, update

from app.branchlink.db.models import ShortageReport, ShortageStatus


@dataclass(frozen=True)
class ShortageQueryFilters:
    requester_branch_id: str | None = None
    product_code: str | None = None
    status: str | None = None
    include_archived: bool = True


class ShortageRepository:
    def __init__(self, db):
        self.db = db

    def get(self, report_id: uuid.UUID) -> ShortageReport | None:
        return (
            self.db.execute(
                select(ShortageReport)
                .where(ShortageReport.id == report_id)
                .execution_options(populate_existing=True)
            )
            .scalars()
            .first()
        )

    def add(self, report: ShortageReport) -> ShortageReport:
        self.db.add(report)
        self.db.flush()
        return report

    def list_reports(self, filters: ShortageQueryFilters) -> list[ShortageReport]:
        query = select(ShortageReport)
        if filters.requester_branch_id:
            query = query.where(ShortageReport.requester_branch_id == filters.requester_branch_id)
        if filters.product_code:
            query = query.where(ShortageReport.product_code == filters.product_code)
        if filters.status:
            query = query.where(ShortageReport.status == filters.status)
        if not filters.include_archived:
            query = query.where(ShortageReport.archived_by_requester.is_(False))
        query = query.order_by(ShortageReport.created_at.desc(), ShortageReport.id.asc())
        return self.db.execute(query.execution_options(populate_existing=True)).scalars().all()

    def guarded_update(self, report_id: uuid.UUID, *, expected_status: str | None, values: dict) -> bool:
        query = update(ShortageReport).where(ShortageReport.id == report_id)
        if expected_status is not None:
            query = query.where(ShortageReport.status == expected_status)
        result = self.db.execute(query.values(**values).execution_options(synchronize_session=False))
        return result.rowcount == 1

    def count_open(self) -> int:
        return self.db.execute(
            select(func.count()).select_from(ShortageReport).where(ShortageReport.status == ShortageStatus.OPEN)
        ).scalar_one()
