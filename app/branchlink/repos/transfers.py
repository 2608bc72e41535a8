from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, or_, select, update

from app.branchlink.db.models import InventoryAuditStatus, RequestStatus, TransferRequest


@dataclass(frozen=True)
class TransferQueryFilters:
    requester_branch_id: str | None = None
    target_branch_id: str | None = None
    branch_id: str | None = None
    product_code: str | None = None
    statuses: tuple[str, ...] = ()
    inventory_status: str | None = None
    driver_id: str | None = None
    include_archived: bool = True


class TransferRequestRepository:
    def __init__(self, db):
        self.db = db

    def get(self, request_id: uuid.UUID) -> TransferRequest | None:
        return (
            self.db.execute(
                select(TransferRequest)
                .where(TransferRequest.id == request_id)
                .execution_options(populate_existing=True)
            )
            .scalars()
            .first()
        )

    def add(self, request: TransferRequest) -> TransferRequest:
        self.db.add(request)
        self.db.flush()
        return request

    def list_requests(self, filters: TransferQueryFilters, *, limit: int | None = None) -> list[TransferRequest]:
        query = select(TransferRequest)
        if filters.requester_branch_id:
            query = query.where(TransferRequest.requester_branch_id == filters.requester_branch_id)
        if filters.target_branch_id:
            query = query.where(TransferRequest.target_branch_id == filters.target_branch_id)
        if filters.branch_id:
            query = query.where(
                or_(
                    TransferRequest.requester_branch_id == filters.branch_id,
                    TransferRequest.target_branch_id == filters.branch_id,
                )
            )
        if filters.product_code:
            query = query.where(TransferRequest.product_code == filters.product_code)
        if filters.statuses:
            query = query.where(TransferRequest.status.in_(filters.statuses))
        if filters.inventory_status:
            query = query.where(TransferRequest.inventory_status == filters.inventory_status)
        if filters.driver_id:
            query = query.where(TransferRequest.driver_id == filters.driver_id)
        if not filters.include_archived:
            query = query.where(TransferRequest.archived_by_requester.is_(False))
        query = query.order_by(TransferRequest.created_at.desc(), TransferRequest.id.asc())
        if limit is not None:
            query = query.limit(limit)
        return self.db.execute(query.execution_options(populate_existing=True)).scalars().all()

    def active_target_ids(self, requester_branch_id: str, product_code: str) -> set[str]:
        rows = self.db.execute(
            select(TransferRequest.target_branch_id).where(
                TransferRequest.requester_branch_id == requester_branch_id,
                TransferRequest.product_code == product_code,
                TransferRequest.status.in_(tuple(RequestStatus.ACTIVE)),
            )
        ).scalars()
        return set(rows)

    def count_active_for_branch(self, branch_id: str) -> int:
        return self.db.execute(
            select(func.count())
            .select_from(TransferRequest)
            .where(
                or_(
                    TransferRequest.requester_branch_id == branch_id,
                    TransferRequest.target_branch_id == branch_id,
                ),
                TransferRequest.status.in_(tuple(RequestStatus.ACTIVE | {RequestStatus.DELIVERED})),
            )
        ).scalar_one()

    def count_by_status(self) -> dict[str, int]:
        rows = self.db.execute(
            select(TransferRequest.status, func.count()).group_by(TransferRequest.status)
        ).all()
        return {status: int(count) for status, count in rows}

    def overdue_pending_ids(self, now: datetime) -> list[uuid.UUID]:
        return (
            self.db.execute(
                select(TransferRequest.id)
                .where(TransferRequest.status == RequestStatus.PENDING, TransferRequest.expires_at <= now)
                .order_by(TransferRequest.expires_at.asc())
            )
            .scalars()
            .all()
        )

    def guarded_update(
        self,
        request_id: uuid.UUID,
        *,
        expected_status: str,
        expected_version: int,
        values: dict,
        expected_inventory_status: str | None = None,
    ) -> bool:
        """Compare-and-set write; False means another writer got there first."""
        query = update(TransferRequest).where(
            TransferRequest.id == request_id,
            TransferRequest.status == expected_status,
            TransferRequest.version == expected_version,
        )
        if expected_inventory_status is not None:
            query = query.where(TransferRequest.inventory_status == expected_inventory_status)
        result = self.db.execute(
            query.values(version=TransferRequest.version + 1, **values).execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def guarded_delete(self, request_id: uuid.UUID, *, allowed_statuses: Iterable[str], expected_version: int) -> bool:
        result = self.db.execute(
            delete(TransferRequest)
            .where(
                TransferRequest.id == request_id,
                TransferRequest.status.in_(tuple(allowed_statuses)),
                TransferRequest.version == expected_version,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def pending_audits(self) -> list[TransferRequest]:
        return self.list_requests(TransferQueryFilters(inventory_status=InventoryAuditStatus.PENDING_AUDIT))

    def resolved_audits(self) -> list[TransferRequest]:
        query = (
            select(TransferRequest)
            .where(TransferRequest.inventory_status.in_(tuple(InventoryAuditStatus.RESOLVED)))
            .order_by(TransferRequest.inventory_resolved_at.desc())
        )
        return self.db.execute(query.execution_options(populate_existing=True)).scalars().all()

    def list_all(self) -> list[TransferRequest]:
        return self.list_requests(TransferQueryFilters())
