from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass

from app.branchlink.db.models import InventoryAuditStatus, RequestStatus
from app.branchlink.repos.catalog import BranchRepository
from app.branchlink.repos.transfers import TransferRequestRepository

TOP_PRODUCTS_LIMIT = 5


@dataclass(frozen=True)
class ProductDemand:
    product_code: str
    request_count: int
    requested_quantity: int


@dataclass(frozen=True)
class DashboardStats:
    total: int
    completed: int
    pending: int
    in_transit: int
    expired: int
    rejected: int
    cancelled: int
    pending_audits: int
    top_products: list[ProductDemand]


@dataclass(frozen=True)
class BranchPerformance:
    branch_id: str
    branch_name: str
    total_received: int
    responded: int
    avg_response_minutes: float | None
    expired: int


_IN_TRANSIT = frozenset({RequestStatus.APPROVED, RequestStatus.DISTRIBUTION, RequestStatus.ASSIGNED, RequestStatus.PICKED_UP})


def dashboard_stats(db) -> DashboardStats:
    requests = TransferRequestRepository(db).list_all()
    by_status = Counter(request.status for request in requests)
    demand_count: Counter = Counter()
    demand_quantity: Counter = Counter()
    for request in requests:
        demand_count[request.product_code] += 1
        demand_quantity[request.product_code] += request.requested_quantity
    top = sorted(demand_count.items(), key=lambda item: (-item[1], item[0]))[:TOP_PRODUCTS_LIMIT]
    return DashboardStats(
        total=len(requests),
        completed=by_status[RequestStatus.DELIVERED] + by_status[RequestStatus.COMPLETED],
        pending=by_status[RequestStatus.PENDING],
        in_transit=sum(by_status[status] for status in _IN_TRANSIT),
        expired=by_status[RequestStatus.EXPIRED],
        rejected=by_status[RequestStatus.REJECTED],
        cancelled=by_status[RequestStatus.CANCELLED],
        pending_audits=sum(1 for request in requests if request.inventory_status == InventoryAuditStatus.PENDING_AUDIT),
        top_products=[
            ProductDemand(product_code=code, request_count=count, requested_quantity=demand_quantity[code])
            for code, count in top
        ],
    )


def branch_performance(db) -> list[BranchPerformance]:
    received = defaultdict(list)
    for request in TransferRequestRepository(db).list_all():
        received[request.target_branch_id].append(request)

    rows = []
    for branch in BranchRepository(db).list_all():
        requests = received.get(branch.id, [])
        response_minutes = [
            (request.responded_at - request.created_at).total_seconds() / 60
            for request in requests
            if request.responded_at is not None
        ]
        rows.append(
            BranchPerformance(
                branch_id=branch.id,
                branch_name=branch.name,
                total_received=len(requests),
                responded=len(response_minutes),
                avg_response_minutes=round(sum(response_minutes) / len(response_minutes), 1) if response_minutes else None,
                expired=sum(1 for request in requests if request.status == RequestStatus.EXPIRED),
            )
        )
    return rows
