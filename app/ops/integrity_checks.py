from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, select

from app.branchlink.core.metrics import metrics
from app.branchlink.db.models import Branch, InventoryAuditStatus, RequestStatus, StockEntry, TransferRequest


SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_WARN = "WARN"

_APPROVED_PATH = (
    RequestStatus.DISTRIBUTION,
    RequestStatus.ASSIGNED,
    RequestStatus.PICKED_UP,
    RequestStatus.DELIVERED,
    RequestStatus.COMPLETED,
)


@dataclass(frozen=True)
class IntegrityFinding:
    check_id: str
    severity: str
    branch_id: str | None
    message: str
    entity: str
    entity_id: str | None
    details: dict


def resolve_branches(branch: str) -> list[str] | None:
    """None means every branch."""
    if branch.lower() == "all":
        return None
    return [branch]


def _requests(db, branch_ids: list[str] | None) -> list[TransferRequest]:
    query = select(TransferRequest)
    if branch_ids is not None:
        query = query.where(
            or_(
                TransferRequest.requester_branch_id.in_(branch_ids),
                TransferRequest.target_branch_id.in_(branch_ids),
            )
        )
    return db.execute(query.order_by(TransferRequest.created_at.asc())).scalars().all()


def _finding(check_id: str, severity: str, request: TransferRequest, message: str, **details) -> IntegrityFinding:
    return IntegrityFinding(
        check_id=check_id,
        severity=severity,
        branch_id=request.target_branch_id,
        message=message,
        entity="transfer_requests",
        entity_id=str(request.id),
        details={"status": request.status, **details},
    )


def _report(check_id: str, findings: list[IntegrityFinding]) -> list[IntegrityFinding]:
    if findings:
        metrics.increment_invariant_violation(check_id, len(findings))
    return findings


def check_pending_past_deadline(requests: list[TransferRequest], now: datetime) -> list[IntegrityFinding]:
    findings = [
        _finding(
            "pending_past_deadline",
            SEVERITY_WARN,
            request,
            "PENDING request is past its deadline and still holds its reservation.",
            expires_at=_format_datetime(request.expires_at),
        )
        for request in requests
        if request.status == RequestStatus.PENDING and request.expires_at <= now
    ]
    return _report("pending_past_deadline", findings)


def check_issued_quantity(requests: list[TransferRequest]) -> list[IntegrityFinding]:
    findings = [
        _finding(
            "issued_exceeds_requested",
            SEVERITY_CRITICAL,
            request,
            "Issued quantity is above the requested quantity.",
            requested_quantity=request.requested_quantity,
            issued_quantity=request.issued_quantity,
        )
        for request in requests
        if request.issued_quantity is not None and request.issued_quantity > request.requested_quantity
    ]
    return _report("issued_exceeds_requested", findings)


def check_audit_flags(requests: list[TransferRequest]) -> list[IntegrityFinding]:
    findings = []
    for request in requests:
        short = request.issued_quantity is not None and request.issued_quantity < request.requested_quantity
        if request.inventory_status is not None and not short:
            findings.append(
                _finding(
                    "audit_without_shortfall",
                    SEVERITY_CRITICAL,
                    request,
                    "Inventory audit recorded on a request issued in full.",
                    inventory_status=request.inventory_status,
                )
            )
        elif short and request.inventory_status is None:
            findings.append(
                _finding(
                    "shortfall_without_audit",
                    SEVERITY_CRITICAL,
                    request,
                    "Partially issued request was never sent for inventory audit.",
                    requested_quantity=request.requested_quantity,
                    issued_quantity=request.issued_quantity,
                )
            )
        elif request.inventory_status in InventoryAuditStatus.RESOLVED and request.inventory_resolved_at is None:
            findings.append(
                _finding(
                    "audit_resolution_undated",
                    SEVERITY_WARN,
                    request,
                    "Closed inventory audit has no resolution time.",
                    inventory_status=request.inventory_status,
                )
            )
    for finding in findings:
        metrics.increment_invariant_violation(finding.check_id)
    return findings


def check_donor_attempted(requests: list[TransferRequest]) -> list[IntegrityFinding]:
    findings = [
        _finding(
            "donor_not_attempted",
            SEVERITY_CRITICAL,
            request,
            "Current donor is missing from the attempted branch list.",
            attempted_branch_ids=list(request.attempted_branch_ids or []),
        )
        for request in requests
        if request.target_branch_id not in (request.attempted_branch_ids or [])
    ]
    return _report("donor_not_attempted", findings)


def _fsm_problems(request: TransferRequest) -> list[str]:
    status = request.status
    problems = []
    approved = status in _APPROVED_PATH
    if approved and (not request.issue_number or request.issued_quantity is None or request.responded_at is None):
        problems.append("approval fields missing")
    if not approved and (request.issue_number or request.issued_quantity is not None):
        problems.append("approval fields set on a request that was never approved")
    if status == RequestStatus.REJECTED and (not request.rejection_reason or request.responded_at is None):
        problems.append("rejection fields missing")
    if status != RequestStatus.REJECTED and request.rejection_reason:
        problems.append("rejection reason set on a request that was not rejected")
    if status in _APPROVED_PATH[1:] and not request.driver_id:
        problems.append("driver missing")
    if status in _APPROVED_PATH[2:] and request.picked_up_at is None:
        problems.append("pickup time missing")
    if status in _APPROVED_PATH[3:] and request.delivered_at is None:
        problems.append("delivery time missing")
    if status == RequestStatus.COMPLETED and (not request.receipt_number or request.completed_at is None):
        problems.append("receipt fields missing")
    if status != RequestStatus.COMPLETED and request.receipt_number:
        problems.append("receipt number set before completion")
    if request.archived_by_requester and status not in RequestStatus.TERMINAL:
        problems.append("archived while still open")
    return problems


def check_transfer_fsm(requests: list[TransferRequest]) -> list[IntegrityFinding]:
    findings = []
    for request in requests:
        problems = _fsm_problems(request)
        if problems:
            findings.append(
                _finding(
                    "transfer_fsm",
                    SEVERITY_CRITICAL,
                    request,
                    "Request status and workflow fields are inconsistent.",
                    problems=problems,
                )
            )
    return _report("transfer_fsm", findings)


def check_stock_entries(db, branch_ids: list[str] | None) -> list[IntegrityFinding]:
    query = select(StockEntry)
    if branch_ids is not None:
        query = query.where(StockEntry.branch_id.in_(branch_ids))
    known = set(db.execute(select(Branch.id)).scalars())
    findings = []
    for entry in db.execute(query).scalars():
        if entry.quantity < 0:
            findings.append(
                IntegrityFinding(
                    check_id="negative_stock",
                    severity=SEVERITY_CRITICAL,
                    branch_id=entry.branch_id,
                    message="Stock entry is below zero.",
                    entity="stock_entries",
                    entity_id=f"{entry.branch_id}:{entry.product_code}",
                    details={"quantity": entry.quantity},
                )
            )
        if entry.branch_id not in known:
            findings.append(
                IntegrityFinding(
                    check_id="orphan_stock",
                    severity=SEVERITY_WARN,
                    branch_id=entry.branch_id,
                    message="Stock entry belongs to an unknown branch.",
                    entity="stock_entries",
                    entity_id=f"{entry.branch_id}:{entry.product_code}",
                    details={"quantity": entry.quantity},
                )
            )
    for finding in findings:
        metrics.increment_invariant_violation(finding.check_id)
    return findings


def _format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def run_integrity_checks(db, branch_ids: list[str] | None, *, now: datetime) -> list[IntegrityFinding]:
    requests = _requests(db, branch_ids)
    findings: list[IntegrityFinding] = []
    findings.extend(check_pending_past_deadline(requests, now))
    findings.extend(check_issued_quantity(requests))
    findings.extend(check_audit_flags(requests))
    findings.extend(check_donor_attempted(requests))
    findings.extend(check_transfer_fsm(requests))
    findings.extend(check_stock_entries(db, branch_ids))
    return findings
