"""Transfer request lifecycle.

Every transition follows the same shape: load the row, settle a due expiry,
check the predecessor status, then write the new status with a
compare-and-set on (status, version). The stock delta that belongs to the
transition is applied in the same transaction, so a lost race leaves both the
request and the ledger untouched.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta

from app.branchlink.core.clock import Clock, utcnow
from app.branchlink.core.config import settings
from app.branchlink.core.context import RequestContext
from app.branchlink.core.error_catalog import AppError, not_found, state_conflict, validation_error
from app.branchlink.core.logging import log_event
from app.branchlink.core.metrics import metrics
from app.branchlink.db.models import (
    InventoryAuditStatus,
    RequestStatus,
    TransferRequest,
    UserRole,
)
from app.branchlink.repos.catalog import BranchRepository, ProductRepository, UserRepository
from app.branchlink.repos.transfers import TransferRequestRepository
from app.branchlink.services.audit import AuditEventPayload, AuditService
from app.branchlink.services.branch_resolver import BranchResolver, DonorCandidate
from app.branchlink.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockDelta:
    branch_id: str
    product_code: str
    delta: int


@dataclass
class TransitionResult:
    request: TransferRequest
    from_status: str | None
    to_status: str
    deltas: list[StockDelta] = field(default_factory=list)


def request_snapshot(request: TransferRequest) -> dict:
    return {
        "id": str(request.id),
        "status": request.status,
        "requester_branch_id": request.requester_branch_id,
        "target_branch_id": request.target_branch_id,
        "product_code": request.product_code,
        "requested_quantity": request.requested_quantity,
        "issued_quantity": request.issued_quantity,
        "inventory_status": request.inventory_status,
        "driver_id": request.driver_id,
        "version": request.version,
    }


def _require_text(value: str | None, field_name: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise validation_error(f"{field_name} is required", field=field_name)
    return cleaned


def _require_positive(value: int, field_name: str) -> None:
    if value is None or value <= 0:
        raise validation_error(f"{field_name} must be greater than zero", **{field_name: value})


class TransferRequestStateMachine:
    def __init__(
        self,
        db,
        *,
        clock: Clock = utcnow,
        notifier=None,
        context: RequestContext | None = None,
    ):
        self.db = db
        self.clock = clock
        self.notifier = notifier
        self.context = context
        self.requests = TransferRequestRepository(db)
        self.ledger = StockLedger(db, clock)
        self.resolver = BranchResolver(db)

    # reads

    def get(self, request_id: uuid.UUID) -> TransferRequest:
        request = self._load(request_id)
        return self._settle_expiry(request, trigger="access")

    def _load(self, request_id: uuid.UUID) -> TransferRequest:
        request = self.requests.get(request_id)
        if request is None:
            raise not_found("transfer request", str(request_id))
        return request

    def _settle_expiry(self, request: TransferRequest, *, trigger: str) -> TransferRequest:
        if request.status == RequestStatus.PENDING and self.clock() >= request.expires_at:
            try:
                return self._expire(request, trigger=trigger).request
            except AppError:
                # someone else moved it first
                return self._load(request.id)
        return request

    # creation

    def create(
        self,
        requester_branch_id: str,
        product_code: str,
        quantity: int,
        *,
        tried_branch_ids=(),
    ) -> TransferRequest | None:
        """Reserve stock at the nearest eligible donor and open a PENDING request.

        Returns None when no branch can cover the quantity; nothing is written
        in that case.
        """
        _require_positive(quantity, "quantity")
        if BranchRepository(self.db).get(requester_branch_id) is None:
            raise not_found("branch", requester_branch_id)
        if ProductRepository(self.db).get(product_code) is None:
            raise not_found("product", product_code)

        donor = self.resolver.resolve(requester_branch_id, product_code, quantity, tried_branch_ids)
        if donor is None:
            return None
        return self._open(requester_branch_id, product_code, quantity, donor)

    def _open(self, requester_branch_id: str, product_code: str, quantity: int, donor: DonorCandidate):
        now = self.clock()
        request = TransferRequest(
            id=uuid.uuid4(),
            requester_branch_id=requester_branch_id,
            target_branch_id=donor.branch.id,
            product_code=product_code,
            requested_quantity=quantity,
            status=RequestStatus.PENDING,
            attempted_branch_ids=[donor.branch.id],
            archived_by_requester=False,
            version=1,
            created_at=now,
            expires_at=now + timedelta(minutes=settings.REQUEST_EXPIRY_MINUTES),
            updated_at=now,
        )
        self.requests.add(request)
        reservation = StockDelta(donor.branch.id, product_code, -quantity)
        self.ledger.adjust(reservation.branch_id, reservation.product_code, reservation.delta)
        self.db.commit()

        result = TransitionResult(request=request, from_status=None, to_status=RequestStatus.PENDING, deltas=[reservation])
        self._after_transition("create", result, before=None)
        self.notify(
            "success",
            f"Request for {quantity} x {product_code} sent to {donor.branch.name} ({donor.distance_km:.1f} km)",
        )
        return request

    # transitions

    def update_quantity(self, request_id: uuid.UUID, quantity: int) -> TransferRequest:
        _require_positive(quantity, "quantity")
        request = self._pending(request_id, "update_quantity")
        # the reservation taken at creation is left as is
        return self.apply(
            request,
            action="update_quantity",
            to_status=RequestStatus.PENDING,
            values={"requested_quantity": quantity},
        ).request

    def approve(self, request_id: uuid.UUID, issue_number: str, issued_quantity: int) -> TransferRequest:
        issue_number = _require_text(issue_number, "issue_number")
        _require_positive(issued_quantity, "issued_quantity")
        request = self._pending(request_id, "approve")
        if issued_quantity > request.requested_quantity:
            raise validation_error(
                "issued_quantity cannot exceed requested_quantity",
                issued_quantity=issued_quantity,
                requested_quantity=request.requested_quantity,
            )

        now = self.clock()
        values = {
            "issue_number": issue_number,
            "issued_quantity": issued_quantity,
            "responded_at": now,
        }
        deltas = []
        shortfall = request.requested_quantity - issued_quantity
        if shortfall > 0:
            values["inventory_status"] = InventoryAuditStatus.PENDING_AUDIT
            deltas.append(StockDelta(request.target_branch_id, request.product_code, shortfall))

        result = self.apply(request, action="approve", to_status=RequestStatus.DISTRIBUTION, values=values, deltas=deltas)
        message = f"Request {request.id} approved with issue {issue_number}"
        if shortfall > 0:
            message += f"; {shortfall} unit(s) short, sent for inventory audit"
        self.notify("success", message)
        return result.request

    def reject(self, request_id: uuid.UUID, reason: str) -> TransferRequest:
        reason = _require_text(reason, "reason")
        request = self._pending(request_id, "reject")
        result = self.apply(
            request,
            action="reject",
            to_status=RequestStatus.REJECTED,
            values={"rejection_reason": reason, "responded_at": self.clock()},
            deltas=[StockDelta(request.target_branch_id, request.product_code, request.requested_quantity)],
        )
        self.notify("info", f"Request {request.id} rejected: {reason}")
        return result.request

    def cancel(self, request_id: uuid.UUID) -> TransferRequest:
        request = self._pending(request_id, "cancel")
        result = self.apply(
            request,
            action="cancel",
            to_status=RequestStatus.CANCELLED,
            values={},
            deltas=[StockDelta(request.target_branch_id, request.product_code, request.requested_quantity)],
        )
        self.notify("info", f"Request {request.id} cancelled")
        return result.request

    def assign_driver(self, request_id: uuid.UUID, driver_id: str) -> TransferRequest:
        driver_id = _require_text(driver_id, "driver_id")
        driver = UserRepository(self.db).get(driver_id)
        if driver is None or driver.role != UserRole.DELIVERY:
            raise validation_error("driver_id must reference a delivery user", driver_id=driver_id)
        request = self._in_status(request_id, RequestStatus.DISTRIBUTION, "assign_driver")
        result = self.apply(
            request,
            action="assign_driver",
            to_status=RequestStatus.ASSIGNED,
            values={"driver_id": driver_id},
        )
        self.notify("info", f"Driver {driver.name} assigned to request {request.id}")
        return result.request

    def confirm_pickup(self, request_id: uuid.UUID) -> TransferRequest:
        request = self._in_status(request_id, RequestStatus.ASSIGNED, "confirm_pickup")
        result = self.apply(
            request,
            action="confirm_pickup",
            to_status=RequestStatus.PICKED_UP,
            values={"picked_up_at": self.clock()},
        )
        self.notify("info", f"Request {request.id} picked up")
        return result.request

    def complete_delivery(self, request_id: uuid.UUID) -> TransferRequest:
        request = self._in_status(request_id, RequestStatus.PICKED_UP, "complete_delivery")
        result = self.apply(
            request,
            action="complete_delivery",
            to_status=RequestStatus.DELIVERED,
            values={"delivered_at": self.clock()},
        )
        self.notify("info", f"Request {request.id} delivered")
        return result.request

    def confirm_reception(self, request_id: uuid.UUID, receipt_number: str) -> TransferRequest:
        receipt_number = _require_text(receipt_number, "receipt_number")
        request = self._in_status(request_id, RequestStatus.DELIVERED, "confirm_reception")
        received = request.issued_quantity if request.issued_quantity is not None else request.requested_quantity
        result = self.apply(
            request,
            action="confirm_reception",
            to_status=RequestStatus.COMPLETED,
            values={"receipt_number": receipt_number, "completed_at": self.clock()},
            deltas=[StockDelta(request.requester_branch_id, request.product_code, received)],
        )
        self.notify("success", f"Request {request.id} received with receipt {receipt_number}")
        return result.request

    def archive(self, request_id: uuid.UUID) -> TransferRequest:
        request = self.get(request_id)
        if request.status not in RequestStatus.TERMINAL:
            self.conflict(request, "archive", "only finished requests can be archived")
        return self.apply(
            request,
            action="archive",
            to_status=request.status,
            values={"archived_by_requester": True},
        ).request

    def delete(self, request_id: uuid.UUID) -> None:
        request = self.get(request_id)
        if request.status not in RequestStatus.DELETABLE:
            self.conflict(request, "delete", "only rejected, expired or cancelled requests can be deleted")
        before = request_snapshot(request)
        if not self.requests.guarded_delete(
            request.id,
            allowed_statuses=RequestStatus.DELETABLE,
            expected_version=request.version,
        ):
            self.db.rollback()
            self.conflict(request, "delete", "request changed while deleting")
        self.db.commit()
        log_event(logger, "transfer_deleted", request_id=str(request.id), status=request.status, actor=self._actor())
        self._audit("transfer.delete", str(request.id), before=before, after=None)

    def expire_if_due(self, request_id: uuid.UUID, *, trigger: str = "sweep") -> bool:
        """Expire a PENDING request whose deadline has passed.

        Returns False when the request is gone, not pending, not yet due, or was
        moved by a concurrent writer; calling it again is harmless.
        """
        request = self.requests.get(request_id)
        if request is None or request.status != RequestStatus.PENDING:
            return False
        if self.clock() < request.expires_at:
            return False
        return self._try_expire(request, trigger=trigger)

    def _try_expire(self, request: TransferRequest, *, trigger: str) -> bool:
        try:
            self._expire(request, trigger=trigger)
        except AppError:
            return False
        return True

    def _expire(self, request: TransferRequest, *, trigger: str) -> TransitionResult:
        result = self.apply(
            request,
            action="expire",
            to_status=RequestStatus.EXPIRED,
            values={},
            deltas=[StockDelta(request.target_branch_id, request.product_code, request.requested_quantity)],
            quiet_conflict=True,
        )
        metrics.increment_expired(trigger)
        self.notify("warning", f"Request {request.id} expired without a response from {request.target_branch_id}")
        return result

    # guarded write

    def apply(
        self,
        request: TransferRequest,
        *,
        action: str,
        to_status: str,
        values: dict,
        deltas: list[StockDelta] | None = None,
        expected_inventory_status: str | None = None,
        quiet_conflict: bool = False,
    ) -> TransitionResult:
        before = request_snapshot(request)
        from_status = request.status
        updated = self.requests.guarded_update(
            request.id,
            expected_status=from_status,
            expected_version=request.version,
            expected_inventory_status=expected_inventory_status,
            values={"status": to_status, "updated_at": self.clock(), **values},
        )
        if not updated:
            self.db.rollback()
            if quiet_conflict:
                raise state_conflict("request changed concurrently", request_id=str(request.id), action=action)
            self.conflict(request, action, "request changed concurrently")

        deltas = list(deltas or [])
        for change in deltas:
            self.ledger.adjust(change.branch_id, change.product_code, change.delta)
        self.db.commit()

        refreshed = self._load(request.id)
        result = TransitionResult(request=refreshed, from_status=from_status, to_status=to_status, deltas=deltas)
        self._after_transition(action, result, before=before)
        return result

    # guards

    def _pending(self, request_id: uuid.UUID, action: str) -> TransferRequest:
        return self._in_status(request_id, RequestStatus.PENDING, action)

    def _in_status(self, request_id: uuid.UUID, expected: str, action: str) -> TransferRequest:
        request = self.get(request_id)
        if request.status != expected:
            self.conflict(request, action, f"{action} requires status {expected}")
        return request

    def conflict(self, request: TransferRequest, action: str, message: str):
        metrics.increment_state_conflict(action)
        log_event(
            logger,
            "transfer_state_conflict",
            level=logging.WARNING,
            request_id=str(request.id),
            action=action,
            status=request.status,
            actor=self._actor(),
        )
        raise state_conflict(message, request_id=str(request.id), status=request.status, action=action)

    # side channels

    def _after_transition(self, action: str, result: TransitionResult, *, before: dict | None) -> None:
        log_event(
            logger,
            "transfer_transition",
            request_id=str(result.request.id),
            action=action,
            from_status=result.from_status,
            to_status=result.to_status,
            actor=self._actor(),
            trace_id=self._trace_id(),
            stock_deltas=[change.__dict__ for change in result.deltas],
        )
        metrics.record_transition(action=action, status=result.to_status)
        self._audit(
            f"transfer.{action}",
            str(result.request.id),
            before=before,
            after=request_snapshot(result.request),
            metadata={"stock_deltas": [change.__dict__ for change in result.deltas]} if result.deltas else None,
        )

    def _audit(self, action: str, entity_id: str, *, before, after, metadata: dict | None = None) -> None:
        AuditService(self.db, clock=self.clock).record_event(
            AuditEventPayload(
                trace_id=self._trace_id(),
                actor=self._actor(),
                action=action,
                entity_type="transfer_request",
                entity_id=entity_id,
                before=before,
                after=after,
                metadata=metadata,
            )
        )

    def notify(self, severity: str, message: str) -> None:
        if self.notifier is not None:
            self.notifier.emit(message, severity)

    def _actor(self) -> str | None:
        return self.context.actor if self.context else None

    def _trace_id(self) -> str | None:
        return self.context.trace_id if self.context else None
