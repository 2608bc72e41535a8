from __future__ import annotations

import uuid

from app.branchlink.core.clock import Clock, utcnow
from app.branchlink.core.context import RequestContext
from app.branchlink.db.models import InventoryAuditStatus, TransferRequest
from app.branchlink.repos.transfers import TransferRequestRepository
from app.branchlink.services.request_state_machine import TransferRequestStateMachine


class DiscrepancyResolver:
    """Closes the inventory audit opened by a partial approval.

    Neither resolution touches stock: the shortfall went back to the donor
    when the request was approved.
    """

    def __init__(self, db, *, clock: Clock = utcnow, notifier=None, context: RequestContext | None = None):
        self.db = db
        self.machine = TransferRequestStateMachine(db, clock=clock, notifier=notifier, context=context)
        self.requests = TransferRequestRepository(db)

    def pending(self) -> list[TransferRequest]:
        return self.requests.pending_audits()

    def resolved(self) -> list[TransferRequest]:
        return self.requests.resolved_audits()

    def mark_found(self, request_id: uuid.UUID, note: str | None = None) -> TransferRequest:
        return self._resolve(request_id, InventoryAuditStatus.ITEM_FOUND, note, "mark_found")

    def confirm_deficit(self, request_id: uuid.UUID, note: str | None = None) -> TransferRequest:
        return self._resolve(request_id, InventoryAuditStatus.CONFIRMED_DEFICIT, note, "confirm_deficit")

    def _resolve(self, request_id: uuid.UUID, outcome: str, note: str | None, action: str) -> TransferRequest:
        request = self.machine.get(request_id)
        if request.inventory_status != InventoryAuditStatus.PENDING_AUDIT:
            self.machine.conflict(request, action, "request has no open inventory audit")
        result = self.machine.apply(
            request,
            action=action,
            to_status=request.status,
            values={
                "inventory_status": outcome,
                "inventory_note": (note or "").strip() or None,
                "inventory_resolved_at": self.machine.clock(),
            },
            expected_inventory_status=InventoryAuditStatus.PENDING_AUDIT,
        )
        label = "item found" if outcome == InventoryAuditStatus.ITEM_FOUND else "deficit confirmed"
        self.machine.notify("info", f"Audit for request {request.id} closed: {label}")
        return result.request
