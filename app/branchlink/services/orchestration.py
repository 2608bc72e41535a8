from __future__ import annotations

import logging
from dataclasses import dataclass

from app.branchlink.core.clock import Clock, utcnow
from app.branchlink.core.context import RequestContext
from app.branchlink.core.error_catalog import not_found, validation_error
from app.branchlink.core.logging import log_event
from app.branchlink.db.models import ShortageReport, TransferRequest
from app.branchlink.repos.catalog import BranchRepository, ProductRepository
from app.branchlink.services.request_state_machine import TransferRequestStateMachine
from app.branchlink.services.shortages import ShortageTracker

logger = logging.getLogger(__name__)

OUTCOME_CREATED = "CREATED"
OUTCOME_NO_DONOR = "NO_DONOR"


@dataclass(frozen=True)
class LineItem:
    product_code: str
    quantity: int


@dataclass
class LineOutcome:
    product_code: str
    quantity: int
    outcome: str
    request: TransferRequest | None = None
    shortage: ShortageReport | None = None


class TransferOrchestrator:
    """Entry point for branch submissions.

    Each line item is routed on its own: one line finding no donor does not
    undo the lines that were placed.
    """

    def __init__(self, db, *, clock: Clock = utcnow, notifier=None, context: RequestContext | None = None):
        self.db = db
        self.notifier = notifier
        self.machine = TransferRequestStateMachine(db, clock=clock, notifier=notifier, context=context)
        self.shortages = ShortageTracker(db, clock=clock, notifier=notifier, context=context)

    def submit(self, requester_branch_id: str, item: LineItem, *, report_shortage: bool = True) -> LineOutcome:
        request = self.machine.create(requester_branch_id, item.product_code, item.quantity)
        if request is not None:
            return LineOutcome(item.product_code, item.quantity, OUTCOME_CREATED, request=request)
        shortage = None
        if report_shortage:
            shortage = self.shortages.report(requester_branch_id, item.product_code, item.quantity)
        elif self.notifier is not None:
            self.notifier.warning(f"No branch can supply {item.quantity} x {item.product_code}")
        return LineOutcome(item.product_code, item.quantity, OUTCOME_NO_DONOR, shortage=shortage)

    def submit_bulk(
        self,
        requester_branch_id: str,
        items: list[LineItem],
        *,
        report_shortages: bool = True,
    ) -> list[LineOutcome]:
        self._validate(requester_branch_id, items)
        outcomes = [
            self.submit(requester_branch_id, item, report_shortage=report_shortages) for item in items
        ]
        created = sum(1 for outcome in outcomes if outcome.outcome == OUTCOME_CREATED)
        missing = len(outcomes) - created
        log_event(
            logger,
            "bulk_submission",
            requester_branch_id=requester_branch_id,
            lines=len(outcomes),
            created=created,
            no_donor=missing,
        )
        if self.notifier is not None and len(items) > 1:
            message = f"{created} request(s) sent"
            if missing:
                message += f", {missing} item(s) unavailable in the network"
            self.notifier.emit(message, "success" if not missing else "warning")
        return outcomes

    def _validate(self, requester_branch_id: str, items: list[LineItem]) -> None:
        if not items:
            raise validation_error("items must not be empty")
        if BranchRepository(self.db).get(requester_branch_id) is None:
            raise not_found("branch", requester_branch_id)
        products = ProductRepository(self.db)
        for index, item in enumerate(items):
            if item.quantity is None or item.quantity <= 0:
                raise validation_error("quantity must be greater than zero", index=index, quantity=item.quantity)
            if products.get(item.product_code) is None:
                raise not_found("product", item.product_code)
