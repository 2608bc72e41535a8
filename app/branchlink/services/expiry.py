from __future__ import annotations

import logging
from dataclasses import dataclass, field

from app.branchlink.core.clock import Clock, utcnow
from app.branchlink.core.logging import log_event
from app.branchlink.repos.transfers import TransferRequestRepository
from app.branchlink.services.request_state_machine import TransferRequestStateMachine

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    checked: int = 0
    expired: list[str] = field(default_factory=list)


class ExpiryScheduler:
    """Moves overdue PENDING requests to EXPIRED through the guarded transition."""

    def __init__(self, db, *, clock: Clock = utcnow, notifier=None, trigger: str = "sweep"):
        self.db = db
        self.clock = clock
        self.trigger = trigger
        self.machine = TransferRequestStateMachine(db, clock=clock, notifier=notifier)

    def sweep(self) -> SweepResult:
        result = SweepResult()
        for request_id in TransferRequestRepository(self.db).overdue_pending_ids(self.clock()):
            result.checked += 1
            if self.machine.expire_if_due(request_id, trigger=self.trigger):
                result.expired.append(str(request_id))
        if result.expired:
            log_event(logger, "expiry_sweep", trigger=self.trigger, checked=result.checked, expired=len(result.expired))
        return result
