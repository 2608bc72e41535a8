from __future__ import annotations

import logging

from app.branchlink.core.clock import Clock, utcnow
from app.branchlink.core.error_catalog import validation_error
from app.branchlink.core.logging import log_event
from app.branchlink.repos.stock import StockRepository

logger = logging.getLogger(__name__)


class StockLedger:
    """Per (branch, product) quantities.

    Writes are flushed into the caller's transaction; committing is left to the
    caller so a status change and its stock delta land together.
    """

    def __init__(self, db, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.repo = StockRepository(db)

    def get(self, branch_id: str, product_code: str) -> int:
        return self.repo.get_quantity(branch_id, product_code)

    def adjust(self, branch_id: str, product_code: str, delta: int) -> None:
        if delta == 0:
            return
        now = self.clock()
        if not self.repo.apply_delta(branch_id, product_code, delta, now=now):
            self.repo.insert_entry(branch_id, product_code, max(delta, 0), now=now)
        log_event(
            logger,
            "stock_adjusted",
            level=logging.DEBUG,
            branch_id=branch_id,
            product_code=product_code,
            delta=delta,
        )

    def set(self, branch_id: str, product_code: str, quantity: int) -> None:
        if quantity < 0:
            raise validation_error("quantity must be zero or greater", quantity=quantity)
        self.repo.set_quantity(branch_id, product_code, quantity, now=self.clock())

    def remove(self, branch_id: str, product_code: str) -> bool:
        return self.repo.delete_entry(branch_id, product_code)
