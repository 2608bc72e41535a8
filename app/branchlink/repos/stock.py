from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, delete, select, update

from app.branchlink.db.models import StockEntry


@dataclass(frozen=True)
class StockQueryFilters:
    branch_id: str | None = None
    product_code: str | None = None
    min_quantity: int | None = None


class StockRepository:
    def __init__(self, db):
        self.db = db

    def get_quantity(self, branch_id: str, product_code: str) -> int:
        quantity = self.db.execute(
            select(StockEntry.quantity).where(
                StockEntry.branch_id == branch_id,
                StockEntry.product_code == product_code,
            )
        ).scalar_one_or_none()
        return int(quantity or 0)

    def quantities_for_product(self, product_code: str) -> dict[str, int]:
        rows = self.db.execute(
            select(StockEntry.branch_id, StockEntry.quantity).where(StockEntry.product_code == product_code)
        ).all()
        return {row.branch_id: int(row.quantity) for row in rows}

    def list_entries(self, filters: StockQueryFilters) -> list[StockEntry]:
        query = select(StockEntry)
        if filters.branch_id:
            query = query.where(StockEntry.branch_id == filters.branch_id)
        if filters.product_code:
            query = query.where(StockEntry.product_code == filters.product_code)
        if filters.min_quantity is not None:
            query = query.where(StockEntry.quantity >= filters.min_quantity)
        query = query.order_by(StockEntry.branch_id.asc(), StockEntry.product_code.asc())
        return self.db.execute(query.execution_options(populate_existing=True)).scalars().all()

    def apply_delta(self, branch_id: str, product_code: str, delta: int, *, now: datetime) -> bool:
        """Add ``delta`` in a single statement, flooring the stored value at zero.

        Returns False when no entry exists for the pair.
        """
        shifted = StockEntry.quantity + delta
        result = self.db.execute(
            update(StockEntry)
            .where(StockEntry.branch_id == branch_id, StockEntry.product_code == product_code)
            .values(quantity=case((shifted < 0, 0), else_=shifted), updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def insert_entry(self, branch_id: str, product_code: str, quantity: int, *, now: datetime) -> None:
        self.db.add(StockEntry(branch_id=branch_id, product_code=product_code, quantity=quantity, updated_at=now))
        self.db.flush()

    def set_quantity(self, branch_id: str, product_code: str, quantity: int, *, now: datetime) -> None:
        result = self.db.execute(
            update(StockEntry)
            .where(StockEntry.branch_id == branch_id, StockEntry.product_code == product_code)
            .values(quantity=quantity, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.insert_entry(branch_id, product_code, quantity, now=now)

    def delete_entry(self, branch_id: str, product_code: str) -> bool:
        result = self.db.execute(
            delete(StockEntry)
            .where(StockEntry.branch_id == branch_id, StockEntry.product_code == product_code)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def delete_for_branch(self, branch_id: str) -> int:
        result = self.db.execute(
            delete(StockEntry).where(StockEntry.branch_id == branch_id).execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def delete_for_product(self, product_code: str) -> int:
        result = self.db.execute(
            delete(StockEntry)
            .where(StockEntry.product_code == product_code)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
