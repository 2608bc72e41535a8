from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from app.branchlink.core.geo import haversine_km
from app.branchlink.db.models import Branch
from app.branchlink.repos.catalog import BranchRepository
from app.branchlink.repos.stock import StockRepository
from app.branchlink.repos.transfers import TransferRequestRepository


@dataclass(frozen=True)
class DonorCandidate:
    branch: Branch
    distance_km: float
    available_quantity: int


class BranchResolver:
    """Picks the nearest branch able to cover a whole line item."""

    def __init__(self, db):
        self.branches = BranchRepository(db)
        self.stock = StockRepository(db)
        self.requests = TransferRequestRepository(db)

    def rank(
        self,
        requester_branch_id: str,
        product_code: str,
        quantity: int,
        tried_branch_ids: Iterable[str] = (),
    ) -> list[DonorCandidate]:
        branches = self.branches.list_all()
        requester = next((branch for branch in branches if branch.id == requester_branch_id), None)
        if requester is None:
            return []

        excluded = {requester_branch_id, *tried_branch_ids}
        excluded |= self.requests.active_target_ids(requester_branch_id, product_code)
        on_hand = self.stock.quantities_for_product(product_code)

        candidates = [
            DonorCandidate(
                branch=branch,
                distance_km=haversine_km(
                    requester.latitude, requester.longitude, branch.latitude, branch.longitude
                ),
                available_quantity=on_hand.get(branch.id, 0),
            )
            for branch in branches
            if branch.id not in excluded and on_hand.get(branch.id, 0) >= quantity
        ]
        # branches come back ordered by id, so equal distances keep that order
        candidates.sort(key=lambda candidate: candidate.distance_km)
        return candidates

    def resolve(
        self,
        requester_branch_id: str,
        product_code: str,
        quantity: int,
        tried_branch_ids: Iterable[str] = (),
    ) -> DonorCandidate | None:
        ranked = self.rank(requester_branch_id, product_code, quantity, tried_branch_ids)
        return ranked[0] if ranked else None
