from fastapi import APIRouter, Depends, Response

from app.branchlink.core.deps import EngineDeps
from app.branchlink.core.error_catalog import not_found
from app.branchlink.repos.catalog import BranchRepository, ProductRepository
from app.branchlink.repos.stock import StockQueryFilters, StockRepository
from app.branchlink.schemas.stock import (
    StockAdjustRequest,
    StockEntryResponse,
    StockListResponse,
    StockQuantityResponse,
    StockSetRequest,
)
from app.branchlink.services.audit import AuditEventPayload, AuditService
from app.branchlink.services.stock_ledger import StockLedger

router = APIRouter()


def _require_pair(deps: EngineDeps, branch_id: str, product_code: str) -> None:
    if BranchRepository(deps.db).get(branch_id) is None:
        raise not_found("branch", branch_id)
    if ProductRepository(deps.db).get(product_code) is None:
        raise not_found("product", product_code)


def _audit(deps: EngineDeps, action: str, branch_id: str, product_code: str, before: int, after: int | None) -> None:
    AuditService(deps.db, clock=deps.clock).record_event(
        AuditEventPayload(
            trace_id=deps.context.trace_id,
            actor=deps.context.actor,
            action=action,
            entity_type="stock_entry",
            entity_id=f"{branch_id}:{product_code}",
            before={"quantity": before},
            after={"quantity": after} if after is not None else None,
        )
    )


@router.get("/branchlink/stock", response_model=StockListResponse)
def list_stock(
    branch_id: str | None = None,
    product_code: str | None = None,
    min_quantity: int | None = None,
    deps: EngineDeps = Depends(),
):
    rows = StockRepository(deps.db).list_entries(
        StockQueryFilters(branch_id=branch_id, product_code=product_code, min_quantity=min_quantity)
    )
    return StockListResponse(
        rows=[StockEntryResponse.model_validate(row) for row in rows],
        total_units=sum(row.quantity for row in rows),
    )


@router.get("/branchlink/stock/{branch_id}/{product_code}", response_model=StockQuantityResponse)
def get_stock(branch_id: str, product_code: str, deps: EngineDeps = Depends()):
    quantity = StockLedger(deps.db, deps.clock).get(branch_id, product_code)
    return StockQuantityResponse(branch_id=branch_id, product_code=product_code, quantity=quantity)


@router.post("/branchlink/stock/{branch_id}/{product_code}/adjust", response_model=StockQuantityResponse)
def adjust_stock(branch_id: str, product_code: str, payload: StockAdjustRequest, deps: EngineDeps = Depends()):
    _require_pair(deps, branch_id, product_code)
    ledger = StockLedger(deps.db, deps.clock)
    before = ledger.get(branch_id, product_code)
    ledger.adjust(branch_id, product_code, payload.delta)
    deps.db.commit()
    quantity = ledger.get(branch_id, product_code)
    _audit(deps, "stock.adjust", branch_id, product_code, before, quantity)
    return StockQuantityResponse(branch_id=branch_id, product_code=product_code, quantity=quantity)


@router.put("/branchlink/stock/{branch_id}/{product_code}", response_model=StockQuantityResponse)
def set_stock(branch_id: str, product_code: str, payload: StockSetRequest, deps: EngineDeps = Depends()):
    _require_pair(deps, branch_id, product_code)
    ledger = StockLedger(deps.db, deps.clock)
    before = ledger.get(branch_id, product_code)
    ledger.set(branch_id, product_code, payload.quantity)
    deps.db.commit()
    _audit(deps, "stock.set", branch_id, product_code, before, payload.quantity)
    return StockQuantityResponse(branch_id=branch_id, product_code=product_code, quantity=payload.quantity)


@router.delete("/branchlink/stock/{branch_id}/{product_code}", status_code=204)
def remove_stock(branch_id: str, product_code: str, deps: EngineDeps = Depends()):
    ledger = StockLedger(deps.db, deps.clock)
    before = ledger.get(branch_id, product_code)
    if not ledger.remove(branch_id, product_code):
        raise not_found("stock entry", f"{branch_id}:{product_code}")
    deps.db.commit()
    _audit(deps, "stock.remove", branch_id, product_code, before, None)
    return Response(status_code=204)
