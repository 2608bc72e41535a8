from uuid import UUID

from fastapi import APIRouter, Depends, Request

from app.branchlink.core.deps import EngineDeps, finish_idempotent_request, start_idempotent_request
from app.branchlink.db.models import InventoryAuditStatus
from app.branchlink.routers.transfers import transfer_view
from app.branchlink.schemas.errors import TRANSITION_ERROR_RESPONSES
from app.branchlink.schemas.transfers import DiscrepancyResolveRequest, TransferListResponse, TransferRequestResponse
from app.branchlink.services.discrepancy import DiscrepancyResolver

router = APIRouter()


@router.get("/branchlink/discrepancies", response_model=TransferListResponse)
def list_pending_discrepancies(deps: EngineDeps = Depends()):
    resolver = DiscrepancyResolver(deps.db, **deps.services)
    return TransferListResponse(rows=[transfer_view(deps, row) for row in resolver.pending()])


@router.get("/branchlink/discrepancies/resolved", response_model=TransferListResponse)
def list_resolved_discrepancies(deps: EngineDeps = Depends()):
    resolver = DiscrepancyResolver(deps.db, **deps.services)
    return TransferListResponse(rows=[transfer_view(deps, row) for row in resolver.resolved()])


@router.post(
    "/branchlink/discrepancies/{request_id}/resolve",
    response_model=TransferRequestResponse,
    responses=TRANSITION_ERROR_RESPONSES,
)
def resolve_discrepancy(
    request_id: UUID,
    request: Request,
    payload: DiscrepancyResolveRequest,
    deps: EngineDeps = Depends(),
):
    replay = start_idempotent_request(request, deps.db, payload.model_dump(mode="json"), deps.clock)
    if replay:
        return replay
    resolver = DiscrepancyResolver(deps.db, **deps.services)
    if payload.resolution == InventoryAuditStatus.ITEM_FOUND:
        updated = resolver.mark_found(request_id, payload.note)
    else:
        updated = resolver.confirm_deficit(request_id, payload.note)
    response = transfer_view(deps, updated)
    finish_idempotent_request(request, status_code=200, response_body=response.model_dump(mode="json"))
    return response
