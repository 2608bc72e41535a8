from uuid import UUID

from fastapi import APIRouter, Depends, Request

from app.branchlink.core.deps import EngineDeps, finish_idempotent_request, start_idempotent_request
from app.branchlink.core.error_catalog import not_found
from app.branchlink.repos.catalog import BranchRepository, ProductRepository
from app.branchlink.repos.shortages import ShortageQueryFilters
from app.branchlink.schemas.errors import TRANSITION_ERROR_RESPONSES
from app.branchlink.schemas.shortages import (
    ShortageCreateRequest,
    ShortageListResponse,
    ShortageResolveRequest,
    ShortageResponse,
)
from app.branchlink.services.shortages import ShortageTracker

router = APIRouter()


def _tracker(deps: EngineDeps) -> ShortageTracker:
    return ShortageTracker(deps.db, **deps.services)


@router.get("/branchlink/shortages", response_model=ShortageListResponse)
def list_shortages(
    requester_branch_id: str | None = None,
    product_code: str | None = None,
    status: str | None = None,
    include_archived: bool = True,
    deps: EngineDeps = Depends(),
):
    filters = ShortageQueryFilters(
        requester_branch_id=requester_branch_id,
        product_code=product_code,
        status=status,
        include_archived=include_archived,
    )
    return ShortageListResponse(rows=[ShortageResponse.model_validate(row) for row in _tracker(deps).list(filters)])


@router.post("/branchlink/shortages", response_model=ShortageResponse, status_code=201)
def report_shortage(request: Request, payload: ShortageCreateRequest, deps: EngineDeps = Depends()):
    replay = start_idempotent_request(request, deps.db, payload.model_dump(mode="json"), deps.clock)
    if replay:
        return replay
    if BranchRepository(deps.db).get(payload.requester_branch_id) is None:
        raise not_found("branch", payload.requester_branch_id)
    if ProductRepository(deps.db).get(payload.product_code) is None:
        raise not_found("product", payload.product_code)
    report = _tracker(deps).report(payload.requester_branch_id, payload.product_code, payload.quantity)
    response = ShortageResponse.model_validate(report)
    finish_idempotent_request(request, status_code=201, response_body=response.model_dump(mode="json"))
    return response


@router.post(
    "/branchlink/shortages/{report_id}/resolve",
    response_model=ShortageResponse,
    responses=TRANSITION_ERROR_RESPONSES,
)
def resolve_shortage(report_id: UUID, request: Request, payload: ShortageResolveRequest, deps: EngineDeps = Depends()):
    replay = start_idempotent_request(request, deps.db, payload.model_dump(mode="json"), deps.clock)
    if replay:
        return replay
    response = ShortageResponse.model_validate(_tracker(deps).resolve(report_id, payload.provided_quantity))
    finish_idempotent_request(request, status_code=200, response_body=response.model_dump(mode="json"))
    return response


@router.post("/branchlink/shortages/{report_id}/archive", response_model=ShortageResponse)
def archive_shortage(report_id: UUID, deps: EngineDeps = Depends()):
    return ShortageResponse.model_validate(_tracker(deps).archive(report_id))
