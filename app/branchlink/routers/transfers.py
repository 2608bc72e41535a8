from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response

from app.branchlink.core.config import settings
from app.branchlink.core.deps import EngineDeps, finish_idempotent_request, start_idempotent_request
from app.branchlink.core.geo import estimated_travel_minutes, haversine_km, time_remaining, urgency_for
from app.branchlink.db.models import Branch, RequestStatus, TransferRequest
from app.branchlink.repos.audit import AuditRepository
from app.branchlink.repos.catalog import BranchRepository
from app.branchlink.repos.transfers import TransferQueryFilters, TransferRequestRepository
from app.branchlink.schemas.errors import TRANSITION_ERROR_RESPONSES
from app.branchlink.schemas.transfers import (
    DonorCandidateResponse,
    DonorPreviewResponse,
    TransferApproveRequest,
    TransferAssignDriverRequest,
    TransferBulkCreateRequest,
    TransferBulkCreateResponse,
    TransferLineOutcome,
    TransferListResponse,
    TransferQuantityUpdateRequest,
    TransferReceptionRequest,
    TransferRejectRequest,
    TransferRequestResponse,
)
from app.branchlink.services.branch_resolver import BranchResolver
from app.branchlink.services.expiry import ExpiryScheduler
from app.branchlink.services.orchestration import LineItem, TransferOrchestrator
from app.branchlink.services.request_state_machine import TransferRequestStateMachine


router = APIRouter()


def _branch_lookup(db) -> dict[str, Branch]:
    return {branch.id: branch for branch in BranchRepository(db).list_all()}


def _transfer_response(request: TransferRequest, now: datetime, branches: dict[str, Branch]) -> TransferRequestResponse:
    pending = request.status == RequestStatus.PENDING
    seconds_left = time_remaining(now, request.expires_at) if pending else 0.0
    distance = None
    travel = None
    donor = branches.get(request.target_branch_id)
    requester = branches.get(request.requester_branch_id)
    if donor is not None and requester is not None:
        distance = round(haversine_km(requester.latitude, requester.longitude, donor.latitude, donor.longitude), 2)
        travel = estimated_travel_minutes(distance)
    attempted = list(request.attempted_branch_ids or [])
    return TransferRequestResponse(
        id=request.id,
        requester_branch_id=request.requester_branch_id,
        target_branch_id=request.target_branch_id,
        product_code=request.product_code,
        requested_quantity=request.requested_quantity,
        issued_quantity=request.issued_quantity,
        status=request.status,
        attempted_branch_ids=attempted,
        hop_count=len(attempted),
        driver_id=request.driver_id,
        issue_number=request.issue_number,
        receipt_number=request.receipt_number,
        rejection_reason=request.rejection_reason,
        inventory_status=request.inventory_status,
        inventory_note=request.inventory_note,
        inventory_resolved_at=request.inventory_resolved_at,
        archived_by_requester=request.archived_by_requester,
        version=request.version,
        created_at=request.created_at,
        expires_at=request.expires_at,
        responded_at=request.responded_at,
        picked_up_at=request.picked_up_at,
        delivered_at=request.delivered_at,
        completed_at=request.completed_at,
        updated_at=request.updated_at,
        time_remaining_seconds=int(seconds_left),
        urgency=urgency_for(seconds_left) if pending else None,
        distance_km=distance,
        estimated_travel_minutes=travel,
    )


def transfer_view(deps: EngineDeps, request: TransferRequest) -> TransferRequestResponse:
    return _transfer_response(request, deps.clock(), _branch_lookup(deps.db))


def _machine(deps: EngineDeps) -> TransferRequestStateMachine:
    return TransferRequestStateMachine(deps.db, **deps.services)


def _run_transition(request: Request, deps: EngineDeps, payload: dict, transition):
    replay = start_idempotent_request(request, deps.db, payload, deps.clock)
    if replay:
        return replay
    updated = transition(_machine(deps))
    response = transfer_view(deps, updated)
    finish_idempotent_request(request, status_code=200, response_body=response.model_dump(mode="json"))
    return response


@router.get("/branchlink/transfers", response_model=TransferListResponse)
def list_transfers(
    requester_branch_id: str | None = None,
    target_branch_id: str | None = None,
    branch_id: str | None = None,
    product_code: str | None = None,
    status: list[str] | None = Query(default=None),
    driver_id: str | None = None,
    include_archived: bool = True,
    limit: int = Query(default=100, ge=1),
    deps: EngineDeps = Depends(),
):
    ExpiryScheduler(deps.db, clock=deps.clock, notifier=deps.notifier, trigger="access").sweep()
    filters = TransferQueryFilters(
        requester_branch_id=requester_branch_id,
        target_branch_id=target_branch_id,
        branch_id=branch_id,
        product_code=product_code,
        statuses=tuple(status or ()),
        driver_id=driver_id,
        include_archived=include_archived,
    )
    rows = TransferRequestRepository(deps.db).list_requests(
        filters, limit=min(limit, settings.REQUESTS_LIST_MAX_PAGE_SIZE)
    )
    now = deps.clock()
    branches = _branch_lookup(deps.db)
    return TransferListResponse(rows=[_transfer_response(row, now, branches) for row in rows])


@router.post(
    "/branchlink/transfers",
    response_model=TransferBulkCreateResponse,
    status_code=201,
    responses=TRANSITION_ERROR_RESPONSES,
)
def create_transfers(request: Request, payload: TransferBulkCreateRequest, deps: EngineDeps = Depends()):
    replay = start_idempotent_request(request, deps.db, payload.model_dump(mode="json"), deps.clock)
    if replay:
        return replay

    orchestrator = TransferOrchestrator(deps.db, **deps.services)
    outcomes = orchestrator.submit_bulk(
        payload.requester_branch_id,
        [LineItem(product_code=item.product_code, quantity=item.quantity) for item in payload.items],
        report_shortages=payload.report_shortages,
    )
    now = deps.clock()
    branches = _branch_lookup(deps.db)
    lines = [
        TransferLineOutcome(
            product_code=outcome.product_code,
            quantity=outcome.quantity,
            outcome=outcome.outcome,
            request=_transfer_response(outcome.request, now, branches) if outcome.request is not None else None,
            shortage_id=outcome.shortage.id if outcome.shortage is not None else None,
        )
        for outcome in outcomes
    ]
    created = sum(1 for line in lines if line.outcome == "CREATED")
    response = TransferBulkCreateResponse(
        requester_branch_id=payload.requester_branch_id,
        created=created,
        no_donor=len(lines) - created,
        lines=lines,
    )
    finish_idempotent_request(request, status_code=201, response_body=response.model_dump(mode="json"))
    return response


@router.get("/branchlink/transfers/donors", response_model=DonorPreviewResponse)
def preview_donors(
    requester_branch_id: str,
    product_code: str,
    quantity: int = Query(ge=1),
    deps: EngineDeps = Depends(),
):
    candidates = BranchResolver(deps.db).rank(requester_branch_id, product_code, quantity)
    return DonorPreviewResponse(
        requester_branch_id=requester_branch_id,
        product_code=product_code,
        quantity=quantity,
        candidates=[
            DonorCandidateResponse(
                branch_id=candidate.branch.id,
                branch_name=candidate.branch.name,
                distance_km=round(candidate.distance_km, 2),
                estimated_travel_minutes=estimated_travel_minutes(candidate.distance_km),
                available_quantity=candidate.available_quantity,
            )
            for candidate in candidates
        ],
    )


@router.get(
    "/branchlink/transfers/{request_id}",
    response_model=TransferRequestResponse,
    responses=TRANSITION_ERROR_RESPONSES,
)
def get_transfer(request_id: UUID, deps: EngineDeps = Depends()):
    return transfer_view(deps, _machine(deps).get(request_id))


def _history_order(event) -> tuple:
    # events written within one clock tick are ordered by request version
    snapshot = event.after_payload or event.before_payload or {}
    return event.created_at, snapshot.get("version", 0)


@router.get("/branchlink/transfers/{request_id}/history")
def get_transfer_history(request_id: UUID, deps: EngineDeps = Depends()):
    _machine(deps).get(request_id)
    events = sorted(
        AuditRepository(deps.db).list_for_entity("transfer_request", str(request_id)),
        key=_history_order,
    )
    return {
        "rows": [
            {
                "action": event.action,
                "actor": event.actor,
                "trace_id": event.trace_id,
                "before": event.before_payload,
                "after": event.after_payload,
                "metadata": event.event_metadata,
                "created_at": event.created_at,
            }
            for event in events
        ]
    }


@router.patch(
    "/branchlink/transfers/{request_id}",
    response_model=TransferRequestResponse,
    responses=TRANSITION_ERROR_RESPONSES,
)
def update_transfer_quantity(
    request_id: UUID,
    request: Request,
    payload: TransferQuantityUpdateRequest,
    deps: EngineDeps = Depends(),
):
    return _run_transition(
        request,
        deps,
        payload.model_dump(mode="json"),
        lambda machine: machine.update_quantity(request_id, payload.quantity),
    )


@router.post(
    "/branchlink/transfers/{request_id}/approve",
    response_model=TransferRequestResponse,
    responses=TRANSITION_ERROR_RESPONSES,
)
def approve_transfer(request_id: UUID, request: Request, payload: TransferApproveRequest, deps: EngineDeps = Depends()):
    return _run_transition(
        request,
        deps,
        payload.model_dump(mode="json"),
        lambda machine: machine.approve(request_id, payload.issue_number, payload.issued_quantity),
    )


@router.post(
    "/branchlink/transfers/{request_id}/reject",
    response_model=TransferRequestResponse,
    responses=TRANSITION_ERROR_RESPONSES,
)
def reject_transfer(request_id: UUID, request: Request, payload: TransferRejectRequest, deps: EngineDeps = Depends()):
    return _run_transition(
        request,
        deps,
        payload.model_dump(mode="json"),
        lambda machine: machine.reject(request_id, payload.reason),
    )


@router.post(
    "/branchlink/transfers/{request_id}/cancel",
    response_model=TransferRequestResponse,
    responses=TRANSITION_ERROR_RESPONSES,
)
def cancel_transfer(request_id: UUID, request: Request, deps: EngineDeps = Depends()):
    return _run_transition(request, deps, {}, lambda machine: machine.cancel(request_id))


@router.post(
    "/branchlink/transfers/{request_id}/assign-driver",
    response_model=TransferRequestResponse,
    responses=TRANSITION_ERROR_RESPONSES,
)
def assign_driver(
    request_id: UUID,
    request: Request,
    payload: TransferAssignDriverRequest,
    deps: EngineDeps = Depends(),
):
    return _run_transition(
        request,
        deps,
        payload.model_dump(mode="json"),
        lambda machine: machine.assign_driver(request_id, payload.driver_id),
    )


@router.post(
    "/branchlink/transfers/{request_id}/pickup",
    response_model=TransferRequestResponse,
    responses=TRANSITION_ERROR_RESPONSES,
)
def confirm_pickup(request_id: UUID, request: Request, deps: EngineDeps = Depends()):
    return _run_transition(request, deps, {}, lambda machine: machine.confirm_pickup(request_id))


@router.post(
    "/branchlink/transfers/{request_id}/deliver",
    response_model=TransferRequestResponse,
    responses=TRANSITION_ERROR_RESPONSES,
)
def complete_delivery(request_id: UUID, request: Request, deps: EngineDeps = Depends()):
    return _run_transition(request, deps, {}, lambda machine: machine.complete_delivery(request_id))


@router.post(
    "/branchlink/transfers/{request_id}/receive",
    response_model=TransferRequestResponse,
    responses=TRANSITION_ERROR_RESPONSES,
)
def confirm_reception(
    request_id: UUID,
    request: Request,
    payload: TransferReceptionRequest,
    deps: EngineDeps = Depends(),
):
    return _run_transition(
        request,
        deps,
        payload.model_dump(mode="json"),
        lambda machine: machine.confirm_reception(request_id, payload.receipt_number),
    )


@router.post(
    "/branchlink/transfers/{request_id}/archive",
    response_model=TransferRequestResponse,
    responses=TRANSITION_ERROR_RESPONSES,
)
def archive_transfer(request_id: UUID, request: Request, deps: EngineDeps = Depends()):
    return _run_transition(request, deps, {}, lambda machine: machine.archive(request_id))


@router.delete("/branchlink/transfers/{request_id}", status_code=204, responses=TRANSITION_ERROR_RESPONSES)
def delete_transfer(request_id: UUID, deps: EngineDeps = Depends()):
    _machine(deps).delete(request_id)
    return Response(status_code=204)


@router.post("/branchlink/ops/expiry-sweep")
def run_expiry_sweep(deps: EngineDeps = Depends()):
    result = ExpiryScheduler(deps.db, clock=deps.clock, notifier=deps.notifier, trigger="manual").sweep()
    return {"checked": result.checked, "expired": result.expired, "trace_id": deps.context.trace_id}
