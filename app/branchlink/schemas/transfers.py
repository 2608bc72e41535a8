from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class TransferLineItem(BaseModel):
    product_code: str = Field(min_length=1)
    quantity: int


class TransferBulkCreateRequest(BaseModel):
    requester_branch_id: str = Field(min_length=1)
    items: list[TransferLineItem]
    report_shortages: bool = True

    model_config = {
        "json_schema_extra": {
            "example": {
                "requester_branch_id": "b1",
                "items": [{"product_code": "1001", "quantity": 10}],
                "report_shortages": True,
            }
        }
    }


class TransferQuantityUpdateRequest(BaseModel):
    quantity: int


class TransferApproveRequest(BaseModel):
    issue_number: str
    issued_quantity: int


class TransferRejectRequest(BaseModel):
    reason: str


class TransferAssignDriverRequest(BaseModel):
    driver_id: str


class TransferReceptionRequest(BaseModel):
    receipt_number: str


class TransferRequestResponse(BaseModel):
    id: UUID
    requester_branch_id: str
    target_branch_id: str
    product_code: str
    requested_quantity: int
    issued_quantity: int | None
    status: str
    attempted_branch_ids: list[str]
    hop_count: int
    driver_id: str | None
    issue_number: str | None
    receipt_number: str | None
    rejection_reason: str | None
    inventory_status: str | None
    inventory_note: str | None
    inventory_resolved_at: datetime | None
    archived_by_requester: bool
    version: int
    created_at: datetime
    expires_at: datetime
    responded_at: datetime | None
    picked_up_at: datetime | None
    delivered_at: datetime | None
    completed_at: datetime | None
    updated_at: datetime | None
    time_remaining_seconds: int
    urgency: Literal["GREEN", "YELLOW", "RED"] | None
    distance_km: float | None
    estimated_travel_minutes: int | None


class TransferListResponse(BaseModel):
    rows: list[TransferRequestResponse]


class TransferLineOutcome(BaseModel):
    product_code: str
    quantity: int
    outcome: Literal["CREATED", "NO_DONOR"]
    request: TransferRequestResponse | None = None
    shortage_id: UUID | None = None


class TransferBulkCreateResponse(BaseModel):
    requester_branch_id: str
    created: int
    no_donor: int
    lines: list[TransferLineOutcome]


class DonorCandidateResponse(BaseModel):
    branch_id: str
    branch_name: str
    distance_km: float
    estimated_travel_minutes: int
    available_quantity: int


class DonorPreviewResponse(BaseModel):
    requester_branch_id: str
    product_code: str
    quantity: int
    candidates: list[DonorCandidateResponse]


class DiscrepancyResolveRequest(BaseModel):
    resolution: Literal["ITEM_FOUND", "CONFIRMED_DEFICIT"]
    note: str | None = None
