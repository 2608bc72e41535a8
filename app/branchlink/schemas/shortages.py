from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ShortageCreateRequest(BaseModel):
    requester_branch_id: str = Field(min_length=1)
    product_code: str = Field(min_length=1)
    quantity: int


class ShortageResolveRequest(BaseModel):
    provided_quantity: int


class ShortageResponse(BaseModel):
    id: UUID
    requester_branch_id: str
    product_code: str
    requested_quantity: int
    provided_quantity: int | None
    status: str
    archived_by_requester: bool
    created_at: datetime
    resolved_at: datetime | None

    model_config = {"from_attributes": True}


class ShortageListResponse(BaseModel):
    rows: list[ShortageResponse]
