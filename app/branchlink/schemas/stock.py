from datetime import datetime

from pydantic import BaseModel, Field


class StockEntryResponse(BaseModel):
    branch_id: str
    product_code: str
    quantity: int
    updated_at: datetime

    model_config = {"from_attributes": True}


class StockListResponse(BaseModel):
    rows: list[StockEntryResponse]
    total_units: int


class StockQuantityResponse(BaseModel):
    branch_id: str
    product_code: str
    quantity: int


class StockAdjustRequest(BaseModel):
    delta: int


class StockSetRequest(BaseModel):
    quantity: int = Field(ge=0)
