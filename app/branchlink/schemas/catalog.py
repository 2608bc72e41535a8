from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


RoleName = Literal[
    "ADMIN",
    "BRANCH_MANAGER",
    "DISTRIBUTION",
    "DELIVERY",
    "INVENTORY_MANAGER",
    "SHORTAGE_MANAGER",
]


class BranchCreateRequest(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    address: str | None = None
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class BranchUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    address: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class BranchResponse(BaseModel):
    id: str
    name: str
    address: str | None
    latitude: float
    longitude: float
    created_at: datetime
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class ProductCreateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    barcode: str | None = None
    requires_refrigeration: bool = False


class ProductUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    barcode: str | None = None
    requires_refrigeration: bool | None = None


class ProductResponse(BaseModel):
    code: str
    name: str
    barcode: str | None
    requires_refrigeration: bool
    created_at: datetime
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class UserCreateRequest(BaseModel):
    id: str | None = Field(default=None, max_length=64)
    username: str = Field(min_length=1, max_length=150)
    name: str = Field(min_length=1, max_length=255)
    role: RoleName
    branch_id: str | None = None


class UserResponse(BaseModel):
    id: str
    username: str
    name: str
    role: str
    branch_id: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
