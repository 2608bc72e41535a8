from pydantic import BaseModel


class ProductDemandRow(BaseModel):
    product_code: str
    request_count: int
    requested_quantity: int


class DashboardStatsResponse(BaseModel):
    total: int
    completed: int
    pending: int
    in_transit: int
    expired: int
    rejected: int
    cancelled: int
    pending_audits: int
    top_products: list[ProductDemandRow]


class BranchPerformanceRow(BaseModel):
    branch_id: str
    branch_name: str
    total_received: int
    responded: int
    avg_response_minutes: float | None
    expired: int


class BranchPerformanceResponse(BaseModel):
    rows: list[BranchPerformanceRow]
