from dataclasses import asdict

from fastapi import APIRouter, Depends

from app.branchlink.db.session import get_db
from app.branchlink.schemas.reports import BranchPerformanceResponse, BranchPerformanceRow, DashboardStatsResponse
from app.branchlink.services.reports import branch_performance, dashboard_stats

router = APIRouter()


@router.get("/branchlink/reports/dashboard", response_model=DashboardStatsResponse)
def get_dashboard(db=Depends(get_db)):
    return DashboardStatsResponse(**asdict(dashboard_stats(db)))


@router.get("/branchlink/reports/branch-performance", response_model=BranchPerformanceResponse)
def get_branch_performance(db=Depends(get_db)):
    return BranchPerformanceResponse(rows=[BranchPerformanceRow(**asdict(row)) for row in branch_performance(db)])
