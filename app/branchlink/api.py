from fastapi import APIRouter

from app.branchlink.core.config import settings
from app.branchlink.routers.catalog import router as catalog_router
from app.branchlink.routers.discrepancies import router as discrepancies_router
from app.branchlink.routers.health import router as health_router
from app.branchlink.routers.metrics import router as metrics_router
from app.branchlink.routers.notifications import router as notifications_router
from app.branchlink.routers.reports import router as reports_router
from app.branchlink.routers.shortages import router as shortages_router
from app.branchlink.routers.stock import router as stock_router
from app.branchlink.routers.transfers import router as transfers_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(catalog_router, tags=["catalog"])
api_router.include_router(stock_router, tags=["stock"])
api_router.include_router(transfers_router, tags=["transfers"])
api_router.include_router(discrepancies_router, tags=["discrepancies"])
api_router.include_router(shortages_router, tags=["shortages"])
api_router.include_router(notifications_router, tags=["notifications"])
api_router.include_router(reports_router, tags=["reports"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
