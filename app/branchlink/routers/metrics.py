from fastapi import APIRouter, Depends, Response

from app.branchlink.core.metrics import metrics
from app.branchlink.db.models import RequestStatus
from app.branchlink.db.session import get_db
from app.branchlink.repos.shortages import ShortageRepository
from app.branchlink.repos.transfers import TransferRequestRepository

router = APIRouter()

_REPORTED_STATUSES = sorted(RequestStatus.ACTIVE | RequestStatus.TERMINAL | {RequestStatus.DELIVERED})


@router.get("/branchlink/ops/metrics")
def get_metrics(db=Depends(get_db)):
    # statuses with no rows report zero
    by_status = dict.fromkeys(_REPORTED_STATUSES, 0)
    by_status.update(TransferRequestRepository(db).count_by_status())
    metrics.set_backlog(by_status=by_status, open_shortages=ShortageRepository(db).count_open())
    snapshot = metrics.render()
    return Response(content=snapshot.content, media_type=snapshot.content_type)
