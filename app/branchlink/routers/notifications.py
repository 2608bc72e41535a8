from fastapi import APIRouter, Depends, Response

from app.branchlink.core.deps import get_notifier
from app.branchlink.core.error_catalog import not_found
from app.branchlink.schemas.notifications import NotificationListResponse, NotificationResponse
from app.branchlink.services.notifications import NotificationHub

router = APIRouter()


@router.get("/branchlink/notifications", response_model=NotificationListResponse)
def list_notifications(notifier: NotificationHub = Depends(get_notifier)):
    return NotificationListResponse(
        rows=[NotificationResponse(**notification.to_dict()) for notification in notifier.active()]
    )


@router.delete("/branchlink/notifications/{notification_id}", status_code=204)
def dismiss_notification(notification_id: str, notifier: NotificationHub = Depends(get_notifier)):
    if not notifier.dismiss(notification_id):
        raise not_found("notification", notification_id)
    return Response(status_code=204)
