from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: str
    message: str
    severity: Literal["success", "error", "info", "warning"]
    timestamp: datetime


class NotificationListResponse(BaseModel):
    rows: list[NotificationResponse]
