"""In-process notification sink.

Notifications are fire-and-forget: emitters never wait on them and a failure
to record one is logged and dropped. Entries disappear once they are older
than the configured display lifetime.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from app.branchlink.core.clock import Clock, utcnow
from app.branchlink.core.config import settings
from app.branchlink.core.logging import log_event

logger = logging.getLogger(__name__)

SEVERITIES = ("success", "error", "info", "warning")


@dataclass(frozen=True)
class Notification:
    id: str
    message: str
    severity: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return asdict(self)


class NotificationHub:
    def __init__(
        self,
        *,
        ttl_seconds: int | None = None,
        max_entries: int | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.NOTIFICATION_TTL_SECONDS)
        self._entries: deque[Notification] = deque(maxlen=max_entries or settings.NOTIFICATION_BUFFER_SIZE)
        self._lock = threading.Lock()
        self.clock = clock

    def emit(self, message: str, severity: str = "info") -> Notification | None:
        try:
            if severity not in SEVERITIES:
                severity = "info"
            notification = Notification(
                id=uuid.uuid4().hex,
                message=message,
                severity=severity,
                timestamp=self.clock(),
            )
            with self._lock:
                self._entries.append(notification)
            log_event(logger, "notification", severity=severity, message=message)
            return notification
        except Exception:
            logger.exception("Failed to emit notification")
            return None

    def success(self, message: str) -> Notification | None:
        return self.emit(message, "success")

    def info(self, message: str) -> Notification | None:
        return self.emit(message, "info")

    def warning(self, message: str) -> Notification | None:
        return self.emit(message, "warning")

    def error(self, message: str) -> Notification | None:
        return self.emit(message, "error")

    def active(self) -> list[Notification]:
        cutoff = self.clock() - self._ttl
        with self._lock:
            while self._entries and self._entries[0].timestamp < cutoff:
                self._entries.popleft()
            return list(self._entries)

    def dismiss(self, notification_id: str) -> bool:
        with self._lock:
            for entry in self._entries:
                if entry.id == notification_id:
                    self._entries.remove(entry)
                    return True
        return False

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
