import logging
from dataclasses import dataclass

from app.branchlink.core.clock import Clock, utcnow
from app.branchlink.db.models import AuditEvent
from app.branchlink.repos.audit import AuditRepository

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


@dataclass
class AuditEventPayload:
    trace_id: str | None
    actor: str | None
    action: str
    entity_type: str
    entity_id: str | None
    before: dict | None
    after: dict | None
    metadata: dict | None = None
    result: str = "success"


class AuditService:
    """Best-effort audit logging.

    Strategy: failures are logged and swallowed to avoid breaking request flows.
    """

    def __init__(self, db, *, clock: Clock = utcnow):
        self.repo = AuditRepository(db)
        self.clock = clock

    def record_event(self, payload: AuditEventPayload) -> None:
        try:
            event = AuditEvent(
                trace_id=payload.trace_id,
                actor=payload.actor or SYSTEM_ACTOR,
                action=payload.action,
                entity_type=payload.entity_type,
                entity_id=payload.entity_id,
                before_payload=payload.before,
                after_payload=payload.after,
                event_metadata=dict(payload.metadata or {}),
                result=payload.result,
                created_at=self.clock(),
            )
            self.repo.create(event)
        except Exception:
            self.repo.db.rollback()
            logger.exception(
                "Failed to write audit event",
                extra={
                    "action": payload.action,
                    "trace_id": payload.trace_id,
                    "entity_id": payload.entity_id,
                },
            )
