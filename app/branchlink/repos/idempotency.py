from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select

from app.branchlink.db.models import IdempotencyRecord

STATE_IN_PROGRESS = "in_progress"
STATE_SUCCEEDED = "succeeded"
STATE_FAILED = "failed"


@dataclass(frozen=True)
class IdempotencyScope:
    """A key only replays for the route and verb it was first sent to."""

    endpoint: str
    method: str
    key: str


class IdempotencyRepository:
    def __init__(self, db):
        self.db = db

    def find(self, scope: IdempotencyScope) -> IdempotencyRecord | None:
        return (
            self.db.execute(
                select(IdempotencyRecord).where(
                    IdempotencyRecord.endpoint == scope.endpoint,
                    IdempotencyRecord.method == scope.method,
                    IdempotencyRecord.idempotency_key == scope.key,
                )
            )
            .scalars()
            .first()
        )

    def claim(self, scope: IdempotencyScope, request_hash: str, *, now: datetime) -> IdempotencyRecord:
        """Insert the in-progress marker; the unique constraint settles racing claims."""
        record = IdempotencyRecord(
            endpoint=scope.endpoint,
            method=scope.method,
            idempotency_key=scope.key,
            request_hash=request_hash,
            state=STATE_IN_PROGRESS,
            created_at=now,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def settle(self, record: IdempotencyRecord, *, state: str, status_code: int, body: str, now: datetime) -> None:
        record.state = state
        record.status_code = status_code
        record.response_body = body
        record.updated_at = now
        self.db.add(record)
        self.db.commit()
