import hashlib
import json
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from app.branchlink.core.clock import Clock, utcnow
from app.branchlink.core.error_catalog import AppError, ErrorCatalog
from app.branchlink.core.metrics import metrics
from app.branchlink.db.models import IdempotencyRecord
from app.branchlink.repos.idempotency import (
    STATE_FAILED,
    STATE_IN_PROGRESS,
    STATE_SUCCEEDED,
    IdempotencyRepository,
    IdempotencyScope,
)


IDEMPOTENCY_HEADER = "Idempotency-Key"
IDEMPOTENCY_RESULT_HEADER = "X-Idempotency-Result"


@dataclass
class IdempotencyReplay:
    status_code: int
    response_body: dict


class IdempotencyContext:
    def __init__(self, record: IdempotencyRecord, repo: IdempotencyRepository, clock: Clock = utcnow):
        self._record = record
        self._repo = repo
        self._clock = clock

    def record_success(self, *, status_code: int, response_body: dict) -> None:
        self._settle(STATE_SUCCEEDED, status_code, response_body)

    def record_failure(self, *, status_code: int, response_body: dict) -> None:
        # drop whatever the failed operation left pending before saving the outcome
        self._repo.db.rollback()
        self._settle(STATE_FAILED, status_code, response_body)

    def _settle(self, state: str, status_code: int, response_body: dict) -> None:
        self._repo.settle(
            self._record,
            state=state,
            status_code=status_code,
            body=json.dumps(response_body, default=str),
            now=self._clock(),
        )


class IdempotencyService:
    def __init__(self, db, *, clock: Clock = utcnow):
        self.repo = IdempotencyRepository(db)
        self.clock = clock

    @staticmethod
    def fingerprint(payload: object) -> str:
        payload_bytes = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(payload_bytes).hexdigest()

    def start(
        self,
        *,
        endpoint: str,
        method: str,
        idempotency_key: str,
        request_hash: str,
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        scope = IdempotencyScope(endpoint=endpoint, method=method, key=idempotency_key)
        existing = self.repo.find(scope)
        if existing:
            return self._handle_existing(existing, request_hash)
        try:
            record = self.repo.claim(scope, request_hash, now=self.clock())
        except IntegrityError:
            self.repo.db.rollback()
            return self._handle_existing(self.repo.find(scope), request_hash)

        return IdempotencyContext(record, self.repo, self.clock), None

    def _handle_existing(
        self, existing: IdempotencyRecord | None, request_hash: str
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        if existing is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        if existing.request_hash != request_hash:
            raise AppError(ErrorCatalog.IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD)
        if existing.state == STATE_IN_PROGRESS:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        if existing.response_body is None or existing.status_code is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        metrics.increment_idempotency_replay()
        return None, IdempotencyReplay(status_code=existing.status_code, response_body=json.loads(existing.response_body))


def extract_idempotency_key(headers) -> str | None:
    return headers.get(IDEMPOTENCY_HEADER) or None
