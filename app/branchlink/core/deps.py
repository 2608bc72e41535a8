from fastapi import Depends, Request
from fastapi.responses import JSONResponse

from app.branchlink.core.clock import Clock, get_clock, utcnow
from app.branchlink.core.context import RequestContext, get_request_context
from app.branchlink.core.error_catalog import ErrorCatalog
from app.branchlink.db.session import get_db
from app.branchlink.services.idempotency import (
    IDEMPOTENCY_RESULT_HEADER,
    IdempotencyService,
    extract_idempotency_key,
)
from app.branchlink.services.notifications import NotificationHub


def get_notifier(request: Request) -> NotificationHub:
    return request.app.state.notifier


def require_request_context(request: Request) -> RequestContext:
    return get_request_context(request)


class EngineDeps:
    """Store handle, clock, notifier and caller context for one HTTP call."""

    def __init__(
        self,
        request: Request,
        db=Depends(get_db),
        clock: Clock = Depends(get_clock),
        notifier: NotificationHub = Depends(get_notifier),
        context: RequestContext = Depends(require_request_context),
    ):
        self.request = request
        self.db = db
        self.clock = clock
        self.notifier = notifier
        self.context = context

    @property
    def services(self) -> dict:
        return {"clock": self.clock, "notifier": self.notifier, "context": self.context}


def start_idempotent_request(request: Request, db, payload: object, clock: Clock = utcnow) -> JSONResponse | None:
    """Returns the stored response for a replayed key, otherwise arms the key for this call."""
    idempotency_key = extract_idempotency_key(request.headers)
    if idempotency_key is None:
        return None
    context, replay = IdempotencyService(db, clock=clock).start(
        endpoint=str(request.url.path),
        method=request.method,
        idempotency_key=idempotency_key,
        request_hash=IdempotencyService.fingerprint(payload),
    )
    if replay:
        return JSONResponse(
            status_code=replay.status_code,
            content=replay.response_body,
            headers={IDEMPOTENCY_RESULT_HEADER: ErrorCatalog.IDEMPOTENCY_REPLAY.code},
        )
    request.state.idempotency = context
    return None


def finish_idempotent_request(request: Request, *, status_code: int, response_body: dict) -> None:
    context = getattr(request.state, "idempotency", None)
    if context is None:
        return
    context.record_success(status_code=status_code, response_body=response_body)
    request.state.idempotency = None
