import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.branchlink.core.context import ACTOR_HEADER

TRACE_HEADER = "X-Trace-ID"


class TraceIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get(TRACE_HEADER) or str(uuid.uuid4())
        request.state.trace_id = trace_id
        request.state.actor = request.headers.get(ACTOR_HEADER) or None
        response: Response = await call_next(request)
        response.headers[TRACE_HEADER] = trace_id
        return response
