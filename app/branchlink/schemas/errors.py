from pydantic import BaseModel


class ApiErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | None = None
    trace_id: str | None = None


class ApiValidationErrorItem(BaseModel):
    field: str | None = None
    message: str
    type: str
    loc: list[str | int] | None = None
    input: object | None = None
    ctx: dict | None = None


class ApiValidationErrorDetails(BaseModel):
    errors: list[ApiValidationErrorItem]


class ApiValidationErrorResponse(ApiErrorResponse):
    details: ApiValidationErrorDetails | dict | None = None


class StateConflictDetails(BaseModel):
    message: str
    request_id: str | None = None
    status: str | None = None
    action: str | None = None


class ApiStateConflictResponse(ApiErrorResponse):
    details: StateConflictDetails | dict | None = None


TRANSITION_ERROR_RESPONSES = {
    404: {"model": ApiErrorResponse, "description": "Unknown request"},
    409: {"model": ApiStateConflictResponse, "description": "Request is not in the required state"},
    422: {"model": ApiValidationErrorResponse, "description": "Invalid input"},
}
