from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    NOT_FOUND = ErrorDefinition(
        "NOT_FOUND",
        "Resource not found",
        status.HTTP_404_NOT_FOUND,
    )
    STATE_CONFLICT = ErrorDefinition(
        "STATE_CONFLICT",
        "Transition not allowed from the current state",
        status.HTTP_409_CONFLICT,
    )
    DUPLICATE_RESOURCE = ErrorDefinition(
        "DUPLICATE_RESOURCE",
        "Resource already exists",
        status.HTTP_409_CONFLICT,
    )
    STORE_UNAVAILABLE = ErrorDefinition(
        "STORE_UNAVAILABLE",
        "Store of record unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD = ErrorDefinition(
        "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
        "Idempotency key reused with different payload",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REQUEST_IN_PROGRESS = ErrorDefinition(
        "IDEMPOTENCY_REQUEST_IN_PROGRESS",
        "Idempotency request already in progress",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REPLAY = ErrorDefinition(
        "IDEMPOTENCY_REPLAY",
        "Idempotent replay",
        status.HTTP_200_OK,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)


def validation_error(message: str, **fields) -> AppError:
    return AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": message, **fields})


def not_found(entity: str, entity_id: str) -> AppError:
    return AppError(ErrorCatalog.NOT_FOUND, details={"message": f"{entity} not found", "id": entity_id})


def state_conflict(message: str, **fields) -> AppError:
    return AppError(ErrorCatalog.STATE_CONFLICT, details={"message": message, **fields})
