from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    CASH_REGISTER_ALREADY_OPEN = ErrorDefinition(
        "CASH_REGISTER_ALREADY_OPEN",
        "A cash register is already open; close the current session first",
        status.HTTP_409_CONFLICT,
    )
    NOT_FOUND = ErrorDefinition(
        "NOT_FOUND",
        "Resource not found",
        status.HTTP_404_NOT_FOUND,
    )
    INVALID_STATE = ErrorDefinition(
        "INVALID_STATE",
        "Operation not allowed in the current state",
        status.HTTP_409_CONFLICT,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    SUMMARY_UNAVAILABLE = ErrorDefinition(
        "SUMMARY_UNAVAILABLE",
        "Movement summary unavailable",
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
    default_error: ErrorDefinition = ErrorCatalog.INTERNAL_ERROR

    def __init__(self, error: ErrorDefinition | None = None, details: object | None = None):
        self.error = error or self.default_error
        self.details = details
        super().__init__(self.error.message)


class ConflictError(AppError):
    default_error = ErrorCatalog.CASH_REGISTER_ALREADY_OPEN


class NotFoundError(AppError):
    default_error = ErrorCatalog.NOT_FOUND


class InvalidStateError(AppError):
    default_error = ErrorCatalog.INVALID_STATE


class ValidationError(AppError):
    default_error = ErrorCatalog.VALIDATION_ERROR
