"""API key exceptions."""

from fastapi import status

from ledgergate.shared.errors.exceptions import ApiException, RecordNotFoundException, ValidationFailedException


class ApiKeyValidationException(ValidationFailedException):
    """Raised when a new key's name, scopes or tier are invalid."""

    def __init__(self, errors: list[str]):
        super().__init__(message="API key could not be created", errors=errors)


class ApiKeyNotFound(RecordNotFoundException):
    """Raised when the caller has no active API key."""

    def __init__(self):
        super().__init__(message="No active API key found")


class ApiKeyConflictException(ApiException):
    """Raised when another key was created for the same user concurrently."""

    def __init__(self):
        super().__init__(
            error="conflict",
            message="Another API key was created at the same time, please retry",
            status_code=status.HTTP_409_CONFLICT,
        )
