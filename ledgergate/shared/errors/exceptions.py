"""Base API exception rendered as `{"error": ..., "message": ...}`."""

from typing import Any

from fastapi import HTTPException, status


class ApiException(HTTPException):
    """Base exception for every error returned to API clients.

    `error` is the stable machine-readable code, `message` the human-readable
    text, `extra` any additional top-level fields of the JSON body.
    """

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        headers: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.error = error
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "message": self.message, **self.extra}


class ValidationFailedException(ApiException):
    """Raised when input fails a business rule (password policy, duplicates, ...)."""

    def __init__(self, message: str = "Validation failed", errors: list[str] | None = None):
        super().__init__(
            error="validation_failed",
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            extra={"errors": errors} if errors else None,
        )


class RecordNotFoundException(ApiException):
    """Raised when a requested resource does not exist (or is not the caller's)."""

    def __init__(self, message: str = "The requested resource was not found"):
        super().__init__(error="record_not_found", message=message, status_code=status.HTTP_404_NOT_FOUND)


class BadRequestException(ApiException):
    """Raised when required parameters are missing."""

    def __init__(self, message: str = "Required parameters are missing or invalid"):
        super().__init__(error="bad_request", message=message, status_code=status.HTTP_400_BAD_REQUEST)
