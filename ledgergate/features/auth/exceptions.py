"""Authentication exceptions."""

from enum import StrEnum

from fastapi import status

from ledgergate.shared.errors.exceptions import ApiException


class CredentialFailure(StrEnum):
    """Internal reason a credential was rejected. Logged, never returned."""

    MISSING = "missing_credential"
    INVALID = "invalid_credential"
    EXPIRED = "expired"
    REVOKED = "revoked"
    UNKNOWN_USER = "unknown_user"
    INACTIVE_USER = "inactive_user"


class UnauthorizedException(ApiException):
    """Raised when no usable credential was presented.

    Every failure renders the same body so callers cannot tell a missing
    credential from an expired or revoked one.
    """

    def __init__(self, reason: CredentialFailure = CredentialFailure.INVALID):
        super().__init__(
            error="unauthorized",
            message="Access token or API key is invalid, expired, or missing",
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )
        self.reason = reason

    @property
    def is_missing(self) -> bool:
        return self.reason == CredentialFailure.MISSING


class InsufficientScopeException(ApiException):
    """Raised when the principal's scopes do not cover the endpoint's scope."""

    def __init__(self, required_scope: str):
        super().__init__(
            error="insufficient_scope",
            message=f"This action requires the '{required_scope}' scope",
            status_code=status.HTTP_403_FORBIDDEN,
        )
        self.required_scope = required_scope


class ForbiddenException(ApiException):
    """Raised when the principal's role does not allow the action."""

    def __init__(self, message: str = "You are not allowed to perform this action"):
        super().__init__(error="forbidden", message=message, status_code=status.HTTP_403_FORBIDDEN)


class InvalidCredentialsException(ApiException):
    """Raised when email or password is incorrect."""

    def __init__(self):
        super().__init__(
            error="invalid_credentials",
            message="Invalid email or password",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class MfaRequiredException(ApiException):
    """Raised when the account has two-factor auth and no valid code was sent."""

    def __init__(self):
        super().__init__(
            error="mfa_required",
            message="Two-factor authentication required",
            status_code=status.HTTP_401_UNAUTHORIZED,
            extra={"mfa_required": True},
        )


class InvalidRefreshTokenException(ApiException):
    """Raised when a refresh token is unknown or was already used or revoked."""

    def __init__(self):
        super().__init__(
            error="invalid_refresh_token",
            message="Refresh token is invalid or has already been used",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
