"""Invite code exceptions."""

from fastapi import status

from ledgergate.shared.errors.exceptions import ApiException, RecordNotFoundException


class InviteCodeRequiredException(ApiException):
    def __init__(self):
        super().__init__(
            error="invite_code_required",
            message="An invite code is required to sign up",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class InvalidInviteCodeException(ApiException):
    def __init__(self):
        super().__init__(
            error="invalid_invite_code",
            message="Invite code is invalid",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class InviteCodeNotFound(RecordNotFoundException):
    def __init__(self):
        super().__init__(message="Invite code not found")
