"""User-related exceptions."""

from ledgergate.shared.errors.exceptions import ValidationFailedException


class EmailAlreadyExists(ValidationFailedException):
    """Raised when trying to register an email that already exists."""

    def __init__(self):
        super().__init__(message="Email already registered", errors=["Email has already been taken"])


class PasswordPolicyViolation(ValidationFailedException):
    """Raised when a password does not meet the complexity rules."""

    def __init__(self, errors: list[str]):
        super().__init__(message="Password does not meet requirements", errors=errors)
