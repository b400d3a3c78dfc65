"""Password validation functions."""

import re

MIN_PASSWORD_LENGTH = 8
SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")


def password_policy_errors(password: str | None) -> list[str]:
    """Collect every password complexity rule the password violates.

    Requirements:
    - At least 8 characters
    - Both uppercase and lowercase letters
    - At least one digit (0-9)
    - At least one special character

    Args:
        password: Password string to validate

    Returns:
        List of human-readable violations (empty when the password is acceptable)

    Examples:
        >>> password_policy_errors("SecurePass123!")
        []
        >>> password_policy_errors("weakpass")
        ['Password must include both uppercase and lowercase letters', 'Password must include at least one number', 'Password must include at least one special character']

    """
    if not password:
        return ["Password can't be blank"]

    errors = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if not (any(c.isupper() for c in password) and any(c.islower() for c in password)):
        errors.append("Password must include both uppercase and lowercase letters")
    if not any(c.isdigit() for c in password):
        errors.append("Password must include at least one number")
    if not SPECIAL_CHARACTERS.search(password):
        errors.append("Password must include at least one special character")
    return errors
