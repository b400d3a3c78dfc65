"""Structured access log lines emitted by the access gate."""

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from fastapi import Request

if TYPE_CHECKING:
    from ledgergate.features.auth.principal import Principal

logger = logging.getLogger("ledgergate.access")


class AccessOutcome(StrEnum):
    """Result of running a request through the gate."""

    ALLOWED = "allowed"
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_CREDENTIAL = "invalid_credential"
    INSUFFICIENT_SCOPE = "insufficient_scope"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"


def log_access(
    request: Request,
    outcome: AccessOutcome,
    principal: "Principal | None" = None,
    **details: Any,
) -> None:
    """Emit one access line: method, path, user, family, auth method and outcome.

    `details` carries internal context (failure reason, required scope, counts)
    that is logged but never returned to the caller.
    """
    fields: dict[str, Any] = {
        "method": request.method,
        "path": request.url.path,
        "outcome": outcome.value,
        "user_id": principal.user.id if principal else None,
        "family_id": principal.family_id if principal else None,
        "auth_method": principal.auth_method.value if principal else None,
        **details,
    }

    user_display = principal.user.email if principal else "anonymous"
    auth_display = principal.auth_label if principal else "none"
    message = (
        f"API Request: {request.method} {request.url.path} - User: {user_display} "
        f"(Family: {fields['family_id']}) - Auth: {auth_display} - Outcome: {outcome.value}"
    )

    if outcome == AccessOutcome.ALLOWED:
        logger.info(message, extra=fields)
    else:
        logger.warning(message, extra=fields)
