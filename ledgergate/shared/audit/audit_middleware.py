"""Middleware that scopes the audit principal context to one request."""

import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .audit import clear_current_principal

logger = logging.getLogger("ledgergate.access")


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Clears the principal context and logs completed authenticated requests.

    The access gate copies the caller's id, email and auth method onto
    `request.state` as plain values; the ORM user may be detached by the time
    the response is built. Requests that never resolved a principal (public
    endpoints, gate failures) are logged by the gate itself.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process request and log its completion."""
        clear_current_principal()
        request.state.access_user_id = None
        started = time.perf_counter()

        try:
            response: Response = await call_next(request)

            user_id = getattr(request.state, "access_user_id", None)
            if user_id is not None:
                duration_ms = round((time.perf_counter() - started) * 1000, 2)
                logger.info(
                    f"API Request completed: {request.method} {request.url.path} - "
                    f"User: {request.state.access_user_email} - Status: {response.status_code}",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": response.status_code,
                        "user_id": user_id,
                        "auth_method": request.state.access_auth_method,
                        "duration_ms": duration_ms,
                    },
                )

            return response
        finally:
            clear_current_principal()
