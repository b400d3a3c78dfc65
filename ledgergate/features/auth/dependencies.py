"""Access gate dependencies for FastAPI.

Per request: resolve the credential, count API-key requests against their
quota, authorize the endpoint's scope. Every failure is logged through
`log_access` before the error response is returned.
"""

from fastapi import BackgroundTasks, Depends, Request, Response
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledgergate.database.dependencies import get_db_session, get_db_session_factory
from ledgergate.features.api_key.service import ApiKeyService
from ledgergate.features.rate_limit.dependencies import get_api_rate_limiter
from ledgergate.features.rate_limit.exceptions import RateLimitExceededException
from ledgergate.features.rate_limit.service import ApiRateLimiter
from ledgergate.shared.audit.access_log import AccessOutcome, log_access
from ledgergate.shared.audit.audit import set_current_principal

from .exceptions import ForbiddenException, InsufficientScopeException, UnauthorizedException
from .principal import Principal
from .resolver import CredentialResolver
from .scopes import authorize

# Declared for the OpenAPI schema; the resolver reads the raw headers itself
bearer_scheme = HTTPBearer(auto_error=False)
api_key_scheme = APIKeyHeader(name="X-Api-Key", auto_error=False)


async def get_current_principal(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    _bearer: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    api_key: str | None = Depends(api_key_scheme),
    session: AsyncSession = Depends(get_db_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
    rate_limiter: ApiRateLimiter = Depends(get_api_rate_limiter),
) -> Principal:
    """Resolve the caller and, for API keys, enforce the quota.

    Raises:
        UnauthorizedException: If no valid credential was presented
        RateLimitExceededException: If the API key's window quota is used up

    """
    try:
        principal = await CredentialResolver.resolve(session, request.headers.get("Authorization"), api_key)
    except UnauthorizedException as exc:
        outcome = AccessOutcome.MISSING_CREDENTIAL if exc.is_missing else AccessOutcome.INVALID_CREDENTIAL
        log_access(request, outcome, reason=exc.reason.value)
        raise

    request.state.access_user_id = principal.user.id
    request.state.access_user_email = principal.user.email
    request.state.access_auth_method = principal.auth_method.value
    set_current_principal(principal)

    if principal.api_key is not None:
        background_tasks.add_task(ApiKeyService.touch_last_used, session_factory, principal.api_key.id)

        rate_limit = await rate_limiter.check_and_increment(principal.api_key)
        if not rate_limit.allowed:
            log_access(
                request,
                AccessOutcome.RATE_LIMIT_EXCEEDED,
                principal,
                api_key_name=principal.api_key.name,
                current_count=rate_limit.current_count,
                limit=rate_limit.limit,
            )
            raise RateLimitExceededException(rate_limit)

        response.headers.update(rate_limit.headers())

    return principal


def require_scope(required_scope: str):
    """Dependency factory to require a scope.

    Usage:
        Depends(require_scope(READ))
        Depends(require_scope(WRITE))
    """

    async def scope_checker(request: Request, principal: Principal = Depends(get_current_principal)) -> Principal:
        if not authorize(principal.scopes, required_scope):
            log_access(
                request,
                AccessOutcome.INSUFFICIENT_SCOPE,
                principal,
                required_scope=required_scope,
                scopes=sorted(principal.scopes),
            )
            raise InsufficientScopeException(required_scope)

        log_access(request, AccessOutcome.ALLOWED, principal, required_scope=required_scope)
        return principal

    return scope_checker


def require_admin(required_scope: str):
    """Dependency factory to require a family admin holding `required_scope`."""

    async def admin_checker(principal: Principal = Depends(require_scope(required_scope))) -> Principal:
        if not principal.user.is_admin:
            raise ForbiddenException("Only family admins can perform this action")
        return principal

    return admin_checker
