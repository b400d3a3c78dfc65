"""API key management router."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledgergate.database.dependencies import get_db_session
from ledgergate.features.auth.dependencies import require_scope
from ledgergate.features.auth.principal import Principal
from ledgergate.features.auth.scopes import READ, WRITE

from .exceptions import ApiKeyNotFound
from .schemas import ApiKeyCreatedResponse, ApiKeyCreateRequest, ApiKeyResponse
from .service import ApiKeyService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api-keys", tags=["API Keys"])


@router.post("", response_model=ApiKeyCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_api_key(
    data: ApiKeyCreateRequest,
    principal: Principal = Depends(require_scope(WRITE)),
    session: AsyncSession = Depends(get_db_session),
):
    """Create an API key, replacing the caller's current one.

    - **name**: Label shown in settings and logs
    - **scopes**: `read` and/or `read_write`
    - **tier**: Rate limit tier (defaults to the standard tier)

    The plaintext key is only returned by this call.
    """
    api_key, plain_key = await ApiKeyService.create_key(
        session, principal.user, name=data.name, scopes=data.scopes, tier=data.tier
    )
    await session.commit()
    return ApiKeyCreatedResponse(**ApiKeyResponse.model_validate(api_key).model_dump(), key=plain_key)


@router.get("/current", response_model=ApiKeyResponse)
async def get_current_api_key(
    principal: Principal = Depends(require_scope(READ)),
    session: AsyncSession = Depends(get_db_session),
):
    """Get the caller's active API key."""
    api_key = await ApiKeyService.get_active_key(session, principal.user.id)
    if api_key is None:
        raise ApiKeyNotFound()
    return ApiKeyResponse.model_validate(api_key)


@router.delete("/current")
async def revoke_current_api_key(
    principal: Principal = Depends(require_scope(WRITE)),
    session: AsyncSession = Depends(get_db_session),
):
    """Revoke the caller's active API key."""
    api_key = await ApiKeyService.get_active_key(session, principal.user.id)

    if api_key is not None and await ApiKeyService.revoke_key(session, api_key):
        await session.commit()
        return {"message": "API key revoked successfully"}
    else:
        return {"message": "No active API key to revoke"}
