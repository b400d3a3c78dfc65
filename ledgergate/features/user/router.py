"""User router (API endpoints)."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ledgergate.features.auth.dependencies import require_scope
from ledgergate.features.auth.principal import AuthMethod, Principal
from ledgergate.features.auth.scopes import READ

from .schemas import UserResponse

router = APIRouter(prefix="/users", tags=["Users"])


class CurrentUserResponse(BaseModel):
    """Current user plus the credential the request was made with."""

    user: UserResponse
    family_id: int
    auth_method: AuthMethod
    scopes: list[str]


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user_info(principal: Principal = Depends(require_scope(READ))):
    """Get current user information."""
    return CurrentUserResponse(
        user=UserResponse.model_validate(principal.user),
        family_id=principal.family_id,
        auth_method=principal.auth_method,
        scopes=sorted(principal.scopes),
    )
