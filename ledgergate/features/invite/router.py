"""Invite code administration router."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledgergate.database.dependencies import get_db_session
from ledgergate.features.auth.dependencies import require_admin
from ledgergate.features.auth.principal import Principal
from ledgergate.features.auth.scopes import READ, WRITE
from ledgergate.shared.pagination.pagination import PaginationParams

from .exceptions import InviteCodeNotFound
from .schemas import InviteCodeListResponse, InviteCodeResponse
from .service import InviteService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/invite-codes", tags=["Invite Codes"])


@router.get("", response_model=InviteCodeListResponse, dependencies=[Depends(require_admin(READ))])
async def list_invite_codes(
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db_session),
):
    """List invite codes (admin only).

    - `page`: Page number (1-indexed, default: 1)
    - `page_size`: Items per page (default: 50, max: 1000)
    """
    invite_codes, total = await InviteService.get_invite_codes(session, pagination)
    return InviteCodeListResponse(
        invite_codes=[InviteCodeResponse.model_validate(code) for code in invite_codes],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.post("", response_model=InviteCodeResponse, status_code=status.HTTP_201_CREATED)
async def create_invite_code(
    principal: Principal = Depends(require_admin(WRITE)),
    session: AsyncSession = Depends(get_db_session),
):
    """Generate a new invite code (admin only)."""
    invite = await InviteService.generate(session)
    await session.commit()
    logger.info(f"Invite code generated by admin {principal.user.id}")
    return InviteCodeResponse.model_validate(invite)


@router.delete("/{invite_id}")
async def delete_invite_code(
    invite_id: int,
    principal: Principal = Depends(require_admin(WRITE)),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete an invite code (admin only)."""
    success = await InviteService.delete_invite_code(session, invite_id)
    if not success:
        raise InviteCodeNotFound()

    await session.commit()
    logger.info(f"Invite code {invite_id} deleted by admin {principal.user.id}")
    return {"message": "Invite code deleted successfully"}
