"""Invite code service layer."""

import logging
import secrets

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledgergate.config.settings import settings
from ledgergate.shared.pagination.pagination import PaginationParams

from .exceptions import InvalidInviteCodeException, InviteCodeRequiredException
from .models import InviteCode

logger = logging.getLogger(__name__)


class InviteService:
    """Service for signup invite codes."""

    MAX_GENERATE_ATTEMPTS = 5

    @staticmethod
    def normalize(token: str) -> str:
        return token.strip().lower()

    @staticmethod
    async def get_by_token(session: AsyncSession, token: str) -> InviteCode | None:
        stmt = select(InviteCode).where(InviteCode.token == InviteService.normalize(token))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def check_signup_code(session: AsyncSession, token: str | None) -> None:
        """Gate a signup on its invite code.

        A code that is sent must exist even when codes are not required.

        Raises:
            InviteCodeRequiredException: If codes are required and none was sent
            InvalidInviteCodeException: If the code does not exist

        """
        if not token or not token.strip():
            if settings.require_invite_code:
                raise InviteCodeRequiredException()
            return

        if await InviteService.get_by_token(session, token) is None:
            logger.info("Signup attempted with an unknown invite code")
            raise InvalidInviteCodeException()

    @staticmethod
    async def claim(session: AsyncSession, token: str) -> bool:
        """Consume a code. Returns False if it was already claimed."""
        stmt = delete(InviteCode).where(InviteCode.token == InviteService.normalize(token))
        result = await session.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def generate(session: AsyncSession) -> InviteCode:
        """Create a new random code (8 lower-case hex characters)."""
        for _ in range(InviteService.MAX_GENERATE_ATTEMPTS):
            invite = InviteCode(token=secrets.token_hex(4))
            try:
                async with session.begin_nested():
                    session.add(invite)
            except IntegrityError:
                continue
            logger.info(f"Invite code {invite.id} generated")
            return invite

        raise RuntimeError("Could not generate a unique invite code")

    @staticmethod
    async def get_invite_codes(
        session: AsyncSession, pagination: PaginationParams
    ) -> tuple[list[InviteCode], int]:
        """Get paginated invite codes, newest first.

        Returns:
            Tuple of (invite codes, total_count)

        """
        total = (await session.execute(select(func.count()).select_from(InviteCode))).scalar_one()

        stmt = select(InviteCode).order_by(InviteCode.created_at.desc(), InviteCode.id.desc())
        if pagination.is_paginated:
            stmt = stmt.offset(pagination.skip).limit(pagination.limit)

        result = await session.execute(stmt)
        return list(result.scalars().all()), total

    @staticmethod
    async def delete_invite_code(session: AsyncSession, invite_id: int) -> bool:
        invite = await session.get(InviteCode, invite_id)
        if invite is None:
            return False

        await session.delete(invite)
        logger.info(f"Invite code {invite_id} deleted")
        return True
