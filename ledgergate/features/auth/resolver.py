"""Resolve request credentials (bearer token or API key) to a Principal."""

import logging

import jwt
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgergate.database.base import utcnow
from ledgergate.features.api_key.service import ApiKeyService
from ledgergate.features.user.models import User

from .exceptions import CredentialFailure, UnauthorizedException
from .models import AccessToken
from .principal import Principal
from .tokens import decode_access_token, token_digest

logger = logging.getLogger(__name__)


class CredentialResolver:
    """Turn raw header material into a Principal or an UnauthorizedException.

    Only one scheme is evaluated per request: when an Authorization header is
    present the bearer path decides, and X-Api-Key is ignored.
    """

    @staticmethod
    async def resolve(session: AsyncSession, authorization: str | None, api_key: str | None) -> Principal:
        if authorization:
            scheme, token = get_authorization_scheme_param(authorization)
            if scheme.lower() != "bearer" or not token:
                raise UnauthorizedException(CredentialFailure.INVALID)
            return await CredentialResolver.resolve_bearer(session, token)

        if api_key:
            return await CredentialResolver.resolve_api_key(session, api_key)

        raise UnauthorizedException(CredentialFailure.MISSING)

    @staticmethod
    async def _load_user(session: AsyncSession, user_id: int) -> User:
        user = await session.get(User, user_id)
        if user is None:
            raise UnauthorizedException(CredentialFailure.UNKNOWN_USER)
        if not user.can_authenticate:
            raise UnauthorizedException(CredentialFailure.INACTIVE_USER)
        return user

    @staticmethod
    async def resolve_bearer(session: AsyncSession, token: str) -> Principal:
        """Resolve an access token.

        The signature and claims are checked first; the stored pair is
        authoritative for expiry and revocation.
        """
        try:
            payload = decode_access_token(token)
        except jwt.ExpiredSignatureError as err:
            raise UnauthorizedException(CredentialFailure.EXPIRED) from err
        except jwt.InvalidTokenError as err:
            raise UnauthorizedException(CredentialFailure.INVALID) from err

        stmt = select(AccessToken).where(AccessToken.token_digest == token_digest(token))
        result = await session.execute(stmt)
        stored = result.scalar_one_or_none()

        if stored is None:
            raise UnauthorizedException(CredentialFailure.INVALID)
        if stored.is_expired(utcnow()):
            raise UnauthorizedException(CredentialFailure.EXPIRED)
        if stored.is_revoked:
            raise UnauthorizedException(CredentialFailure.REVOKED)
        if str(payload["sub"]) != str(stored.resource_owner_id):
            logger.error(f"Access token {stored.id} subject does not match its owner")
            raise UnauthorizedException(CredentialFailure.INVALID)

        user = await CredentialResolver._load_user(session, stored.resource_owner_id)
        return Principal.from_access_token(user, stored)

    @staticmethod
    async def resolve_api_key(session: AsyncSession, plain_key: str) -> Principal:
        api_key = await ApiKeyService.find_by_plain_key(session, plain_key.strip())

        if api_key is None:
            raise UnauthorizedException(CredentialFailure.INVALID)
        if not api_key.is_active:
            raise UnauthorizedException(CredentialFailure.REVOKED)

        user = await CredentialResolver._load_user(session, api_key.user_id)
        return Principal.from_api_key(user, api_key)
