"""API key service layer."""

import hashlib
import hmac
import logging
import secrets

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledgergate.config.settings import settings
from ledgergate.database.base import utcnow
from ledgergate.database.client import session_scope
from ledgergate.features.auth.scopes import GRANTABLE_SCOPES
from ledgergate.features.user.models import User
from ledgergate.shared.audit.audit import AuditAction, create_audit_log, serialize_model

from .exceptions import ApiKeyConflictException, ApiKeyValidationException
from .models import KEY_PREFIX_LENGTH, ApiKey

logger = logging.getLogger(__name__)

# Never written to the audit trail
SECRET_COLUMNS = ("key_digest",)


class ApiKeyService:
    """Service for API key issuance, lookup and revocation."""

    @staticmethod
    def generate_key() -> str:
        """Generate a new plaintext key (64 hex characters)."""
        return secrets.token_hex(32)

    @staticmethod
    def key_digest(plain_key: str) -> str:
        """Keyed HMAC-SHA256 digest of a plaintext key."""
        return hmac.new(settings.secret_key.encode("utf-8"), plain_key.encode("utf-8"), hashlib.sha256).hexdigest()

    @staticmethod
    def validate(name: str, scopes: list[str], tier: str) -> list[str]:
        """Check a new key's attributes.

        Returns:
            List of error messages (empty when valid)

        """
        errors: list[str] = []
        if not name or not name.strip():
            errors.append("Name can't be blank")
        if not scopes:
            errors.append("Scopes can't be blank")
        invalid = sorted(set(scopes) - GRANTABLE_SCOPES)
        if invalid:
            errors.append(f"Scopes contain invalid values: {', '.join(invalid)}")
        if tier not in settings.rate_limit_tiers:
            errors.append(f"Tier '{tier}' is not a known rate limit tier")
        return errors

    @staticmethod
    async def find_by_plain_key(session: AsyncSession, plain_key: str) -> ApiKey | None:
        """Look up a key (active or revoked) by its plaintext value.

        Candidates are narrowed by prefix, then every candidate's digest is
        compared in constant time.
        """
        if not plain_key or len(plain_key) < KEY_PREFIX_LENGTH:
            return None

        digest = ApiKeyService.key_digest(plain_key)
        stmt = select(ApiKey).where(ApiKey.key_prefix == plain_key[:KEY_PREFIX_LENGTH])
        result = await session.execute(stmt)

        match = None
        for candidate in result.scalars().all():
            if hmac.compare_digest(candidate.key_digest, digest):
                match = candidate
        return match

    @staticmethod
    async def get_active_key(session: AsyncSession, user_id: int) -> ApiKey | None:
        stmt = select(ApiKey).where(ApiKey.user_id == user_id, ApiKey.revoked_at.is_(None))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_key(
        session: AsyncSession,
        user: User,
        name: str,
        scopes: list[str],
        tier: str | None = None,
    ) -> tuple[ApiKey, str]:
        """Create a new key for `user`, revoking the one it replaces.

        Revocation, validation and insert share one SAVEPOINT: if the new key
        is invalid the old key stays active.

        Returns:
            Tuple of (stored ApiKey, plaintext key)

        Raises:
            ApiKeyValidationException: If name, scopes or tier are invalid
            ApiKeyConflictException: If a concurrent request created a key first

        """
        tier = tier or settings.default_api_key_tier
        scopes = list(dict.fromkeys(scopes))
        plain_key = ApiKeyService.generate_key()
        now = utcnow()

        try:
            async with session.begin_nested():
                stmt = (
                    select(ApiKey)
                    .where(ApiKey.user_id == user.id, ApiKey.revoked_at.is_(None))
                    .with_for_update()
                )
                replaced = list((await session.execute(stmt)).scalars().all())
                snapshots = [serialize_model(key, exclude=SECRET_COLUMNS) for key in replaced]
                for key in replaced:
                    key.revoked_at = now
                await session.flush()

                errors = ApiKeyService.validate(name, scopes, tier)
                if errors:
                    raise ApiKeyValidationException(errors)

                api_key = ApiKey(
                    user_id=user.id,
                    name=name.strip(),
                    key_prefix=plain_key[:KEY_PREFIX_LENGTH],
                    key_digest=ApiKeyService.key_digest(plain_key),
                    scopes=scopes,
                    tier=tier,
                )
                session.add(api_key)
                await session.flush()
        except ApiKeyValidationException as exc:
            logger.info(f"API key creation rejected for user {user.id}: {exc.extra.get('errors')}")
            raise
        except IntegrityError as exc:
            logger.warning(f"Concurrent API key creation for user {user.id}")
            raise ApiKeyConflictException() from exc

        for key, before in zip(replaced, snapshots, strict=True):
            await create_audit_log(
                session,
                entity_type=ApiKey.__tablename__,
                document_id=str(key.id),
                action=AuditAction.UPDATE,
                before=before,
                after=serialize_model(key, exclude=SECRET_COLUMNS),
            )
        await create_audit_log(
            session,
            entity_type=ApiKey.__tablename__,
            document_id=str(api_key.id),
            action=AuditAction.INSERT,
            after=serialize_model(api_key, exclude=SECRET_COLUMNS),
        )

        logger.info(f"API key {api_key.id} created for user {user.id} (replaced {len(replaced)})")
        return api_key, plain_key

    @staticmethod
    async def revoke_key(session: AsyncSession, api_key: ApiKey) -> bool:
        """Revoke a key. Idempotent; returns whether the key was active."""
        if not api_key.is_active:
            return False

        before = serialize_model(api_key, exclude=SECRET_COLUMNS)
        api_key.revoked_at = utcnow()
        await session.flush()

        await create_audit_log(
            session,
            entity_type=ApiKey.__tablename__,
            document_id=str(api_key.id),
            action=AuditAction.UPDATE,
            before=before,
            after=serialize_model(api_key, exclude=SECRET_COLUMNS),
        )
        logger.info(f"API key {api_key.id} revoked for user {api_key.user_id}")
        return True

    @staticmethod
    async def touch_last_used(session_factory: async_sessionmaker[AsyncSession], api_key_id: int) -> None:
        """Record the key's use in its own transaction.

        Bookkeeping only: a failure is logged and never affects the request.
        """
        try:
            async with session_scope(session_factory) as session:
                api_key = await session.get(ApiKey, api_key_id)
                if api_key is not None:
                    api_key.last_used_at = utcnow()
        except Exception as exc:
            logger.warning(f"Failed to update last_used_at for API key {api_key_id}: {exc!r}")
