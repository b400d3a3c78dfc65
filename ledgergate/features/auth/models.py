"""Authentication models (device-bound OAuth clients and bearer token pairs)."""

from datetime import UTC, datetime

from sqlalchemy import ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from ledgergate.database.base import Base, JSONType, TimestampMixin, UTCDateTime, utcnow


class OAuthApplication(Base, TimestampMixin):
    """Client-credential pair owned by exactly one device.

    Created lazily the first time tokens are issued for the device; it is never
    versioned, only its token pairs are.
    """

    __tablename__ = "oauth_applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[int] = mapped_column(ForeignKey("devices.id"), nullable=False, unique=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    uid: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    secret_digest: Mapped[str] = mapped_column(String(64), nullable=False)
    scopes: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)


class AccessToken(Base):
    """Bearer token pair: an access token and its single-use refresh token.

    Only SHA-256 digests of the token values are stored. A pair is active while
    it is neither revoked nor expired; at most one non-revoked pair exists per
    application. Revoked pairs are kept for forensic traceability.
    """

    __tablename__ = "access_tokens"
    __table_args__ = (
        Index(
            "uq_access_tokens_one_active_per_application",
            "application_id",
            unique=True,
            postgresql_where=text("revoked_at IS NULL"),
            sqlite_where=text("revoked_at IS NULL"),
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Ownership
    application_id: Mapped[int] = mapped_column(ForeignKey("oauth_applications.id"), nullable=False, index=True)
    resource_owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    # Token data
    token_digest: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    refresh_token_digest: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    scopes: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    # Lifecycle
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, index=True)

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) >= self.expires_at

    def is_active(self, now: datetime | None = None) -> bool:
        return not self.is_revoked and not self.is_expired(now)

    @property
    def expires_in(self) -> int:
        """Lifetime of the pair in seconds, as issued."""
        return int((self.expires_at - self.created_at).total_seconds())
