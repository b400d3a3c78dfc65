"""API key model."""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from ledgergate.database.base import Base, JSONType, TimestampMixin, UTCDateTime

KEY_PREFIX_LENGTH = 8


class ApiKey(Base, TimestampMixin):
    """Long-lived credential for programmatic access.

    The plaintext key is shown once on creation; only its first characters
    (for lookup and display) and a keyed HMAC digest are stored. A user holds
    at most one non-revoked key.
    """

    __tablename__ = "api_keys"
    __table_args__ = (
        Index(
            "uq_api_keys_one_active_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("revoked_at IS NULL"),
            sqlite_where=text("revoked_at IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    key_prefix: Mapped[str] = mapped_column(String(KEY_PREFIX_LENGTH), nullable=False, index=True)
    key_digest: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    scopes: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    tier: Mapped[str] = mapped_column(String(50), nullable=False)

    last_used_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, index=True)

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None

    @property
    def display_key(self) -> str:
        return f"{self.key_prefix}{'*' * 8}"
