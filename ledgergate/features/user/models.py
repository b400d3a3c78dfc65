"""User and family domain models."""

from datetime import UTC, datetime
from enum import StrEnum

from pwdlib import PasswordHash
from sqlalchemy import Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledgergate.database.base import Base, TimestampMixin, UTCDateTime


class UserRole(StrEnum):
    """User roles within a family.

    ADMIN: Owner of the family. Created by signup; may manage invite codes.
    MEMBER: Regular family member.
    """

    ADMIN = "admin"
    MEMBER = "member"


class UserStatus(StrEnum):
    """User account status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    LOCKED = "locked"


pwd_hasher = PasswordHash.recommended()


class Family(Base, TimestampMixin):
    """Tenant context every user belongs to. Financial data is scoped to it."""

    __tablename__ = "families"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    users: Mapped[list["User"]] = relationship(back_populates="family")


class User(Base, TimestampMixin):
    """User model for authentication and authorization."""

    __tablename__ = "users"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Tenancy
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id"), nullable=False, index=True)
    family: Mapped[Family] = relationship(back_populates="users", lazy="joined")

    # Authentication
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    otp_secret: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Authorization
    role: Mapped[str] = mapped_column(
        Enum(UserRole, native_enum=False, length=50),
        nullable=False,
        default=UserRole.MEMBER.value,
        server_default=UserRole.MEMBER.value,
    )

    # Status
    status: Mapped[str] = mapped_column(
        Enum(UserStatus, native_enum=False, length=50),
        nullable=False,
        default=UserStatus.ACTIVE.value,
        server_default=UserStatus.ACTIVE.value,
        index=True,
    )

    # Audit
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    failed_login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    locked_until: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    @property
    def is_active(self) -> bool:
        """Computed property: user is active if status is ACTIVE."""
        return self.status == UserStatus.ACTIVE.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def otp_required(self) -> bool:
        return bool(self.otp_secret)

    def verify_password(self, plain_password: str) -> bool:
        """Verify a password against the hash using Argon2.

        Salt is automatically extracted from the hash by pwdlib.
        """
        return pwd_hasher.verify(plain_password, self.hashed_password)

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using Argon2.

        Salt is automatically generated and embedded in the returned hash.
        """
        return pwd_hasher.hash(password)

    def is_locked(self) -> bool:
        """Check if account is locked."""
        locked_until = self.locked_until
        if locked_until:
            if locked_until > datetime.now(UTC):
                return True
        return False

    @property
    def can_authenticate(self) -> bool:
        """Whether credentials owned by this user may currently be used."""
        return self.is_active and not self.is_locked()
