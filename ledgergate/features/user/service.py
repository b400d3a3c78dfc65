"""User service layer."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledgergate.shared.validators.password import password_policy_errors

from .exceptions import EmailAlreadyExists, PasswordPolicyViolation
from .models import Family, User, UserRole, UserStatus
from .schemas import UserRegisterRequest

logger = logging.getLogger(__name__)


class UserService:
    """Service for user operations."""

    @staticmethod
    def check_password_policy(password: str) -> None:
        """Raise PasswordPolicyViolation listing every broken password rule."""
        errors = password_policy_errors(password)
        if errors:
            raise PasswordPolicyViolation(errors)

    @staticmethod
    async def get_user(session: AsyncSession, user_id: int) -> User | None:
        """Get user by ID."""
        return await session.get(User, user_id)

    @staticmethod
    async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
        stmt = select(User).where(User.email == email.strip().lower())
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def register_user(session: AsyncSession, data: UserRegisterRequest) -> User:
        """Register a new user as the admin of a new family.

        Args:
            session: Database session
            data: User registration data

        Returns:
            Created User object (flushed, so it has an id)

        Raises:
            PasswordPolicyViolation: If the password breaks a complexity rule
            EmailAlreadyExists: If email already exists

        """
        UserService.check_password_policy(data.password)

        email = data.email.strip().lower()
        if await UserService.get_user_by_email(session, email):
            raise EmailAlreadyExists()

        # Hash password (salt handled automatically by pwdlib using Argon2)
        hashed_password = User.hash_password(data.password)

        family = Family(name=f"{data.last_name} family")
        user = User(
            email=email,
            first_name=data.first_name,
            last_name=data.last_name,
            family=family,
            hashed_password=hashed_password,
            role=UserRole.ADMIN.value,
            status=UserStatus.ACTIVE.value,
        )

        try:
            async with session.begin_nested():
                session.add(user)
        except IntegrityError as err:
            # Lost a race with a concurrent signup for the same email
            raise EmailAlreadyExists() from err

        logger.info(f"New user registered: {user.email} (family {user.family_id})")
        return user
