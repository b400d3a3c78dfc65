"""Invite code model."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledgergate.database.base import Base, TimestampMixin


class InviteCode(Base, TimestampMixin):
    """Single-use code gating signup. Deleted once claimed."""

    __tablename__ = "invite_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
