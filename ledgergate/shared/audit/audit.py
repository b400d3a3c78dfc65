"""Audit trail for credential lifecycle changes (API keys, devices)."""

import logging
from collections.abc import Iterable
from contextvars import ContextVar
from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import Enum, Integer, String, inspect
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from ledgergate.database.base import Base, JSONType, UTCDateTime, utcnow

logger = logging.getLogger(__name__)

# ContextVar for tracking the principal of the current request
current_principal_ctx: ContextVar = ContextVar("current_principal", default=None)


class AuditAction(StrEnum):
    """Audit action types."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class AuditLog(Base):
    """Audit log entry for a change to a credential-bearing record."""

    __tablename__ = "audit_logs"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Entity information
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    document_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Action details
    action: Mapped[str] = mapped_column(
        Enum(AuditAction, native_enum=False, length=50),
        nullable=False,
        index=True,
    )
    timestamp: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        nullable=False,
        index=True,
    )

    # Actor tracking
    user_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    # State tracking
    before: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    after: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    diff: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)


def compute_diff(before: dict[str, Any], after: dict[str, Any]) -> dict[str, dict[str, Any]] | None:
    """Compute field-level differences between two record states.

    Args:
        before: Previous record state
        after: New record state

    Returns:
        Dictionary of changed fields with 'from' and 'to' values

    """
    diff = {}

    for key in set(before.keys()) | set(after.keys()):
        before_value = before.get(key)
        after_value = after.get(key)

        if before_value != after_value:
            if isinstance(before_value, datetime):
                before_value = before_value.isoformat()
            if isinstance(after_value, datetime):
                after_value = after_value.isoformat()

            diff[key] = {"from": before_value, "to": after_value}

    return diff if diff else None


def serialize_model(instance: Any, exclude: Iterable[str] = ()) -> dict[str, Any] | None:
    """Serialize a SQLAlchemy model to a dictionary for audit logging.

    Args:
        instance: SQLAlchemy model instance to serialize
        exclude: Column names left out of the snapshot (secret digests)

    Returns:
        Serialized model as dictionary or None

    """
    if instance is None:
        return None

    excluded = set(exclude)
    mapper = inspect(instance.__class__)
    data = {}

    for column in mapper.columns:
        if column.key in excluded:
            continue
        value = getattr(instance, column.key)
        if isinstance(value, datetime):
            data[column.key] = value.isoformat()
        else:
            data[column.key] = value

    return data


async def create_audit_log(
    session: AsyncSession,
    entity_type: str,
    document_id: str,
    action: AuditAction,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
    actor_id: int | None = None,
) -> AuditLog:
    """Create an audit log entry in the caller's transaction.

    Args:
        session: Database session
        entity_type: Table name of the model
        document_id: ID of the affected record
        action: Type of operation
        before: Record state before operation
        after: Record state after operation
        actor_id: Acting user; defaults to the current request's principal

    """
    if actor_id is None:
        principal = get_audit_principal()
        actor_id = principal.user.id if principal is not None else None

    diff = None
    if action == AuditAction.UPDATE and before and after:
        diff = compute_diff(before, after)

    audit_entry = AuditLog(
        entity_type=entity_type,
        document_id=document_id,
        action=action.value,
        user_id=str(actor_id) if actor_id is not None else None,
        before=before,
        after=after,
        diff=diff,
    )

    # The session is committed by the calling code
    session.add(audit_entry)
    return audit_entry


def set_current_principal(principal: Any) -> None:
    """Set the resolved principal in the context for audit logging."""
    current_principal_ctx.set(principal)


def get_audit_principal() -> Any:
    """Get the current principal from context, or None."""
    return current_principal_ctx.get()


def clear_current_principal() -> None:
    """Clear the current principal from context."""
    current_principal_ctx.set(None)
