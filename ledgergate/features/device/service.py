"""Device registry service."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledgergate.database.base import utcnow
from ledgergate.features.user.models import User
from ledgergate.shared.audit.audit import AuditAction, create_audit_log, serialize_model
from ledgergate.shared.validators.device import REQUIRED_DEVICE_FIELDS, missing_device_fields

from .exceptions import InvalidDeviceInfoException
from .models import Device
from .schemas import DeviceInfo

logger = logging.getLogger(__name__)


class DeviceService:
    """Service for the per-user device registry."""

    MAX_UPSERT_ATTEMPTS = 3

    @staticmethod
    def validate_device_info(device_info: DeviceInfo | None) -> dict[str, str]:
        """Check that every required descriptor field is present and non-blank.

        Returns:
            The stripped device attributes

        Raises:
            InvalidDeviceInfoException: If any required field is missing

        """
        raw = device_info.model_dump() if device_info is not None else None
        missing = missing_device_fields(raw)
        if missing:
            raise InvalidDeviceInfoException(missing)

        assert raw is not None
        return {field: raw[field].strip() for field in REQUIRED_DEVICE_FIELDS}

    @staticmethod
    async def get_device(session: AsyncSession, user_id: int, device_id: str) -> Device | None:
        """Get a device by its natural key."""
        stmt = select(Device).where(Device.user_id == user_id, Device.device_id == device_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert(session: AsyncSession, user: User, device_info: DeviceInfo | None) -> Device:
        """Register a device or refresh its attributes and `last_seen_at`.

        Idempotent under (user, device_id). A plain find-then-create can race
        with another first-time login from the same device, so the insert runs
        in a SAVEPOINT and a unique-constraint conflict falls back to updating
        the row that won.

        Args:
            session: Database session
            user: Owner of the device
            device_info: Client-supplied descriptor

        Returns:
            The stored Device

        Raises:
            InvalidDeviceInfoException: If the descriptor is incomplete (nothing is written)

        """
        attrs = DeviceService.validate_device_info(device_info)

        for attempt in range(1, DeviceService.MAX_UPSERT_ATTEMPTS + 1):
            now = utcnow()
            device = await DeviceService.get_device(session, user.id, attrs["device_id"])

            if device is not None:
                for key, value in attrs.items():
                    setattr(device, key, value)
                device.last_seen_at = now
                await session.flush()
                return device

            device = Device(user_id=user.id, last_seen_at=now, **attrs)
            try:
                async with session.begin_nested():
                    session.add(device)
            except IntegrityError:
                logger.info(
                    f"Concurrent registration of device {attrs['device_id']} for user {user.id}, "
                    f"retrying (attempt {attempt})"
                )
                continue

            await create_audit_log(
                session,
                entity_type=Device.__tablename__,
                document_id=str(device.id),
                action=AuditAction.INSERT,
                after=serialize_model(device),
                actor_id=user.id,
            )
            logger.info(f"Device registered for user {user.id}: {device.device_name} ({device.device_type})")
            return device

        raise RuntimeError(f"Could not register device {attrs['device_id']} for user {user.id}")

    @staticmethod
    async def touch(session: AsyncSession, user_id: int, device_id: str | None) -> Device | None:
        """Update `last_seen_at` of a known device; unknown devices are ignored."""
        if not device_id:
            return None

        device = await DeviceService.get_device(session, user_id, device_id)
        if device is not None:
            device.last_seen_at = utcnow()
            await session.flush()
        return device
