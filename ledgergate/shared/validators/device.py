"""Device descriptor validation."""

from collections.abc import Mapping
from typing import Any

REQUIRED_DEVICE_FIELDS = ("device_id", "device_name", "device_type", "os_version", "app_version")


def missing_device_fields(device: Mapping[str, Any] | None) -> list[str]:
    """Return the required device fields that are absent or blank.

    Args:
        device: Device descriptor as sent by the client (may be None)

    Returns:
        Names of the missing fields, in declaration order

    """
    if device is None:
        return list(REQUIRED_DEVICE_FIELDS)

    missing = []
    for field in REQUIRED_DEVICE_FIELDS:
        value = device.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    return missing
