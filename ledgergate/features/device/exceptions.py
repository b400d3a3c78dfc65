"""Device registry exceptions."""

from fastapi import status

from ledgergate.shared.errors.exceptions import ApiException


class InvalidDeviceInfoException(ApiException):
    """Raised when the device descriptor is missing or incomplete."""

    def __init__(self, missing_fields: list[str] | None = None):
        super().__init__(
            error="invalid_device_info",
            message="Device information is required",
            status_code=status.HTTP_400_BAD_REQUEST,
            extra={"missing_fields": missing_fields} if missing_fields else None,
        )
