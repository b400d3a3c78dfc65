"""Device schemas (DTOs)."""

from pydantic import BaseModel, Field


class DeviceInfo(BaseModel):
    """Device descriptor sent with signup, login and refresh.

    Fields are optional at the schema level so an incomplete descriptor is
    reported as `invalid_device_info` (400) rather than a body validation error.
    """

    device_id: str | None = Field(None, max_length=255, description="Unique device identifier")
    device_name: str | None = Field(None, max_length=255, description="Name of the device (e.g. 'My iPhone')")
    device_type: str | None = Field(None, max_length=50, description="Platform (e.g. 'iOS', 'Android')")
    os_version: str | None = Field(None, max_length=50, description="Operating system version")
    app_version: str | None = Field(None, max_length=50, description="Application version")
