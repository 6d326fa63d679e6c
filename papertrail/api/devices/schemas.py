"""Device registration request and response schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from papertrail.models.device import DeviceType


class DeviceRegisterRequest(BaseModel):
    """Request schema for POST /v1/devices/register."""

    device_name: Optional[str] = Field(default=None, max_length=255, description="Human label for the device")
    device_type: DeviceType = Field(default=DeviceType.DESKTOP)
    user_agent: Optional[str] = Field(default=None, description="Client user agent string")

    model_config = {"json_schema_extra": {"example": {
        "device_name": "Mobile (Linux armv8l) - 2026-10-19",
        "device_type": "mobile",
        "user_agent": "papertrail-client/1.0.0 (Android 14; Mobile)",
    }}}


class OperationResult(BaseModel):
    success: bool
