from enum import Enum
from typing import Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from biometric_bridge.utils.profiles import Modality


class FailureSource(str, Enum):
    DEVICE = "device"
    TRANSPORT = "transport"
    ENVELOPE = "envelope"


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Templates(CamelModel):
    raw: str
    session_key: str = Field("", alias="sessionKey")
    session_key_cipher_id: str = Field("", alias="sessionKeyCipherId")
    integrity_code: str = Field("", alias="integrityCode")


class DeviceInfo(CamelModel):
    model: str = "Unknown"
    manufacturer: str = "Unknown"
    device_provider_id: str = Field("Unknown", alias="deviceProviderId")
    serial_number: str = Field("", alias="serialNumber")
    system_id: str = Field("", alias="systemId")
    driver_version: str = Field("Unknown", alias="driverVersion")
    driver_id: str = Field("Unknown", alias="driverId")
    modality_type: str = Field("", alias="modalityType")
    device_type: str = Field("", alias="deviceType")


class CaptureSuccess(CamelModel):
    success: Literal[True] = True
    error_code: Literal[0] = Field(0, alias="errorCode")
    error_message: str = Field("Capture Success", alias="errorMessage")
    # passed through as reported, even outside 0-100
    quality_score: int = Field(alias="qScore")
    match_points: int = Field(0, alias="nmPoints")
    modality: Modality = Field(alias="type")
    templates: Templates
    device_info: DeviceInfo = Field(alias="deviceInfo")
    captured_at: str = Field(alias="timestamp")


class CaptureFailure(CamelModel):
    success: Literal[False] = False
    error_code: int = Field(alias="errorCode")
    error_message: str = Field(alias="errorMessage")
    quality_score: int = Field(0, alias="qScore")
    match_points: int = Field(0, alias="nmPoints")
    modality: Modality = Field(alias="type")
    templates: None = None
    device_info: None = Field(None, alias="deviceInfo")
    captured_at: str = Field(alias="timestamp")
    source: FailureSource = Field(FailureSource.ENVELOPE, exclude=True)

    @model_validator(mode="after")
    def _nonzero_code(self):
        if self.error_code == 0:
            raise ValueError("A failed capture cannot carry error code 0")
        return self


CaptureResult = Union[CaptureSuccess, CaptureFailure]


class CaptureRequest(CamelModel):
    """Optional overrides accepted by the capture endpoints."""

    timeout: Optional[int] = Field(None, gt=0)
    post_capture_timeout: Optional[int] = Field(None, gt=0, alias="pTimeout")
    page_count: Optional[int] = Field(None, ge=0, alias="pgCount")
    auth_key: Optional[str] = Field(None, alias="mantrakey")
    auth_hash: Optional[str] = Field(None, alias="mantrakeyHash")


class ConnectionStatus(BaseModel):
    connected: bool
    endpoint_used: Optional[str] = None
    response_time_ms: Optional[int] = None
    error: Optional[str] = None
    raw_response: Optional[str] = None
    raw_body: Optional[bytes] = Field(None, exclude=True, repr=False)
    status_code: Optional[int] = None


class DeviceHealth(CamelModel):
    available: bool = False
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    status: str = "unknown"
    driver_version: Optional[str] = Field(None, alias="rdsVersion")
    driver_id: Optional[str] = Field(None, alias="rdsId")


class RDServiceHealth(CamelModel):
    connected: bool
    url: Optional[str] = None
    response_time: Optional[int] = Field(None, alias="responseTime")
    error: Optional[str] = None


class HealthResponse(CamelModel):
    status: str
    service: str
    timestamp: str
    rdservice: RDServiceHealth
    devices: Dict[Modality, DeviceHealth]
