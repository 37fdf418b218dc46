# File: fleet_tracker/application/dtos.py
"""
Data Transfer Objects (DTOs) for Fleet Tracking System

This module defines DTOs for data transfer between layers:
1. Input DTOs - Queries and requests received from the API / console
2. Output DTOs - Projections and error payloads sent back to callers
3. Telemetry DTOs - Messages produced by vehicle devices

DTO Principles:
- Validation at creation where the field has a fixed shape
- Domain rules (coordinate ranges, radius) stay in the domain and services so
  their failures keep their stable error codes
- No business logic, only data
- Serialization/deserialization support
"""

from typing import Dict, List, Optional, Any, Union
from datetime import datetime, timezone
import json

from pydantic import BaseModel, Field, ConfigDict, field_validator

from ..domain.models import VehicleStatus, Error, ConcurrencyConflictError


# ============================================================================
# BASE DTO CLASSES
# ============================================================================

class BaseDTO(BaseModel):
    """Base DTO with common functionality"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )

    def to_dict(self, exclude_none: bool = False, **kwargs) -> Dict[str, Any]:
        """Convert DTO to dictionary"""
        return self.model_dump(exclude_none=exclude_none, **kwargs)

    def to_json(self, **kwargs) -> str:
        """Convert DTO to JSON string"""
        return self.model_dump_json(**kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseDTO':
        """Create DTO from dictionary"""
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, json_str: str) -> 'BaseDTO':
        """Create DTO from JSON string"""
        return cls.model_validate(json.loads(json_str))


# ============================================================================
# VEHICLE DTOs
# ============================================================================

class VehicleSummaryDTO(BaseDTO):
    """Read projection of a vehicle"""
    id: str = Field(description="Vehicle ID")
    latitude: float = Field(description="Latitude")
    longitude: float = Field(description="Longitude")
    status: str = Field(description="Status name, e.g. Available")

    @classmethod
    def from_vehicle(cls, vehicle: Any) -> 'VehicleSummaryDTO':
        return cls(
            id=vehicle.id,
            latitude=vehicle.location.latitude,
            longitude=vehicle.location.longitude,
            status=vehicle.status.display_name
        )


class NearbyVehiclesQueryDTO(BaseDTO):
    """Proximity query parameters; ranges are validated by the query service"""
    latitude: float
    longitude: float
    radius_kilometers: float = Field(default=5.0, alias="radiusKilometers")


class UpdateVehicleStatusRequestDTO(BaseDTO):
    """Status update request carrying the optimistic-concurrency precondition"""
    expected_current_status: Union[int, str] = Field(alias="expectedCurrentStatus")
    new_status: Union[int, str] = Field(alias="newStatus")

    def parsed(self) -> tuple:
        """Statuses parsed to VehicleStatus where defined, raw values otherwise"""
        expected = VehicleStatus.parse(self.expected_current_status)
        new = VehicleStatus.parse(self.new_status)
        return (
            expected if expected is not None else self.expected_current_status,
            new if new is not None else self.new_status,
        )


# ============================================================================
# RESPONSE DTOs
# ============================================================================

class ApiSuccessDTO(BaseDTO):
    """Success payload for commands"""
    message: str


class ApiErrorDTO(BaseDTO):
    """Error payload echoing a failure code and message"""
    code: str
    message: str

    @classmethod
    def from_error(cls, error: Error) -> 'ApiErrorDTO':
        if isinstance(error, ConcurrencyConflictError):
            return ConcurrencyConflictDTO.from_error(error)
        return cls(code=error.code, message=error.message)


class ConcurrencyConflictDTO(ApiErrorDTO):
    """Conflict payload so the caller can re-fetch and retry"""
    expected_current_status: Optional[str] = None
    attempted_new_status: Optional[str] = None
    actual_current_status: Optional[str] = None

    @classmethod
    def from_error(cls, error: Error) -> 'ConcurrencyConflictDTO':
        data = error.to_dict()
        return cls(
            code=data["code"],
            message=data["message"],
            expected_current_status=_as_text(data.get("expected_current_status")),
            attempted_new_status=_as_text(data.get("attempted_new_status")),
            actual_current_status=_as_text(data.get("actual_current_status")),
        )


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


# ============================================================================
# TELEMETRY DTOs
# ============================================================================

class TelemetryMessageDTO(BaseDTO):
    """
    Telemetry message emitted by a vehicle device
    Accepts both snake_case and the devices' camelCase field names
    """
    vehicle_id: str = Field(alias="vehicleId", min_length=1)
    latitude: float
    longitude: float
    status: str = "Available"
    speed: Optional[float] = Field(default=None, ge=0)
    heading: Optional[float] = Field(default=None, ge=0, le=360)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    device_id: Optional[str] = Field(default=None, alias="deviceId")

    @field_validator('vehicle_id')
    @classmethod
    def validate_vehicle_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("vehicle_id cannot be blank")
        return v.strip()

    def passenger_fields(self) -> Dict[str, Any]:
        """Telemetry fields stored alongside the vehicle document"""
        return {
            "speed": self.speed,
            "heading": self.heading,
            "timestamp": self.timestamp,
            "device_id": self.device_id,
        }

    def to_camel_json(self) -> str:
        """Wire format used by devices"""
        return self.model_dump_json(by_alias=True)


def summaries_to_dicts(summaries: List[VehicleSummaryDTO]) -> List[Dict[str, Any]]:
    return [summary.to_dict() for summary in summaries]
