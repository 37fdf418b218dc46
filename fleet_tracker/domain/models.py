# File: fleet_tracker/domain/models.py
"""
Domain Models for Fleet Tracking System
Following Domain-Driven Design (DDD) principles with rich domain models

This module contains:
1. Result Types: Typed success/failure values passed across layers
2. Value Objects: Immutable objects with no identity, only values
3. Enums: Type enumerations for domain concepts
4. Domain Events: Events representing business occurrences

Expected business failures are returned as Result values carrying a stable
error code. Exceptions are reserved for programmer errors.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Generic, TypeVar, Union
from datetime import datetime, timezone
from enum import Enum, IntEnum
import math
import uuid


T = TypeVar('T')

EARTH_RADIUS_KM = 6371.0


# ============================================================================
# RESULT TYPES
# ============================================================================

class ErrorCodes:
    """Stable error codes shared by every layer"""
    INVALID_ID = "Vehicle.InvalidId"
    INVALID_USER_ID = "Vehicle.InvalidUserId"
    NOT_FOUND = "Vehicle.NotFound"
    ALREADY_EXISTS = "Vehicle.AlreadyExists"
    CONCURRENCY_CONFLICT = "Vehicle.ConcurrencyConflict"
    INVALID_STATUS = "Vehicle.InvalidStatus"
    NOT_AVAILABLE = "Vehicle.NotAvailable"
    NOT_RENTED = "Vehicle.NotRented"
    INVALID_RADIUS = "Vehicle.InvalidRadius"
    INVALID_LATITUDE = "Location.InvalidLatitude"
    INVALID_LONGITUDE = "Location.InvalidLongitude"
    UNAUTHORIZED_TRANSITION = "VehicleStatus.UnauthorizedTransition"
    INVALID_ROLE = "User.InvalidRole"
    INVALID_TELEMETRY = "Telemetry.InvalidMessage"


@dataclass(frozen=True)
class Error:
    """
    Value Object: Failure description with a stable code
    The code is what callers branch on, the message is for humans
    """
    code: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


@dataclass(frozen=True)
class ConcurrencyConflictError(Error):
    """
    Error raised by the optimistic concurrency check
    Carries the statuses the caller needs to re-fetch and retry
    """
    expected_status: Any = None
    attempted_status: Any = None
    actual_status: Any = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "expected_current_status": _status_name(self.expected_status),
            "attempted_new_status": _status_name(self.attempted_status),
            "actual_current_status": _status_name(self.actual_status),
        })
        return data


class Unit:
    """Payload for successful operations that return nothing"""
    _instance: Optional['Unit'] = None

    def __new__(cls) -> 'Unit':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNIT"


UNIT = Unit()


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Functional result type for passing success/failure across layers
    Exactly one of value or error is meaningful
    """
    is_success: bool
    value: Optional[T] = None
    error: Optional[Error] = None

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    @classmethod
    def success(cls, value: T) -> 'Result[T]':
        return cls(True, value, None)

    @classmethod
    def failure(cls, error: Error) -> 'Result[T]':
        if error is None:
            raise ValueError("A failed result requires an error")
        return cls(False, None, error)

    @classmethod
    def fail(cls, code: str, message: str) -> 'Result[T]':
        """Shorthand for failure(Error(code, message))"""
        return cls.failure(Error(code, message))


# ============================================================================
# ENUMS FOR DOMAIN TYPES
# ============================================================================

class VehicleStatus(IntEnum):
    """
    Enumeration of vehicle statuses
    UNKNOWN is a sentinel for uninitialised data, never a transition target
    """
    UNKNOWN = 0
    AVAILABLE = 1
    RENTED = 2
    MAINTENANCE = 3
    OUT_OF_SERVICE = 4

    @property
    def display_name(self) -> str:
        """Name used in documents and API payloads"""
        names = {
            VehicleStatus.UNKNOWN: "Unknown",
            VehicleStatus.AVAILABLE: "Available",
            VehicleStatus.RENTED: "Rented",
            VehicleStatus.MAINTENANCE: "Maintenance",
            VehicleStatus.OUT_OF_SERVICE: "OutOfService",
        }
        return names[self]

    @classmethod
    def parse(cls, value: Any) -> Optional['VehicleStatus']:
        """
        Parse a status from a member, an int or a name
        Returns None for anything that is not a defined status
        """
        if isinstance(value, VehicleStatus):
            return value

        if isinstance(value, bool):
            return None

        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                return None

        if isinstance(value, str):
            key = value.strip().replace("_", "").replace(" ", "").lower()
            for status in cls:
                if key in (status.display_name.lower(), status.name.replace("_", "").lower()):
                    return status
            if key.isdigit():
                return cls.parse(int(key))

        return None

    def __str__(self) -> str:
        return self.display_name


def _status_name(value: Any) -> Any:
    if isinstance(value, VehicleStatus):
        return value.display_name
    return value


class EventType(str, Enum):
    """Closed set of domain event tags used for dispatch"""
    VEHICLE_STATUS_CHANGED = "vehicle.status_changed"
    VEHICLE_LOCATION_UPDATED = "vehicle.location_updated"


# ============================================================================
# DOMAIN PRIMITIVES / VALUE OBJECTS
# ============================================================================

def _is_coordinate(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_valid_latitude(latitude: float) -> bool:
    return _is_coordinate(latitude) and -90 <= latitude <= 90


def _is_valid_longitude(longitude: float) -> bool:
    return _is_coordinate(longitude) and -180 <= longitude <= 180


@dataclass(frozen=True)
class Location:
    """
    Value Object: Geographic coordinate pair
    Immutable, compared and hashed by latitude and longitude
    """
    latitude: float
    longitude: float

    def __post_init__(self):
        """Validate coordinates"""
        if not _is_valid_latitude(self.latitude):
            raise ValueError(f"Latitude must be between -90 and 90: {self.latitude}")

        if not _is_valid_longitude(self.longitude):
            raise ValueError(f"Longitude must be between -180 and 180: {self.longitude}")

    @classmethod
    def create(cls, latitude: float, longitude: float) -> Result['Location']:
        """Validated factory returning a Result instead of raising"""
        if not _is_valid_latitude(latitude):
            return Result.fail(ErrorCodes.INVALID_LATITUDE, "Latitude must be between -90 and 90.")

        if not _is_valid_longitude(longitude):
            return Result.fail(ErrorCodes.INVALID_LONGITUDE, "Longitude must be between -180 and 180.")

        return Result.success(cls(float(latitude), float(longitude)))

    def distance_km(self, other: 'Location') -> float:
        """Great-circle distance to another location in kilometers"""
        return haversine_km(self.latitude, self.longitude, other.latitude, other.longitude)

    def to_geojson(self) -> Dict[str, Any]:
        """GeoJSON point, longitude first"""
        return {"type": "Point", "coordinates": [self.longitude, self.latitude]}

    def to_dict(self) -> Dict[str, Any]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    def __str__(self) -> str:
        return f"({self.latitude:.6f}, {self.longitude:.6f})"


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two coordinates in kilometers"""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (math.sin(d_lat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(d_lon / 2) ** 2)

    # rounding can push a past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


# ============================================================================
# DOMAIN EVENTS (for event-driven architecture)
# ============================================================================

class DomainEvent(ABC):
    """
    Base class for all domain events
    Events represent something that happened in the domain
    """

    def __init__(self, occurred_on: Optional[datetime] = None):
        self.event_id = str(uuid.uuid4())
        self.occurred_on = occurred_on or datetime.now(timezone.utc)
        self.version = "1.0"

    @property
    @abstractmethod
    def event_type(self) -> EventType:
        """Tag used to route the event to its handlers"""
        pass

    @abstractmethod
    def _data(self) -> Dict[str, Any]:
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization"""
        return {
            "event_type": self.event_type.value,
            "event_id": self.event_id,
            "occurred_on": self.occurred_on.isoformat(),
            "version": self.version,
            "data": self._data()
        }

    def __str__(self) -> str:
        return f"{self.__class__.__name__} at {self.occurred_on}"


class VehicleStatusChangedDomainEvent(DomainEvent):
    """Event raised when a vehicle changes status"""

    def __init__(self, vehicle_id: str, status: VehicleStatus, occurred_on: Optional[datetime] = None):
        super().__init__(occurred_on)
        self.vehicle_id = vehicle_id
        self.status = status

    @property
    def event_type(self) -> EventType:
        return EventType.VEHICLE_STATUS_CHANGED

    def _data(self) -> Dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "status": self.status.display_name
        }


class VehicleLocationUpdatedDomainEvent(DomainEvent):
    """Event raised when a vehicle reports a new location"""

    def __init__(
        self,
        vehicle_id: str,
        latitude: float,
        longitude: float,
        occurred_on: Optional[datetime] = None
    ):
        super().__init__(occurred_on)
        self.vehicle_id = vehicle_id
        self.latitude = latitude
        self.longitude = longitude

    @property
    def event_type(self) -> EventType:
        return EventType.VEHICLE_LOCATION_UPDATED

    def _data(self) -> Dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "latitude": self.latitude,
            "longitude": self.longitude
        }


# Closed union of the events a Vehicle can raise
VehicleDomainEvent = Union[VehicleStatusChangedDomainEvent, VehicleLocationUpdatedDomainEvent]
