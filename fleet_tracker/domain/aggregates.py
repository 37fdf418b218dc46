# File: fleet_tracker/domain/aggregates.py
"""
Aggregate Roots for Fleet Tracking System
Following Domain-Driven Design (DDD) Aggregate Pattern

Aggregates:
1. Vehicle - Root aggregate for rental status and position tracking

Key Concepts:
- Aggregate Roots enforce business invariants
- Domain events are recorded for every real state change
- Recorded events stay pending until the repository has persisted the
  aggregate and dispatched them, then the repository drains them
- All modifications go through aggregate root methods
"""

from typing import List, Optional, Dict, Tuple, Any
import logging

from .models import (
    Location, VehicleStatus, ErrorCodes, Result,
    DomainEvent, VehicleStatusChangedDomainEvent,
    VehicleLocationUpdatedDomainEvent
)


# ============================================================================
# BASE AGGREGATE ROOT
# ============================================================================

class AggregateRoot:
    """
    Base class for all aggregate roots
    Provides identity and domain event collection
    """

    def __init__(self, id: str):
        self._id = id
        self._changes: List[DomainEvent] = []
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def id(self) -> str:
        """Get aggregate ID"""
        return self._id

    def _add_domain_event(self, event: DomainEvent) -> None:
        """Add a domain event to the list of changes"""
        if event is None:
            raise ValueError("Domain event is required")
        self._changes.append(event)
        self._logger.debug(f"Added domain event: {event.__class__.__name__}")

    @property
    def pending_events(self) -> Tuple[DomainEvent, ...]:
        """Events recorded since the last clear, oldest first"""
        return tuple(self._changes)

    def clear_events(self) -> List[DomainEvent]:
        """Clear and return all domain events"""
        events = self._changes.copy()
        self._changes.clear()
        return events

    @property
    def has_changes(self) -> bool:
        """Check if aggregate has pending domain events"""
        return len(self._changes) > 0

    def __eq__(self, other: object) -> bool:
        """Aggregates are equal if they have the same ID and type"""
        if not isinstance(other, AggregateRoot):
            return False
        return self.id == other.id and type(self) == type(other)

    def __hash__(self) -> int:
        return hash((self.id, type(self).__name__))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id})"


# ============================================================================
# VEHICLE AGGREGATE
# ============================================================================

class Vehicle(AggregateRoot):
    """
    Aggregate Root: Rentable fleet vehicle with a position and a status
    Status changes and location reports are recorded as domain events
    """

    def __init__(
        self,
        id: str,
        location: Location,
        status: VehicleStatus,
        rented_by: Optional[str] = None
    ):
        super().__init__(id)
        self._location = location
        self._status = status
        self._rented_by = rented_by

    @classmethod
    def create(
        cls,
        id: str,
        location: Location,
        status: VehicleStatus,
        rented_by: Optional[str] = None
    ) -> Result['Vehicle']:
        """
        Factory method for vehicles

        Fails with Vehicle.InvalidId for an empty id. A missing location is a
        programmer error and raises ValueError. No event is raised.
        """
        if id is None or not str(id).strip():
            return Result.fail(ErrorCodes.INVALID_ID, "Vehicle id must be non-empty.")

        if location is None:
            raise ValueError("Vehicle location is required")

        return Result.success(cls(str(id).strip(), location, status, rented_by or None))

    @property
    def location(self) -> Location:
        return self._location

    @property
    def status(self) -> VehicleStatus:
        return self._status

    @property
    def rented_by(self) -> Optional[str]:
        """User currently renting the vehicle, if any"""
        return self._rented_by

    # ------------------------------------------------------------------------
    # Behaviour
    # ------------------------------------------------------------------------

    def update_status(self, new_status: Any) -> Result[VehicleStatus]:
        """
        Move the vehicle to a new status

        Undefined values and UNKNOWN fail with Vehicle.InvalidStatus.
        Requesting the current status succeeds without raising an event.
        """
        status = VehicleStatus.parse(new_status)
        if status is None or status == VehicleStatus.UNKNOWN:
            return Result.fail(ErrorCodes.INVALID_STATUS, "Unsupported vehicle status.")

        if self._status == status:
            return Result.success(self._status)

        previous = self._status
        self._status = status
        if previous == VehicleStatus.RENTED:
            self._rented_by = None
        self._add_domain_event(VehicleStatusChangedDomainEvent(self.id, status))
        self._logger.info(f"Vehicle {self.id} status {previous} -> {status}")
        return Result.success(self._status)

    def update_location(self, location: Location) -> None:
        """Record a new position; raises an event even for identical coordinates"""
        if location is None:
            raise ValueError("Vehicle location is required")

        self._location = location
        self._add_domain_event(
            VehicleLocationUpdatedDomainEvent(self.id, location.latitude, location.longitude)
        )

    def rent(self, user_id: str) -> Result[VehicleStatus]:
        """Rent an available vehicle to a user"""
        if user_id is None or not str(user_id).strip():
            return Result.fail(ErrorCodes.INVALID_USER_ID, "User ID is required.")

        if self._status != VehicleStatus.AVAILABLE:
            return Result.fail(
                ErrorCodes.NOT_AVAILABLE,
                f"Vehicle is not available for rent. Current status: {self._status}"
            )

        result = self.update_status(VehicleStatus.RENTED)
        if result.is_success:
            self._rented_by = str(user_id).strip()
        return result

    def return_vehicle(self) -> Result[VehicleStatus]:
        """Return a rented vehicle to the available pool"""
        if self._status != VehicleStatus.RENTED:
            return Result.fail(
                ErrorCodes.NOT_RENTED,
                f"Vehicle is not currently rented. Current status: {self._status}"
            )

        return self.update_status(VehicleStatus.AVAILABLE)

    # ------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------

    def has_only_status_changes(self) -> bool:
        """True when every pending event is a status change"""
        return self.has_changes and all(
            isinstance(event, VehicleStatusChangedDomainEvent) for event in self._changes
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "id": self.id,
            "latitude": self._location.latitude,
            "longitude": self._location.longitude,
            "status": self._status.display_name,
            "rented_by": self._rented_by
        }

    def __str__(self) -> str:
        return f"Vehicle {self.id} [{self._status}] at {self._location}"
