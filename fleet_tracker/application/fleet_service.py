# File: fleet_tracker/application/fleet_service.py
"""
Fleet Management Application Services

This module implements the application service layer for the fleet tracking
system. The services orchestrate the Vehicle aggregate and its repository and
handle the use cases of the system.

Responsibilities:
1. Commands - status updates guarded by optimistic concurrency, rent, return
2. Queries - nearby and per-user lookups projected to summaries
3. Cross-cutting concerns - input validation, authorization, logging

Key Principles:
- Command/Query separation
- Expected failures are returned as Result values, never raised
- The first failure is forwarded unchanged; codes are never masked
- No locking and no retries: a concurrency conflict is reported to the
  caller, who re-fetches and retries with the corrected expected status
"""

from typing import List, Optional, Any, Union, TYPE_CHECKING
import logging

from ..domain.models import (
    Location, VehicleStatus, ErrorCodes, Result, Unit, UNIT,
    ConcurrencyConflictError
)
from ..domain.aggregates import Vehicle
from ..domain.strategies import CallerContext, VehicleStatusValidator
from .dtos import VehicleSummaryDTO, NearbyVehiclesQueryDTO

if TYPE_CHECKING:
    from ..infrastructure.repositories import VehicleRepository


DEFAULT_RADIUS_KM = 5.0


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _not_found(vehicle_id: str) -> Result:
    return Result.fail(ErrorCodes.NOT_FOUND, f"Vehicle with ID '{vehicle_id}' not found.")


# ============================================================================
# COMMAND SERVICE
# ============================================================================

class VehicleCommandService:
    """
    Application service for state-changing vehicle operations

    Every command loads one aggregate, checks its preconditions, mutates it and
    saves it. The repository dispatches the recorded domain events after the
    write succeeds.
    """

    def __init__(self, repository: 'VehicleRepository'):
        self.repository = repository
        self.logger = logging.getLogger(self.__class__.__name__)

    async def update_vehicle_status(
        self,
        vehicle_id: str,
        expected_current_status: Any,
        new_status: Any,
        caller: Optional[CallerContext] = None
    ) -> Result[Unit]:
        """
        Update a vehicle's status with optimistic concurrency control

        Use Case: Status Update
        1. Validate the vehicle id
        2. Authorize the transition for the caller's role (skipped for
           trusted internal callers, i.e. caller is None)
        3. Load the vehicle
        4. Compare the expected status with the actual one
        5. Apply the new status on the aggregate
        6. Save (writes, dispatches events, clears them)
        """
        if _is_blank(vehicle_id):
            return Result.fail(ErrorCodes.INVALID_ID, "Vehicle ID is required.")

        expected = _parse_or_raw(expected_current_status)
        attempted = _parse_or_raw(new_status)

        if caller is not None:
            authorization = VehicleStatusValidator.for_caller(caller).validate_transition(expected, attempted)
            if authorization.is_failure:
                return Result.failure(authorization.error)

        vehicle = await self.repository.get_by_id(vehicle_id)
        if vehicle is None:
            return _not_found(vehicle_id)

        if vehicle.status != expected:
            self.logger.warning(
                f"Concurrency conflict on vehicle {vehicle_id}: expected {expected}, actual {vehicle.status}"
            )
            return Result.failure(ConcurrencyConflictError(
                ErrorCodes.CONCURRENCY_CONFLICT,
                "Vehicle status has been modified by another user. "
                f"Expected: {expected}, Actual: {vehicle.status}",
                expected_status=expected,
                attempted_status=attempted,
                actual_status=vehicle.status
            ))

        update_result = vehicle.update_status(attempted)
        if update_result.is_failure:
            return Result.failure(update_result.error)

        await self.repository.save(vehicle)
        self.logger.info(f"Vehicle {vehicle.id} status updated to {vehicle.status}")
        return Result.success(UNIT)

    async def rent_vehicle(self, vehicle_id: str, user_id: str) -> Result[Unit]:
        """
        Rent a vehicle for a user

        Only AVAILABLE vehicles can be rented. This is an absolute
        precondition, not a comparison with a caller-supplied status.
        """
        validation = _validate_ids(vehicle_id, user_id)
        if validation is not None:
            return validation

        vehicle = await self.repository.get_by_id(vehicle_id)
        if vehicle is None:
            return _not_found(vehicle_id)

        rent_result = vehicle.rent(user_id)
        if rent_result.is_failure:
            self.logger.warning(f"Rent rejected for vehicle {vehicle_id}: {rent_result.error}")
            return Result.failure(rent_result.error)

        await self.repository.save(vehicle)
        self.logger.info(f"Vehicle {vehicle.id} rented by {user_id}")
        return Result.success(UNIT)

    async def return_vehicle(self, vehicle_id: str, user_id: str) -> Result[Unit]:
        """
        Return a rented vehicle

        Only RENTED vehicles can be returned. The returning user is not
        required to be the renter (fleet-operator model).
        """
        validation = _validate_ids(vehicle_id, user_id)
        if validation is not None:
            return validation

        vehicle = await self.repository.get_by_id(vehicle_id)
        if vehicle is None:
            return _not_found(vehicle_id)

        if vehicle.rented_by and vehicle.rented_by != user_id.strip():
            self.logger.info(f"Vehicle {vehicle.id} rented by {vehicle.rented_by} returned by {user_id}")

        return_result = vehicle.return_vehicle()
        if return_result.is_failure:
            self.logger.warning(f"Return rejected for vehicle {vehicle_id}: {return_result.error}")
            return Result.failure(return_result.error)

        await self.repository.save(vehicle)
        self.logger.info(f"Vehicle {vehicle.id} returned by {user_id}")
        return Result.success(UNIT)

    async def register_vehicle(
        self,
        vehicle_id: str,
        latitude: float,
        longitude: float,
        status: Any = VehicleStatus.AVAILABLE
    ) -> Result[Unit]:
        """Add a new vehicle to the fleet"""
        location_result = Location.create(latitude, longitude)
        if location_result.is_failure:
            return Result.failure(location_result.error)

        parsed_status = VehicleStatus.parse(status)
        if parsed_status is None or parsed_status == VehicleStatus.UNKNOWN:
            return Result.fail(ErrorCodes.INVALID_STATUS, "Unsupported vehicle status.")

        vehicle_result = Vehicle.create(vehicle_id, location_result.value, parsed_status)
        if vehicle_result.is_failure:
            return Result.failure(vehicle_result.error)

        vehicle = vehicle_result.value
        if await self.repository.get_by_id(vehicle.id) is not None:
            return Result.fail(ErrorCodes.ALREADY_EXISTS, f"Vehicle with ID '{vehicle.id}' already exists.")

        await self.repository.save(vehicle)
        self.logger.info(f"Registered vehicle {vehicle.id} at {vehicle.location} as {vehicle.status}")
        return Result.success(UNIT)


def _parse_or_raw(value: Any) -> Any:
    parsed = VehicleStatus.parse(value)
    return parsed if parsed is not None else value


def _validate_ids(vehicle_id: str, user_id: str) -> Optional[Result]:
    if _is_blank(vehicle_id):
        return Result.fail(ErrorCodes.INVALID_ID, "Vehicle ID is required.")
    if _is_blank(user_id):
        return Result.fail(ErrorCodes.INVALID_USER_ID, "User ID is required.")
    return None


# ============================================================================
# QUERY SERVICE
# ============================================================================

class VehicleQueryService:
    """Application service for read-only vehicle lookups"""

    def __init__(self, repository: 'VehicleRepository'):
        self.repository = repository
        self.logger = logging.getLogger(self.__class__.__name__)

    async def get_nearby_vehicles(
        self,
        latitude: Union[float, NearbyVehiclesQueryDTO],
        longitude: Optional[float] = None,
        radius_km: float = DEFAULT_RADIUS_KM
    ) -> Result[List[VehicleSummaryDTO]]:
        """
        Find vehicles within radius_km of a coordinate

        The coordinate is validated before the radius, so an invalid latitude
        is reported even when the radius is invalid too.
        """
        if isinstance(latitude, NearbyVehiclesQueryDTO):
            query = latitude
            latitude, longitude, radius_km = query.latitude, query.longitude, query.radius_kilometers

        location_result = Location.create(latitude, longitude)
        if location_result.is_failure:
            return Result.failure(location_result.error)

        if radius_km is None or not radius_km > 0:
            return Result.fail(ErrorCodes.INVALID_RADIUS, "Radius must be greater than zero.")

        vehicles = await self.repository.get_nearby(location_result.value, radius_km)
        self.logger.debug(f"Found {len(vehicles)} vehicles within {radius_km} km of {location_result.value}")
        return Result.success([VehicleSummaryDTO.from_vehicle(vehicle) for vehicle in vehicles])

    async def get_user_vehicles(self, user_id: str) -> Result[List[VehicleSummaryDTO]]:
        """Vehicles currently associated with a user"""
        if _is_blank(user_id):
            return Result.fail(ErrorCodes.INVALID_USER_ID, "User ID cannot be null or empty.")

        vehicles = await self.repository.get_by_user_id(user_id.strip())
        return Result.success([VehicleSummaryDTO.from_vehicle(vehicle) for vehicle in vehicles])

    async def get_vehicle(self, vehicle_id: str) -> Result[VehicleSummaryDTO]:
        """Single vehicle summary, used by callers re-fetching after a conflict"""
        if _is_blank(vehicle_id):
            return Result.fail(ErrorCodes.INVALID_ID, "Vehicle ID is required.")

        vehicle = await self.repository.get_by_id(vehicle_id)
        if vehicle is None:
            return _not_found(vehicle_id)
        return Result.success(VehicleSummaryDTO.from_vehicle(vehicle))

    async def get_allowed_transitions(
        self,
        vehicle_id: str,
        caller: Optional[CallerContext]
    ) -> Result[List[str]]:
        """Statuses the caller may move the vehicle to from its current status"""
        if _is_blank(vehicle_id):
            return Result.fail(ErrorCodes.INVALID_ID, "Vehicle ID is required.")

        vehicle = await self.repository.get_by_id(vehicle_id)
        if vehicle is None:
            return _not_found(vehicle_id)

        targets = VehicleStatusValidator.for_caller(caller).allowed_transitions(vehicle.status)
        return Result.success([status.display_name for status in targets])
