# File: fleet_tracker/application/telemetry.py
"""
Telemetry Ingest Service

Applies telemetry messages sent by vehicle devices to the fleet:
1. Unknown vehicles are registered at the reported position
2. Known vehicles get their location updated (raising a location event)
3. Device-owned fields (speed, heading, timestamp, device id) are stored next
   to the vehicle document without touching the core fields

The reported status is only used when registering a vehicle. Status changes of
known vehicles go through the command service and its concurrency check.
"""

from typing import Any, Dict, Union
import logging

from pydantic import ValidationError

from ..domain.models import Location, VehicleStatus, ErrorCodes, Result, Unit, UNIT
from ..domain.aggregates import Vehicle
from .dtos import TelemetryMessageDTO


class TelemetryIngestService:
    """Application service consuming device telemetry"""

    def __init__(self, repository: Any):
        self.repository = repository
        self.logger = logging.getLogger(self.__class__.__name__)

    async def ingest(self, message: Union[TelemetryMessageDTO, Dict[str, Any]]) -> Result[Unit]:
        if not isinstance(message, TelemetryMessageDTO):
            try:
                message = TelemetryMessageDTO.model_validate(message)
            except ValidationError as e:
                self.logger.warning(f"Rejected telemetry message: {e.error_count()} validation error(s)")
                return Result.fail(ErrorCodes.INVALID_TELEMETRY, str(e))

        location_result = Location.create(message.latitude, message.longitude)
        if location_result.is_failure:
            return Result.failure(location_result.error)

        vehicle = await self.repository.get_by_id(message.vehicle_id)
        if vehicle is None:
            status = VehicleStatus.parse(message.status)
            if status is None or status == VehicleStatus.UNKNOWN:
                status = VehicleStatus.AVAILABLE

            created = Vehicle.create(message.vehicle_id, location_result.value, status)
            if created.is_failure:
                return Result.failure(created.error)
            vehicle = created.value
            self.logger.info(f"Registering vehicle {vehicle.id} from telemetry as {vehicle.status}")
        else:
            vehicle.update_location(location_result.value)

        await self.repository.save(vehicle)
        await self.repository.save_telemetry(vehicle.id, message.passenger_fields())
        self.logger.debug(f"Telemetry applied for vehicle {vehicle.id} at {vehicle.location}")
        return Result.success(UNIT)

    async def ingest_json(self, payload: Union[str, bytes]) -> Result[Unit]:
        """Ingest a raw JSON message as produced by devices"""
        try:
            message = TelemetryMessageDTO.model_validate_json(payload)
        except ValidationError as e:
            self.logger.warning(f"Rejected telemetry payload: {e.error_count()} validation error(s)")
            return Result.fail(ErrorCodes.INVALID_TELEMETRY, str(e))
        return await self.ingest(message)
