# File: tests/unit/test_telemetry.py
"""
Telemetry Unit Tests

Tests for TelemetryMessageDTO and TelemetryIngestService.
"""

import json
import unittest
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent.parent))

from pydantic import ValidationError

from fleet_tracker.domain.models import Location, VehicleStatus, ErrorCodes, EventType
from fleet_tracker.domain.aggregates import Vehicle
from fleet_tracker.application.dtos import TelemetryMessageDTO
from fleet_tracker.application.telemetry import TelemetryIngestService
from fleet_tracker.infrastructure.messaging import DomainEventDispatcher, InMemoryEventStore
from fleet_tracker.infrastructure.repositories import InMemoryVehicleRepository


class TestTelemetryMessageDTO(unittest.TestCase):
    """Unit tests for TelemetryMessageDTO"""

    def test_camel_case_payload(self):
        message = TelemetryMessageDTO.from_dict({
            "vehicleId": "vehicle-001", "latitude": -36.8, "longitude": 174.7,
            "status": "Rented", "speed": 35.5, "heading": 180, "deviceId": "device-001"
        })
        self.assertEqual(message.vehicle_id, "vehicle-001")
        self.assertEqual(message.device_id, "device-001")
        self.assertIn('"vehicleId":"vehicle-001"', message.to_camel_json())

    def test_defaults(self):
        message = TelemetryMessageDTO(vehicle_id="v", latitude=0, longitude=0)
        self.assertEqual(message.status, "Available")
        self.assertIsNotNone(message.timestamp.tzinfo)

    def test_invalid_fields(self):
        for payload in (
            {"vehicleId": "  ", "latitude": 0, "longitude": 0},
            {"vehicleId": "v", "latitude": 0, "longitude": 0, "heading": 400},
            {"vehicleId": "v", "latitude": 0, "longitude": 0, "speed": -1},
            {"latitude": 0, "longitude": 0},
        ):
            with self.assertRaises(ValidationError, msg=f"Accepted {payload!r}"):
                TelemetryMessageDTO.from_dict(payload)


class TestTelemetryIngestService(unittest.IsolatedAsyncioTestCase):
    """Unit tests for TelemetryIngestService"""

    async def asyncSetUp(self):
        self.event_store = InMemoryEventStore()
        dispatcher = DomainEventDispatcher()
        dispatcher.subscribe_all(self.event_store)
        self.repository = InMemoryVehicleRepository(dispatcher)
        self.service = TelemetryIngestService(self.repository)

    def message(self, **overrides):
        data = {"vehicle_id": "vehicle-001", "latitude": -36.8662, "longitude": 174.7721,
                "status": "Available", "speed": 25.0, "heading": 45.0, "device_id": "device-001"}
        data.update(overrides)
        return TelemetryMessageDTO(**data)

    async def test_unknown_vehicle_is_registered(self):
        result = await self.service.ingest(self.message(status="Rented"))

        self.assertTrue(result.is_success)
        vehicle = await self.repository.get_by_id("vehicle-001")
        self.assertEqual(vehicle.status, VehicleStatus.RENTED)
        self.assertEqual(vehicle.location, Location(-36.8662, 174.7721))

    async def test_unparseable_status_registers_available(self):
        await self.service.ingest(self.message(status="Teleporting"))
        self.assertEqual((await self.repository.get_by_id("vehicle-001")).status, VehicleStatus.AVAILABLE)

    async def test_known_vehicle_keeps_its_status(self):
        vehicle = Vehicle.create("vehicle-001", Location(-36.86, 174.77), VehicleStatus.MAINTENANCE).value
        await self.repository.save(vehicle)

        result = await self.service.ingest(self.message(status="Available", latitude=-36.87))

        self.assertTrue(result.is_success)
        stored = await self.repository.get_by_id("vehicle-001")
        self.assertEqual(stored.status, VehicleStatus.MAINTENANCE)
        self.assertEqual(stored.location.latitude, -36.87)
        self.assertEqual([e.event_type for e in self.event_store.events], [EventType.VEHICLE_LOCATION_UPDATED])

    async def test_passenger_fields_are_stored(self):
        await self.service.ingest(self.message())
        document = self.repository.get_document("vehicle-001")
        self.assertEqual(document["speed"], 25.0)
        self.assertEqual(document["heading"], 45.0)
        self.assertEqual(document["device_id"], "device-001")

    async def test_invalid_coordinates(self):
        result = await self.service.ingest(self.message(latitude=120))
        self.assertEqual(result.error.code, ErrorCodes.INVALID_LATITUDE)
        self.assertEqual(self.repository.count(), 0)

    async def test_dict_payload(self):
        result = await self.service.ingest({"vehicleId": "vehicle-002", "latitude": 1, "longitude": 2})
        self.assertTrue(result.is_success)
        self.assertIsNotNone(await self.repository.get_by_id("vehicle-002"))

    async def test_invalid_payload(self):
        result = await self.service.ingest({"latitude": 1, "longitude": 2})
        self.assertEqual(result.error.code, ErrorCodes.INVALID_TELEMETRY)

    async def test_json_payload(self):
        payload = json.dumps({"vehicleId": "vehicle-003", "latitude": -36.8, "longitude": 174.7, "speed": 12})
        self.assertTrue((await self.service.ingest_json(payload)).is_success)
        self.assertEqual((await self.service.ingest_json("{not json")).error.code, ErrorCodes.INVALID_TELEMETRY)


if __name__ == '__main__':
    unittest.main()
