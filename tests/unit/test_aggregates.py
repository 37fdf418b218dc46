# File: tests/unit/test_aggregates.py
"""
Aggregate Unit Tests

Tests for the Vehicle aggregate root.
"""

import unittest
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent.parent))

from fleet_tracker.domain.models import (
    Location, VehicleStatus, ErrorCodes,
    VehicleStatusChangedDomainEvent, VehicleLocationUpdatedDomainEvent
)
from fleet_tracker.domain.aggregates import Vehicle


def make_vehicle(status=VehicleStatus.AVAILABLE, rented_by=None) -> Vehicle:
    return Vehicle.create("vehicle-001", Location(-36.8662, 174.7721), status, rented_by).value


class TestVehicleCreation(unittest.TestCase):
    """Unit tests for Vehicle.create"""

    def test_create_vehicle(self):
        result = Vehicle.create("  vehicle-001 ", Location(1, 2), VehicleStatus.AVAILABLE)
        self.assertTrue(result.is_success)
        self.assertEqual(result.value.id, "vehicle-001")
        self.assertEqual(result.value.status, VehicleStatus.AVAILABLE)
        self.assertFalse(result.value.has_changes)

    def test_blank_id_fails(self):
        for vehicle_id in ("", "   ", None):
            result = Vehicle.create(vehicle_id, Location(1, 2), VehicleStatus.AVAILABLE)
            self.assertEqual(result.error.code, ErrorCodes.INVALID_ID)

    def test_missing_location_raises(self):
        with self.assertRaises(ValueError):
            Vehicle.create("vehicle-001", None, VehicleStatus.AVAILABLE)

    def test_equality_by_id(self):
        self.assertEqual(make_vehicle(), make_vehicle(VehicleStatus.RENTED))


class TestVehicleStatusUpdates(unittest.TestCase):
    """Unit tests for Vehicle.update_status"""

    def test_status_change_records_event(self):
        vehicle = make_vehicle()
        result = vehicle.update_status(VehicleStatus.MAINTENANCE)

        self.assertTrue(result.is_success)
        self.assertEqual(vehicle.status, VehicleStatus.MAINTENANCE)
        self.assertEqual(len(vehicle.pending_events), 1)
        event = vehicle.pending_events[0]
        self.assertIsInstance(event, VehicleStatusChangedDomainEvent)
        self.assertEqual(event.vehicle_id, "vehicle-001")
        self.assertEqual(event.status, VehicleStatus.MAINTENANCE)
        self.assertTrue(vehicle.has_only_status_changes())

    def test_same_status_is_silent(self):
        vehicle = make_vehicle()
        result = vehicle.update_status(VehicleStatus.AVAILABLE)
        self.assertTrue(result.is_success)
        self.assertFalse(vehicle.has_changes)

    def test_unknown_and_undefined_statuses_fail(self):
        vehicle = make_vehicle()
        for status in (VehicleStatus.UNKNOWN, 99, "flying"):
            result = vehicle.update_status(status)
            self.assertEqual(result.error.code, ErrorCodes.INVALID_STATUS)
        self.assertEqual(vehicle.status, VehicleStatus.AVAILABLE)
        self.assertFalse(vehicle.has_changes)

    def test_unknown_fails_from_every_status(self):
        for current in VehicleStatus:
            vehicle = make_vehicle(current)
            result = vehicle.update_status(VehicleStatus.UNKNOWN)

            self.assertEqual(result.error.code, ErrorCodes.INVALID_STATUS, msg=f"from {current!r}")
            self.assertEqual(vehicle.status, current)
            self.assertFalse(vehicle.has_changes)

    def test_repeated_update_records_one_event(self):
        targets = [s for s in VehicleStatus if s != VehicleStatus.UNKNOWN]
        for current in VehicleStatus:
            for target in targets:
                if target == current:
                    continue
                vehicle = make_vehicle(current)
                first = vehicle.update_status(target)
                second = vehicle.update_status(target)

                self.assertTrue(first.is_success)
                self.assertTrue(second.is_success)
                self.assertEqual(second.value, target)
                self.assertEqual(len(vehicle.pending_events), 1, msg=f"{current!r} -> {target!r}")
                self.assertEqual(vehicle.pending_events[0].status, target)

    def test_status_names_are_accepted(self):
        vehicle = make_vehicle()
        self.assertTrue(vehicle.update_status("OutOfService").is_success)
        self.assertEqual(vehicle.status, VehicleStatus.OUT_OF_SERVICE)

    def test_leaving_rented_clears_renter(self):
        vehicle = make_vehicle(VehicleStatus.RENTED, "user-1")
        vehicle.update_status(VehicleStatus.MAINTENANCE)
        self.assertIsNone(vehicle.rented_by)

    def test_clear_events_drains(self):
        vehicle = make_vehicle()
        vehicle.update_status(VehicleStatus.RENTED)
        vehicle.update_status(VehicleStatus.AVAILABLE)

        events = vehicle.clear_events()
        self.assertEqual([e.status for e in events], [VehicleStatus.RENTED, VehicleStatus.AVAILABLE])
        self.assertEqual(vehicle.pending_events, ())


class TestVehicleLocationUpdates(unittest.TestCase):
    """Unit tests for Vehicle.update_location"""

    def test_location_update_records_event(self):
        vehicle = make_vehicle()
        vehicle.update_location(Location(-36.8, 174.8))

        self.assertEqual(vehicle.location, Location(-36.8, 174.8))
        event = vehicle.pending_events[0]
        self.assertIsInstance(event, VehicleLocationUpdatedDomainEvent)
        self.assertEqual((event.latitude, event.longitude), (-36.8, 174.8))
        self.assertFalse(vehicle.has_only_status_changes())

    def test_identical_location_still_records_event(self):
        vehicle = make_vehicle()
        vehicle.update_location(vehicle.location)
        self.assertEqual(len(vehicle.pending_events), 1)

    def test_missing_location_raises(self):
        with self.assertRaises(ValueError):
            make_vehicle().update_location(None)


class TestVehicleRental(unittest.TestCase):
    """Unit tests for rent and return"""

    def test_rent_available_vehicle(self):
        vehicle = make_vehicle()
        result = vehicle.rent(" user-1 ")
        self.assertTrue(result.is_success)
        self.assertEqual(vehicle.status, VehicleStatus.RENTED)
        self.assertEqual(vehicle.rented_by, "user-1")
        self.assertEqual(len(vehicle.pending_events), 1)

    def test_rent_requires_user(self):
        result = make_vehicle().rent("  ")
        self.assertEqual(result.error.code, ErrorCodes.INVALID_USER_ID)

    def test_rent_unavailable_vehicle_fails(self):
        for status in (VehicleStatus.RENTED, VehicleStatus.MAINTENANCE, VehicleStatus.OUT_OF_SERVICE):
            vehicle = make_vehicle(status)
            result = vehicle.rent("user-1")
            self.assertEqual(result.error.code, ErrorCodes.NOT_AVAILABLE)
            self.assertFalse(vehicle.has_changes)

    def test_return_rented_vehicle(self):
        vehicle = make_vehicle(VehicleStatus.RENTED, "user-1")
        result = vehicle.return_vehicle()
        self.assertTrue(result.is_success)
        self.assertEqual(vehicle.status, VehicleStatus.AVAILABLE)
        self.assertIsNone(vehicle.rented_by)

    def test_return_not_rented_fails(self):
        result = make_vehicle().return_vehicle()
        self.assertEqual(result.error.code, ErrorCodes.NOT_RENTED)

    def test_to_dict(self):
        vehicle = make_vehicle(VehicleStatus.RENTED, "user-1")
        self.assertEqual(vehicle.to_dict(), {
            "id": "vehicle-001",
            "latitude": -36.8662,
            "longitude": 174.7721,
            "status": "Rented",
            "rented_by": "user-1"
        })


if __name__ == '__main__':
    unittest.main()
