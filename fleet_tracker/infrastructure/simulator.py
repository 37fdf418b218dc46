# File: fleet_tracker/infrastructure/simulator.py
"""
Vehicle Telemetry Simulator

Drives simulated vehicles around closed routes and emits one telemetry message
per vehicle per tick to an async sink (for example TelemetryIngestService.ingest
or a Redis publisher).

Simulation rules:
- Positions follow the route waypoints with up to 0.0001 degrees of jitter
- Speed is drawn from 10-70 km/h and heading from 0-360 degrees
- Each message has a 2% chance of flipping the reported status, to Available
  (80%) or Rented (20%)
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Callable, Awaitable, Tuple
from datetime import datetime, timezone
import asyncio
import logging
import random

from ..domain.models import VehicleStatus, Result
from ..application.dtos import TelemetryMessageDTO


JITTER_DEGREES = 0.0001
STATUS_FLIP_CHANCE = 0.02


# ============================================================================
# ROUTES
# ============================================================================

@dataclass(frozen=True)
class VehicleRoute:
    """Closed route: the last waypoint equals the first"""
    name: str
    points: Tuple[Tuple[float, float], ...]


class RouteService:
    """Named routes with cyclic waypoint lookup"""

    DEFAULT_ROUTE = "city-centre"

    def __init__(self, routes: Optional[Dict[str, VehicleRoute]] = None):
        self._routes = routes or {
            "city-centre": VehicleRoute("City Centre", (
                (-36.8662, 174.7721),
                (-36.8655, 174.7740),
                (-36.8670, 174.7750),
                (-36.8680, 174.7730),
                (-36.8662, 174.7721),
            )),
            "harbour": VehicleRoute("Harbour", (
                (-36.8605, 174.7793),
                (-36.8610, 174.7700),
                (-36.8615, 174.7785),
                (-36.8600, 174.7780),
                (-36.8605, 174.7793),
            )),
            "waterfront": VehicleRoute("Waterfront", (
                (-36.8652, 174.7716),
                (-36.8645, 174.7720),
                (-36.8660, 174.7730),
                (-36.8665, 174.7710),
                (-36.8652, 174.7716),
            )),
        }
        if self.DEFAULT_ROUTE not in self._routes:
            self.default_route = next(iter(self._routes))
        else:
            self.default_route = self.DEFAULT_ROUTE

    @property
    def route_names(self) -> List[str]:
        return list(self._routes)

    def get_route(self, route_name: str) -> VehicleRoute:
        """Route by name; unknown names get the default route"""
        return self._routes.get(route_name, self._routes[self.default_route])

    def get_current_location(self, route_name: str, index: int) -> Tuple[float, float]:
        points = self.get_route(route_name).points
        return points[index % len(points)]

    def get_next_location(self, route_name: str, index: int) -> Tuple[float, float]:
        points = self.get_route(route_name).points
        return points[(index + 1) % len(points)]


# ============================================================================
# SIMULATOR
# ============================================================================

@dataclass
class SimulatedVehicle:
    vehicle_id: str
    device_id: str
    route: str = RouteService.DEFAULT_ROUTE
    name: Optional[str] = None
    position: int = 0
    status: VehicleStatus = VehicleStatus.AVAILABLE


TelemetrySink = Callable[[TelemetryMessageDTO], Awaitable[Any]]


class VehicleSimulator:
    """
    Emits telemetry for a set of simulated vehicles

    Usage:
        simulator = VehicleSimulator(vehicles, telemetry_service.ingest)
        await simulator.run(max_ticks=10)
    """

    def __init__(
        self,
        vehicles: List[SimulatedVehicle],
        sink: TelemetrySink,
        route_service: Optional[RouteService] = None,
        interval_seconds: float = 5.0,
        rng: Optional[random.Random] = None
    ):
        self.vehicles = vehicles
        self.sink = sink
        self.route_service = route_service or RouteService()
        self.interval_seconds = interval_seconds
        self.rng = rng or random.Random()
        self.ticks = 0
        self.logger = logging.getLogger(self.__class__.__name__)

    def next_message(self, vehicle: SimulatedVehicle) -> TelemetryMessageDTO:
        """Advance one vehicle and build its telemetry message"""
        latitude, longitude = self.route_service.get_current_location(vehicle.route, vehicle.position)
        latitude += (self.rng.random() - 0.5) * 2 * JITTER_DEGREES
        longitude += (self.rng.random() - 0.5) * 2 * JITTER_DEGREES
        vehicle.position += 1

        if self.rng.random() < STATUS_FLIP_CHANCE:
            vehicle.status = VehicleStatus.AVAILABLE if self.rng.random() < 0.8 else VehicleStatus.RENTED

        return TelemetryMessageDTO(
            vehicle_id=vehicle.vehicle_id,
            latitude=latitude,
            longitude=longitude,
            status=vehicle.status.display_name,
            speed=self.rng.uniform(10, 70),
            heading=self.rng.uniform(0, 360),
            timestamp=datetime.now(timezone.utc),
            device_id=vehicle.device_id
        )

    async def send(self, vehicle: SimulatedVehicle) -> bool:
        message = self.next_message(vehicle)
        try:
            result = await self.sink(message)
        except Exception as e:
            self.logger.error(f"Failed to send telemetry for device {vehicle.device_id}: {e}")
            return False

        if isinstance(result, Result) and result.is_failure:
            self.logger.warning(f"Telemetry for device {vehicle.device_id} rejected: {result.error}")
            return False

        self.logger.debug(
            f"Sent telemetry for {vehicle.device_id}: "
            f"Lat={message.latitude:.6f}, Lng={message.longitude:.6f}, Status={message.status}"
        )
        return True

    async def tick(self) -> int:
        """Send one message per vehicle; returns how many were delivered"""
        results = await asyncio.gather(*(self.send(vehicle) for vehicle in self.vehicles))
        self.ticks += 1
        return sum(1 for delivered in results if delivered)

    async def run(self, max_ticks: Optional[int] = None) -> None:
        """Run until cancelled, or until max_ticks ticks have been sent"""
        self.logger.info(f"Starting vehicle simulator with {len(self.vehicles)} vehicles")
        sent = 0
        try:
            while max_ticks is None or sent < max_ticks:
                await self.tick()
                sent += 1
                if max_ticks is None or sent < max_ticks:
                    await asyncio.sleep(self.interval_seconds)
        finally:
            self.logger.info(f"Vehicle simulator stopped after {sent} ticks")
