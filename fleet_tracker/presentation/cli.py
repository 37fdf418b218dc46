# File: fleet_tracker/presentation/cli.py
"""
Console interface for the Fleet Tracking System

Commands:
- nearby           vehicles around a coordinate
- vehicle          one vehicle's summary
- user-vehicles    vehicles rented by a user
- register         add a vehicle to the fleet
- status           status update with an expected current status
- rent / return    rental use cases
- transitions      statuses a caller may move a vehicle to
- simulate         run the telemetry simulator against the repository
- demo             seed vehicles and walk through the rental flow

Every command prints a JSON payload. Failures print the error payload with
its HTTP-style status and exit with status 1.
"""

from typing import List, Optional, Any
import argparse
import asyncio
import json
import logging
import sys

from ..domain.models import Result
from ..domain.strategies import CallerContext
from ..application.dtos import UpdateVehicleStatusRequestDTO
from ..infrastructure.config import FleetSettings, setup_logging
from ..infrastructure.factories import FleetApplication
from ..infrastructure.simulator import RouteService, SimulatedVehicle, VehicleSimulator
from .responses import to_response


logger = logging.getLogger("fleet_tracker.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fleet-tracker", description="Vehicle rental fleet tracker")
    parser.add_argument("--backend", choices=["memory", "mongo"], help="Override FLEET_REPOSITORY_BACKEND")
    parser.add_argument("--log-level", help="Override FLEET_LOG_LEVEL")
    parser.add_argument("--seed", action="store_true", help="Register the demo vehicles first")

    commands = parser.add_subparsers(dest="command", required=True)

    nearby = commands.add_parser("nearby", help="Vehicles near a coordinate")
    nearby.add_argument("latitude", type=float)
    nearby.add_argument("longitude", type=float)
    nearby.add_argument("--radius", type=float, default=None, help="Radius in kilometers")

    vehicle = commands.add_parser("vehicle", help="Show one vehicle")
    vehicle.add_argument("vehicle_id")

    user_vehicles = commands.add_parser("user-vehicles", help="Vehicles rented by a user")
    user_vehicles.add_argument("user_id")

    register = commands.add_parser("register", help="Register a vehicle")
    register.add_argument("vehicle_id")
    register.add_argument("latitude", type=float)
    register.add_argument("longitude", type=float)
    register.add_argument("--status", default="Available")

    status = commands.add_parser("status", help="Update a vehicle's status")
    status.add_argument("vehicle_id")
    status.add_argument("expected_current_status")
    status.add_argument("new_status")
    _add_caller_arguments(status)

    rent = commands.add_parser("rent", help="Rent a vehicle")
    rent.add_argument("vehicle_id")
    rent.add_argument("user_id")

    give_back = commands.add_parser("return", help="Return a vehicle")
    give_back.add_argument("vehicle_id")
    give_back.add_argument("user_id")

    transitions = commands.add_parser("transitions", help="Allowed status transitions for a caller")
    transitions.add_argument("vehicle_id")
    _add_caller_arguments(transitions)

    simulate = commands.add_parser("simulate", help="Run the telemetry simulator")
    simulate.add_argument("--ticks", type=int, default=3)
    simulate.add_argument("--interval", type=float, default=None, help="Seconds between ticks")
    simulate.add_argument("--vehicles", type=int, default=3)

    commands.add_parser("demo", help="Walk through the rental flow on demo data")
    return parser


def _add_caller_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--user-id", help="Caller user id")
    parser.add_argument("--role", action="append", default=[], help="Caller role (repeatable)")


def _caller(args: argparse.Namespace) -> Optional[CallerContext]:
    """Trusted operator call unless roles or a user id were given"""
    if not args.role and not args.user_id:
        return None
    return CallerContext.of(args.user_id, *args.role)


def demo_vehicles(route_service: RouteService) -> List[SimulatedVehicle]:
    names = route_service.route_names
    return [
        SimulatedVehicle(f"vehicle-{index + 1:03d}", f"device-{index + 1:03d}", names[index % len(names)])
        for index in range(len(names))
    ]


async def seed(application: FleetApplication, route_service: RouteService) -> None:
    for vehicle in demo_vehicles(route_service):
        latitude, longitude = route_service.get_current_location(vehicle.route, 0)
        result = await application.command_service.register_vehicle(vehicle.vehicle_id, latitude, longitude)
        if result.is_failure:
            logger.info(f"Seed skipped {vehicle.vehicle_id}: {result.error.code}")


def emit(result: Result, success_message: str = "OK") -> int:
    status, payload = to_response(result, success_message)
    print(json.dumps({"status": status, "body": payload}, indent=2, default=str))
    return 0 if result.is_success else 1


async def run_demo(application: FleetApplication, route_service: RouteService) -> int:
    commands, queries = application.command_service, application.query_service
    await seed(application, route_service)

    latitude, longitude = route_service.get_current_location(RouteService.DEFAULT_ROUTE, 0)
    emit(await queries.get_nearby_vehicles(latitude, longitude), "nearby")
    emit(await commands.rent_vehicle("vehicle-001", "demo-user"), "Vehicle rented")
    emit(await queries.get_user_vehicles("demo-user"))

    stale = UpdateVehicleStatusRequestDTO(expectedCurrentStatus="Available", newStatus="Maintenance")
    expected, new = stale.parsed()
    emit(await commands.update_vehicle_status("vehicle-001", expected, new, CallerContext.of("tech-1", "Technician")))

    emit(await commands.return_vehicle("vehicle-001", "demo-user"), "Vehicle returned")
    code = emit(await queries.get_vehicle("vehicle-001"))

    if application.event_store is not None:
        print(json.dumps([event.to_dict() for event in application.event_store.events], indent=2))
    return code


async def execute(args: argparse.Namespace, application: FleetApplication) -> int:
    route_service = RouteService()
    if args.seed:
        await seed(application, route_service)

    commands, queries = application.command_service, application.query_service

    if args.command == "nearby":
        radius = args.radius if args.radius is not None else application.settings.default_radius_km
        return emit(await queries.get_nearby_vehicles(args.latitude, args.longitude, radius))
    if args.command == "vehicle":
        return emit(await queries.get_vehicle(args.vehicle_id))
    if args.command == "user-vehicles":
        return emit(await queries.get_user_vehicles(args.user_id))
    if args.command == "register":
        return emit(
            await commands.register_vehicle(args.vehicle_id, args.latitude, args.longitude, args.status),
            "Vehicle registered"
        )
    if args.command == "status":
        request = UpdateVehicleStatusRequestDTO(
            expected_current_status=args.expected_current_status,
            new_status=args.new_status
        )
        expected, new = request.parsed()
        return emit(
            await commands.update_vehicle_status(args.vehicle_id, expected, new, _caller(args)),
            "Vehicle status updated successfully"
        )
    if args.command == "rent":
        return emit(await commands.rent_vehicle(args.vehicle_id, args.user_id), "Vehicle rented successfully")
    if args.command == "return":
        return emit(await commands.return_vehicle(args.vehicle_id, args.user_id), "Vehicle returned successfully")
    if args.command == "transitions":
        return emit(await queries.get_allowed_transitions(args.vehicle_id, _caller(args)))
    if args.command == "simulate":
        vehicles = demo_vehicles(route_service)
        while len(vehicles) < args.vehicles:
            index = len(vehicles)
            vehicles.append(SimulatedVehicle(
                f"vehicle-{index + 1:03d}", f"device-{index + 1:03d}",
                route_service.route_names[index % len(route_service.route_names)]
            ))
        interval = args.interval if args.interval is not None else application.settings.simulator_interval_seconds
        simulator = VehicleSimulator(
            vehicles[:args.vehicles], application.telemetry_service.ingest, route_service, interval
        )
        await simulator.run(max_ticks=args.ticks)
        latitude, longitude = route_service.get_current_location(RouteService.DEFAULT_ROUTE, 0)
        return emit(await queries.get_nearby_vehicles(latitude, longitude, application.settings.default_radius_km))
    if args.command == "demo":
        return await run_demo(application, route_service)

    raise ValueError(f"Unknown command: {args.command}")


async def run(argv: Optional[List[str]] = None, settings: Optional[FleetSettings] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = settings or FleetSettings()
    overrides: dict = {}
    if args.backend:
        overrides["repository_backend"] = args.backend
    if args.log_level:
        overrides["log_level"] = args.log_level
    if overrides:
        settings = FleetSettings(**{**settings.model_dump(), **overrides})

    setup_logging(settings.log_level, settings.log_file)
    application = FleetApplication.create(settings)
    try:
        return await execute(args, application)
    finally:
        await application.close()


def main(argv: Optional[List[str]] = None) -> Any:
    try:
        return asyncio.run(run(argv))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
