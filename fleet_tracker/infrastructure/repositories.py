# File: fleet_tracker/infrastructure/repositories.py
"""
Repository Pattern Implementation for Fleet Tracking System

This module implements the Repository Pattern for Vehicle aggregates.
Repositories provide a collection-like interface over vehicle documents while
abstracting the underlying data storage.

Storage Implementations:
- InMemoryVehicleRepository - For testing and development
- MongoVehicleRepository - MongoDB document store (motor), geo-indexed
- LazyVehicleRepository - Builds the real repository on first use from
  credentials fetched through a SecretProvider

Save semantics (shared by every document store):
1. If the only pending events are status changes, the core-owned status
   fields are patched; when the document does not exist yet, the save falls
   back to a full upsert
2. Otherwise the core fields are upserted
3. Fields the core does not own (telemetry written by devices) survive both
4. Pending events are dispatched after the write and cleared only once the
   dispatch succeeded
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Callable, Awaitable
import asyncio
import copy
import logging

import pymongo
from pymongo.errors import PyMongoError
from motor.motor_asyncio import AsyncIOMotorClient

from ..domain.models import Location, VehicleStatus, EARTH_RADIUS_KM
from ..domain.aggregates import Vehicle
from .messaging import DomainEventDispatcher


class RepositoryError(Exception):
    """Raised when the underlying store fails"""
    pass


class DocumentMappingError(RepositoryError):
    """Raised when a stored document cannot be mapped to a Vehicle"""
    pass


# ============================================================================
# REPOSITORY INTERFACE
# ============================================================================

class VehicleRepository(ABC):
    """Persistence contract for Vehicle aggregates"""

    @abstractmethod
    async def get_nearby(self, center: Location, radius_km: float) -> List[Vehicle]:
        """Vehicles within radius_km of center"""
        pass

    @abstractmethod
    async def get_by_id(self, vehicle_id: str) -> Optional[Vehicle]:
        """Vehicle by id, or None"""
        pass

    @abstractmethod
    async def get_by_user_id(self, user_id: str) -> List[Vehicle]:
        """Vehicles currently rented by a user"""
        pass

    @abstractmethod
    async def save(self, vehicle: Vehicle) -> None:
        """Persist the vehicle, then dispatch and clear its pending events"""
        pass

    @abstractmethod
    async def save_telemetry(self, vehicle_id: str, telemetry: Dict[str, Any]) -> bool:
        """
        Store device-owned fields on an existing vehicle document
        Returns False when the vehicle does not exist
        """
        pass


# ============================================================================
# MAPPER
# ============================================================================

class VehicleDocumentMapper:
    """Maps between Vehicle aggregates and stored documents"""

    CORE_FIELDS = ("vehicle_id", "latitude", "longitude", "location", "status", "rented_by")

    @staticmethod
    def to_document(vehicle: Vehicle) -> Dict[str, Any]:
        return {
            "_id": vehicle.id,
            "vehicle_id": vehicle.id,
            "latitude": vehicle.location.latitude,
            "longitude": vehicle.location.longitude,
            "location": vehicle.location.to_geojson(),
            "status": vehicle.status.display_name,
            "rented_by": vehicle.rented_by,
        }

    @staticmethod
    def status_fields(vehicle: Vehicle) -> Dict[str, Any]:
        return {
            "status": vehicle.status.display_name,
            "rented_by": vehicle.rented_by,
        }

    @staticmethod
    def to_vehicle(document: Dict[str, Any]) -> Vehicle:
        if not document:
            raise DocumentMappingError("Empty vehicle document")

        vehicle_id = document.get("_id") or document.get("vehicle_id")
        if not vehicle_id or not str(vehicle_id).strip():
            raise DocumentMappingError(f"Vehicle document without id: {document!r}")

        try:
            latitude = document.get("latitude")
            longitude = document.get("longitude")
            if latitude is None or longitude is None:
                longitude, latitude = document["location"]["coordinates"]
            location = Location(float(latitude), float(longitude))
        except (KeyError, TypeError, ValueError) as e:
            raise DocumentMappingError(f"Vehicle {vehicle_id} has an invalid location: {e}") from e

        status = VehicleStatus.parse(document.get("status"))
        if status is None:
            raise DocumentMappingError(f"Vehicle {vehicle_id} has an invalid status: {document.get('status')!r}")

        return Vehicle(str(vehicle_id), location, status, document.get("rented_by") or None)


# ============================================================================
# DOCUMENT STORE BASE
# ============================================================================

class DocumentVehicleRepository(VehicleRepository, ABC):
    """
    Base class for document stores
    Implements the save protocol on top of two primitive writes
    """

    def __init__(self, dispatcher: Optional[DomainEventDispatcher] = None):
        self.dispatcher = dispatcher
        self.mapper = VehicleDocumentMapper()
        self._logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    async def _upsert(self, document: Dict[str, Any]) -> None:
        """Set the given fields on the document, creating it if missing"""
        pass

    @abstractmethod
    async def _patch(self, vehicle_id: str, fields: Dict[str, Any]) -> bool:
        """Set fields on an existing document; False when it does not exist"""
        pass

    async def save(self, vehicle: Vehicle) -> None:
        if vehicle is None:
            raise ValueError("Vehicle is required")

        if vehicle.has_only_status_changes():
            patched = await self._patch(vehicle.id, self.mapper.status_fields(vehicle))
            if not patched:
                self._logger.info(f"Vehicle {vehicle.id} not stored yet, upserting full document")
                await self._upsert(self.mapper.to_document(vehicle))
        else:
            await self._upsert(self.mapper.to_document(vehicle))

        self._logger.debug(f"Saved vehicle {vehicle.id} ({len(vehicle.pending_events)} pending events)")
        await self._dispatch_pending(vehicle)

    async def save_telemetry(self, vehicle_id: str, telemetry: Dict[str, Any]) -> bool:
        fields = {key: value for key, value in (telemetry or {}).items()
                  if key not in VehicleDocumentMapper.CORE_FIELDS and key != "_id"}
        if not fields:
            return True

        stored = await self._patch(vehicle_id, fields)
        if not stored:
            self._logger.warning(f"Telemetry for unknown vehicle {vehicle_id} dropped")
        return stored

    async def _dispatch_pending(self, vehicle: Vehicle) -> None:
        events = vehicle.pending_events
        if events and self.dispatcher is not None:
            await self.dispatcher.dispatch(events)
        vehicle.clear_events()

    def _map_many(self, documents: List[Dict[str, Any]]) -> List[Vehicle]:
        vehicles = []
        for document in documents:
            try:
                vehicles.append(self.mapper.to_vehicle(document))
            except DocumentMappingError as e:
                self._logger.error(f"Skipping corrupt vehicle document: {e}")
        return vehicles


# ============================================================================
# IN-MEMORY IMPLEMENTATION
# ============================================================================

class InMemoryVehicleRepository(DocumentVehicleRepository):
    """
    In-memory repository for testing and development
    Stores document copies, never live aggregates
    """

    def __init__(self, dispatcher: Optional[DomainEventDispatcher] = None):
        super().__init__(dispatcher)
        self._documents: Dict[str, Dict[str, Any]] = {}

    async def get_nearby(self, center: Location, radius_km: float) -> List[Vehicle]:
        vehicles = self._map_many(list(self._documents.values()))
        nearby = [(center.distance_km(v.location), v) for v in vehicles]
        return [vehicle for distance, vehicle in sorted(nearby, key=lambda pair: pair[0]) if distance <= radius_km]

    async def get_by_id(self, vehicle_id: str) -> Optional[Vehicle]:
        document = self._documents.get(vehicle_id)
        if document is None:
            return None
        return self.mapper.to_vehicle(copy.deepcopy(document))

    async def get_by_user_id(self, user_id: str) -> List[Vehicle]:
        return self._map_many([doc for doc in self._documents.values() if doc.get("rented_by") == user_id])

    async def _upsert(self, document: Dict[str, Any]) -> None:
        stored = self._documents.setdefault(document["_id"], {})
        stored.update(copy.deepcopy(document))

    async def _patch(self, vehicle_id: str, fields: Dict[str, Any]) -> bool:
        stored = self._documents.get(vehicle_id)
        if stored is None:
            return False
        stored.update(copy.deepcopy(fields))
        return True

    def get_document(self, vehicle_id: str) -> Optional[Dict[str, Any]]:
        """Raw stored document (copy)"""
        document = self._documents.get(vehicle_id)
        return copy.deepcopy(document) if document is not None else None

    def count(self) -> int:
        return len(self._documents)

    def clear(self) -> None:
        """Clear all documents (for testing)"""
        self._documents.clear()


# ============================================================================
# MONGODB IMPLEMENTATION
# ============================================================================

class MongoVehicleRepository(DocumentVehicleRepository):
    """
    MongoDB repository using motor

    Documents are keyed by vehicle id and carry a GeoJSON point in "location"
    for the 2dsphere index used by proximity queries.
    """

    def __init__(
        self,
        collection: Any,
        dispatcher: Optional[DomainEventDispatcher] = None,
        client: Optional[AsyncIOMotorClient] = None
    ):
        super().__init__(dispatcher)
        self.collection = collection
        self.client = client

    @classmethod
    def from_url(
        cls,
        mongo_url: str,
        database: str = "fleet",
        collection: str = "vehicles",
        dispatcher: Optional[DomainEventDispatcher] = None,
        timeout_ms: int = 5000
    ) -> 'MongoVehicleRepository':
        client = AsyncIOMotorClient(mongo_url, serverSelectionTimeoutMS=timeout_ms)
        return cls(client[database][collection], dispatcher, client)

    async def ensure_indexes(self) -> None:
        try:
            await self.collection.create_index([("location", pymongo.GEOSPHERE)])
            await self.collection.create_index([("rented_by", pymongo.ASCENDING)])
        except PyMongoError as e:
            self._logger.error(f"Error creating vehicle indexes: {e}")
            raise RepositoryError(f"Index creation failed: {e}") from e

    async def get_nearby(self, center: Location, radius_km: float) -> List[Vehicle]:
        query = {
            "location": {
                "$geoWithin": {
                    "$centerSphere": [[center.longitude, center.latitude], radius_km / EARTH_RADIUS_KM]
                }
            }
        }
        return self._map_many(await self._find(query))

    async def get_by_id(self, vehicle_id: str) -> Optional[Vehicle]:
        try:
            document = await self.collection.find_one({"_id": vehicle_id})
        except PyMongoError as e:
            self._logger.error(f"Error loading vehicle {vehicle_id}: {e}")
            raise RepositoryError(f"Failed to load vehicle {vehicle_id}: {e}") from e

        return self.mapper.to_vehicle(document) if document is not None else None

    async def get_by_user_id(self, user_id: str) -> List[Vehicle]:
        return self._map_many(await self._find({"rented_by": user_id}))

    async def _find(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            cursor = self.collection.find(query)
            return await cursor.to_list(length=None)
        except PyMongoError as e:
            self._logger.error(f"Error querying vehicles: {e}")
            raise RepositoryError(f"Vehicle query failed: {e}") from e

    async def _upsert(self, document: Dict[str, Any]) -> None:
        fields = {key: value for key, value in document.items() if key != "_id"}
        try:
            await self.collection.update_one({"_id": document["_id"]}, {"$set": fields}, upsert=True)
        except PyMongoError as e:
            self._logger.error(f"Error saving vehicle {document['_id']}: {e}")
            raise RepositoryError(f"Failed to save vehicle {document['_id']}: {e}") from e

    async def _patch(self, vehicle_id: str, fields: Dict[str, Any]) -> bool:
        try:
            result = await self.collection.update_one({"_id": vehicle_id}, {"$set": fields})
        except PyMongoError as e:
            self._logger.error(f"Error patching vehicle {vehicle_id}: {e}")
            raise RepositoryError(f"Failed to patch vehicle {vehicle_id}: {e}") from e
        return result.matched_count > 0

    def close(self) -> None:
        if self.client is not None:
            self.client.close()


# ============================================================================
# LAZY REPOSITORY
# ============================================================================

class LazyVehicleRepository(VehicleRepository):
    """
    Repository proxy that builds its target on first use

    The connection secret is fetched from the secret provider only when the
    first operation runs. Concurrent first calls share one initialisation.
    """

    def __init__(
        self,
        secret_provider: Any,
        repository_factory: Callable[[str], Awaitable[VehicleRepository]],
        secret_name: str = "mongo-url"
    ):
        self.secret_provider = secret_provider
        self.repository_factory = repository_factory
        self.secret_name = secret_name
        self._repository: Optional[VehicleRepository] = None
        self._lock = asyncio.Lock()
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def is_initialized(self) -> bool:
        return self._repository is not None

    async def _get_repository(self) -> VehicleRepository:
        if self._repository is None:
            async with self._lock:
                if self._repository is None:
                    self._logger.info(f"Initializing vehicle repository from secret '{self.secret_name}'")
                    secret = await self.secret_provider.get_secret(self.secret_name)
                    self._repository = await self.repository_factory(secret)
        return self._repository

    async def get_nearby(self, center: Location, radius_km: float) -> List[Vehicle]:
        return await (await self._get_repository()).get_nearby(center, radius_km)

    async def get_by_id(self, vehicle_id: str) -> Optional[Vehicle]:
        return await (await self._get_repository()).get_by_id(vehicle_id)

    async def get_by_user_id(self, user_id: str) -> List[Vehicle]:
        return await (await self._get_repository()).get_by_user_id(user_id)

    async def save(self, vehicle: Vehicle) -> None:
        await (await self._get_repository()).save(vehicle)

    async def save_telemetry(self, vehicle_id: str, telemetry: Dict[str, Any]) -> bool:
        return await (await self._get_repository()).save_telemetry(vehicle_id, telemetry)
