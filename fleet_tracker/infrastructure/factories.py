# File: fleet_tracker/infrastructure/factories.py
"""
Factory Pattern Implementation for Fleet Tracking System

This module wires the application together:
1. Dispatcher Factory - builds the domain event dispatcher and its handlers
2. Repository Factory - builds the configured vehicle repository
3. FleetApplication - composition root holding the services

Key Benefits:
- Object creation is centralized in one place
- Services depend on the repository contract, not on a storage backend
- Tests build the in-memory variant without touching the environment
"""

from typing import Optional, List, Any
import logging

from ..application.fleet_service import VehicleCommandService, VehicleQueryService
from ..application.telemetry import TelemetryIngestService
from .config import FleetSettings, SecretProvider, EnvironmentSecretProvider, StaticSecretProvider
from .messaging import (
    DomainEventDispatcher, LoggingEventHandler, RedisEventPublisher,
    MongoEventStoreHandler, InMemoryEventStore
)
from .repositories import (
    VehicleRepository, InMemoryVehicleRepository, MongoVehicleRepository,
    LazyVehicleRepository
)

MONGO_URL_SECRET = "mongo-url"


# ============================================================================
# DISPATCHER FACTORY
# ============================================================================

class DispatcherFactory:
    """Factory for the domain event dispatcher"""

    @staticmethod
    def create(settings: FleetSettings, event_store: Optional[InMemoryEventStore] = None) -> DomainEventDispatcher:
        dispatcher = DomainEventDispatcher()
        dispatcher.subscribe_all(LoggingEventHandler())

        if event_store is not None:
            dispatcher.subscribe_all(event_store)

        if settings.redis_url:
            dispatcher.subscribe_all(RedisEventPublisher.from_url(settings.redis_url, settings.event_channel))
            logging.getLogger("DispatcherFactory").info(f"Publishing vehicle events on {settings.event_channel}")

        return dispatcher


# ============================================================================
# REPOSITORY FACTORY
# ============================================================================

class RepositoryFactory:
    """Factory for vehicle repositories"""

    @staticmethod
    def create_in_memory(dispatcher: Optional[DomainEventDispatcher] = None) -> InMemoryVehicleRepository:
        return InMemoryVehicleRepository(dispatcher)

    @staticmethod
    def create_mongo(
        settings: FleetSettings,
        dispatcher: DomainEventDispatcher,
        secret_provider: SecretProvider,
        created: Optional[List[Any]] = None
    ) -> LazyVehicleRepository:
        """
        MongoDB repository built on first use
        The event store handler is subscribed once the client exists
        """
        async def build(mongo_url: str) -> VehicleRepository:
            repository = MongoVehicleRepository.from_url(
                mongo_url,
                database=settings.mongo_database,
                collection=settings.mongo_collection,
                dispatcher=dispatcher,
                timeout_ms=settings.mongo_timeout_ms
            )
            await repository.ensure_indexes()

            event_store = MongoEventStoreHandler(
                repository.client[settings.mongo_database][settings.mongo_events_collection]
            )
            await event_store.ensure_indexes()
            dispatcher.subscribe_all(event_store)

            if created is not None:
                created.append(repository)
            return repository

        return LazyVehicleRepository(secret_provider, build, MONGO_URL_SECRET)

    @staticmethod
    def create_secret_provider(settings: FleetSettings) -> SecretProvider:
        if settings.mongo_url:
            return StaticSecretProvider({MONGO_URL_SECRET: settings.mongo_url})
        return EnvironmentSecretProvider()


# ============================================================================
# COMPOSITION ROOT
# ============================================================================

class FleetApplication:
    """Holds the configured repository and services"""

    def __init__(
        self,
        settings: FleetSettings,
        dispatcher: DomainEventDispatcher,
        repository: VehicleRepository,
        event_store: Optional[InMemoryEventStore] = None
    ):
        self.settings = settings
        self.dispatcher = dispatcher
        self.repository = repository
        self.event_store = event_store
        self.command_service = VehicleCommandService(repository)
        self.query_service = VehicleQueryService(repository)
        self.telemetry_service = TelemetryIngestService(repository)
        self._owned: List[Any] = []
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def create(
        cls,
        settings: Optional[FleetSettings] = None,
        secret_provider: Optional[SecretProvider] = None
    ) -> 'FleetApplication':
        settings = settings or FleetSettings()

        if settings.repository_backend == "mongo":
            dispatcher = DispatcherFactory.create(settings)
            owned: List[Any] = []
            repository = RepositoryFactory.create_mongo(
                settings,
                dispatcher,
                secret_provider or RepositoryFactory.create_secret_provider(settings),
                owned
            )
            application = cls(settings, dispatcher, repository)
            application._owned = owned
        else:
            event_store = InMemoryEventStore()
            dispatcher = DispatcherFactory.create(settings, event_store)
            repository = RepositoryFactory.create_in_memory(dispatcher)
            application = cls(settings, dispatcher, repository, event_store)

        application.logger.info(f"Fleet application initialized with {settings.repository_backend} repository")
        return application

    async def close(self) -> None:
        """Release clients created by the application"""
        for repository in self._owned:
            repository.close()
        for handler in self.dispatcher.all_handlers():
            if isinstance(handler, RedisEventPublisher):
                await handler.close()
