# File: fleet_tracker/infrastructure/messaging.py
"""
Domain Event Dispatch for Fleet Tracking System

This module delivers the domain events recorded by Vehicle aggregates once the
repository has persisted them.

Components:
1. EventHandler - async handler interface
2. DomainEventDispatcher - routes events to handlers by their EventType tag
3. LoggingEventHandler - writes every event to the log
4. RedisEventPublisher - publishes integration events on a Redis pub/sub channel
5. MongoEventStoreHandler - appends events to a MongoDB collection keyed by id
6. InMemoryEventStore - keeps dispatched events in memory (development/testing)

Delivery semantics:
- Handlers for one tag run in registration order
- A failing handler does not stop the others; the failures are collected and
  reported as one EventDispatchError after the batch
- The repository keeps events pending when dispatch fails, so a retried save
  dispatches them again (at-least-once). Handlers that must be idempotent key
  on event_id.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Iterable, Tuple
import json
import logging

import redis
import redis.asyncio as aioredis
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..domain.models import DomainEvent, EventType


class EventDispatchError(Exception):
    """Raised when one or more handlers failed to process a batch of events"""

    def __init__(self, message: str, failures: Optional[List[Tuple[DomainEvent, str, BaseException]]] = None):
        super().__init__(message)
        self.failures = failures or []


# ============================================================================
# EVENT HANDLERS
# ============================================================================

class EventHandler(ABC):
    """Abstract base class for async event handlers"""

    @abstractmethod
    async def handle(self, event: DomainEvent) -> None:
        """Handle a domain event"""
        pass

    def can_handle(self, event: DomainEvent) -> bool:
        """Check if this handler can handle the event"""
        return True

    @property
    def name(self) -> str:
        return self.__class__.__name__


class LoggingEventHandler(EventHandler):
    """Writes each event to the log"""

    def __init__(self, level: int = logging.INFO):
        self.level = level
        self._logger = logging.getLogger(self.__class__.__name__)

    async def handle(self, event: DomainEvent) -> None:
        self._logger.log(self.level, f"{event.event_type.value} {event.event_id}: {event.to_dict()['data']}")


class InMemoryEventStore(EventHandler):
    """Keeps dispatched events in memory, ignoring redeliveries of the same event"""

    def __init__(self):
        self._events: Dict[str, DomainEvent] = {}

    async def handle(self, event: DomainEvent) -> None:
        self._events.setdefault(event.event_id, event)

    @property
    def events(self) -> List[DomainEvent]:
        return list(self._events.values())

    def events_for(self, vehicle_id: str) -> List[DomainEvent]:
        return [event for event in self._events.values() if getattr(event, 'vehicle_id', None) == vehicle_id]

    def clear(self) -> None:
        self._events.clear()


class RedisEventPublisher(EventHandler):
    """Publishes events as JSON integration events on a Redis channel"""

    def __init__(self, client: Any, channel: str = "fleet.vehicle-events"):
        self.client = client
        self.channel = channel
        self._logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_url(cls, redis_url: str, channel: str = "fleet.vehicle-events", **kwargs) -> 'RedisEventPublisher':
        return cls(aioredis.from_url(redis_url, **kwargs), channel)

    async def handle(self, event: DomainEvent) -> None:
        payload = json.dumps(event.to_dict())
        try:
            receivers = await self.client.publish(self.channel, payload)
        except redis.RedisError as e:
            self._logger.error(f"Error publishing {event.event_type.value} {event.event_id} to Redis: {e}")
            raise EventDispatchError(f"Redis publish failed: {e}") from e

        self._logger.debug(f"Published {event.event_id} to {self.channel} ({receivers} receivers)")

    async def close(self) -> None:
        await self.client.aclose()


class MongoEventStoreHandler(EventHandler):
    """
    Appends events to a MongoDB collection

    The document _id is the event id, so redelivering an event after a failed
    batch is a no-op.
    """

    def __init__(self, collection: Any):
        self.collection = collection
        self._logger = logging.getLogger(self.__class__.__name__)

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("vehicle_id", 1), ("occurred_on", 1)])
        await self.collection.create_index([("event_type", 1)])

    async def handle(self, event: DomainEvent) -> None:
        data = event.to_dict()
        document = {
            "_id": event.event_id,
            "event_type": data["event_type"],
            "vehicle_id": data["data"].get("vehicle_id"),
            "occurred_on": event.occurred_on,
            "version": data["version"],
            "data": data["data"],
        }
        try:
            await self.collection.insert_one(document)
        except DuplicateKeyError:
            self._logger.debug(f"Event {event.event_id} already stored")
        except PyMongoError as e:
            self._logger.error(f"Error saving event {event.event_id} to store: {e}")
            raise EventDispatchError(f"Event store write failed: {e}") from e


# ============================================================================
# DISPATCHER
# ============================================================================

class DomainEventDispatcher:
    """
    Routes domain events to the handlers subscribed to their EventType

    Usage:
        dispatcher = DomainEventDispatcher()
        dispatcher.subscribe(EventType.VEHICLE_STATUS_CHANGED, handler)
        await dispatcher.dispatch(vehicle.pending_events)
    """

    def __init__(self):
        self._subscribers: Dict[EventType, List[EventHandler]] = {event_type: [] for event_type in EventType}
        self._logger = logging.getLogger(self.__class__.__name__)

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe a handler to events of a specific type"""
        event_type = EventType(event_type)
        handlers = self._subscribers[event_type]
        if handler not in handlers:
            handlers.append(handler)
            self._logger.debug(f"Subscribed {handler.name} to {event_type.value}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe a handler to every event type"""
        for event_type in EventType:
            self.subscribe(event_type, handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        event_type = EventType(event_type)
        handlers = self._subscribers[event_type]
        if handler in handlers:
            handlers.remove(handler)
            self._logger.debug(f"Unsubscribed {handler.name} from {event_type.value}")

    def handlers_for(self, event_type: EventType) -> List[EventHandler]:
        return list(self._subscribers[EventType(event_type)])

    def all_handlers(self) -> List[EventHandler]:
        """Every subscribed handler once, in first-subscription order"""
        unique: List[EventHandler] = []
        for handlers in self._subscribers.values():
            for handler in handlers:
                if not any(handler is seen for seen in unique):
                    unique.append(handler)
        return unique

    async def dispatch(self, events: Iterable[DomainEvent]) -> None:
        """
        Deliver events in order to their handlers

        Raises EventDispatchError after the whole batch if any handler failed.
        """
        failures: List[Tuple[DomainEvent, str, BaseException]] = []

        for event in events:
            for handler in self._subscribers[event.event_type]:
                if not handler.can_handle(event):
                    continue
                try:
                    await handler.handle(event)
                except Exception as e:
                    self._logger.error(f"Error handling {event.event_type.value} {event.event_id} with {handler.name}: {e}")
                    failures.append((event, handler.name, e))

        if failures:
            raise EventDispatchError(
                f"{len(failures)} handler failure(s) while dispatching domain events",
                failures
            )

    def clear_subscribers(self) -> None:
        """Clear all subscribers (for testing)"""
        for handlers in self._subscribers.values():
            handlers.clear()
