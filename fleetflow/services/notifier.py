"""
Event Notifier
==============

Publishes state-change events to whoever is subscribed *right now*.

* ``EventNotifier`` is an explicit registry owned by the application
  (``app.state.notifier``).  ``subscribe`` / ``unsubscribe`` / ``publish``
  are safe to call from any thread.
* Each ``Subscription`` owns a bounded ``asyncio.Queue`` on the event loop
  that created it.  ``publish`` hands events over with
  ``call_soon_threadsafe``; a full queue drops the event.
* Delivery is at-most-once: no replay, no persistence.  Observers that
  connect later only see later events.

``RedisEventRelay`` is an ordinary subscriber that forwards every event to
a Redis pub/sub channel for observers living in other processes.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

import redis.asyncio as aioredis

from fleetflow.domain.enums import EntityType, EventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateChangeEvent:
    event_type: EventType
    entity_type: EntityType
    entity_id: int
    new_state: dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "new_state": _jsonable(self.new_state),
            "occurred_at": self.occurred_at.isoformat(),
        }


class Subscription:
    def __init__(
        self,
        notifier: "EventNotifier",
        loop: asyncio.AbstractEventLoop,
        maxsize: int,
    ):
        self._notifier = notifier
        self._loop = loop
        self._queue: asyncio.Queue[StateChangeEvent] = asyncio.Queue(maxsize)
        self.dropped = 0

    def offer(self, event: StateChangeEvent) -> bool:
        """Schedule delivery from any thread.  False if the loop is gone."""
        try:
            self._loop.call_soon_threadsafe(self._put, event)
        except RuntimeError:
            return False
        return True

    def _put(self, event: StateChangeEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Subscriber queue full; dropped %s for %s %s",
                event.event_type.value,
                event.entity_type.value,
                event.entity_id,
            )

    async def get(self) -> StateChangeEvent:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._notifier.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> StateChangeEvent:
        return await self.get()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class EventNotifier:
    def __init__(self, queue_size: int = 100):
        self._queue_size = queue_size
        self._lock = threading.Lock()
        self._subscriptions: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe(self, maxsize: Optional[int] = None) -> Subscription:
        """Register a new observer on the running event loop."""
        subscription = Subscription(
            self, asyncio.get_running_loop(), maxsize or self._queue_size
        )
        with self._lock:
            self._subscriptions.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)

    def publish(self, event: StateChangeEvent) -> int:
        """Offer *event* to every current subscriber; returns how many took it."""
        with self._lock:
            targets = list(self._subscriptions)

        delivered = 0
        for subscription in targets:
            if subscription.offer(event):
                delivered += 1
            else:
                logger.info("Removing subscriber whose event loop has closed")
                self.unsubscribe(subscription)
        return delivered

    def publish_all(self, events: list[StateChangeEvent]) -> None:
        for event in events:
            self.publish(event)


class RedisEventRelay:
    """Forwards notifier events to a Redis pub/sub channel as JSON."""

    def __init__(
        self,
        notifier: EventNotifier,
        redis: aioredis.Redis,
        channel: str,
    ):
        self.notifier = notifier
        self.redis = redis
        self.channel = channel
        self._subscription: Optional[Subscription] = None
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        self._subscription = self.notifier.subscribe()
        self._task = asyncio.create_task(self._run())
        logger.info("Redis event relay started (channel=%s)", self.channel)

    async def stop(self) -> None:
        if self._subscription:
            self._subscription.close()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self.redis.aclose(close_connection_pool=True)
        logger.info("Redis event relay stopped")

    async def _run(self) -> None:
        assert self._subscription is not None
        async for event in self._subscription:
            await self.relay(event)

    async def relay(self, event: StateChangeEvent) -> None:
        try:
            await self.redis.publish(self.channel, json.dumps(event.to_dict()))
        except Exception:
            logger.exception(
                "Failed to relay %s for %s %s",
                event.event_type.value,
                event.entity_type.value,
                event.entity_id,
            )


# ── Event payloads ────────────────────────────────────────────────────


def trip_state(trip) -> dict[str, Any]:
    return {
        "reference_code": trip.reference_code,
        "status": trip.status,
        "vehicle_id": trip.vehicle_id,
        "driver_id": trip.driver_id,
        "cargo_weight_kg": trip.cargo_weight_kg,
        "start_odometer": trip.start_odometer,
        "end_odometer": trip.end_odometer,
        "created_at": trip.created_at,
        "dispatched_at": trip.dispatched_at,
        "completed_at": trip.completed_at,
        "cancelled_at": trip.cancelled_at,
    }


def vehicle_state(vehicle) -> dict[str, Any]:
    return {
        "status": vehicle.status,
        "odometer_km": vehicle.odometer_km,
    }


def driver_state(driver) -> dict[str, Any]:
    return {
        "status": driver.status,
        "assigned_vehicle_id": driver.assigned_vehicle_id,
    }


def maintenance_state(log) -> dict[str, Any]:
    return {
        "vehicle_id": log.vehicle_id,
        "maintenance_type": log.maintenance_type,
        "provider": log.provider,
        "cost": log.cost,
        "service_date": log.service_date,
        "resolved": log.resolved,
    }


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return getattr(value, "value", value)
