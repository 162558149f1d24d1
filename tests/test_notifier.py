"""Unit tests for the event notifier and the Redis relay (mocked Redis)."""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from fleetflow.domain.enums import EntityType, EventType, TripStatus, VehicleStatus
from fleetflow.infrastructure.redis_client import create_redis
from fleetflow.services.notifier import (
    EventNotifier,
    RedisEventRelay,
    StateChangeEvent,
)


def _event(entity_id=1, **state) -> StateChangeEvent:
    return StateChangeEvent(
        EventType.VEHICLE_UPDATE,
        EntityType.VEHICLE,
        entity_id,
        state or {"status": VehicleStatus.ON_TRIP},
    )


class TestStateChangeEvent:
    def test_to_dict_is_json_ready(self):
        occurred = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        event = StateChangeEvent(
            EventType.TRIP_COMPLETED,
            EntityType.TRIP,
            9,
            {"status": TripStatus.COMPLETED, "completed_at": occurred, "tags": {"a"}},
            occurred_at=occurred,
        )

        data = event.to_dict()

        assert data == {
            "event_type": "trip:completed",
            "entity_type": "trip",
            "entity_id": 9,
            "new_state": {
                "status": "completed",
                "completed_at": "2026-01-02T03:04:05+00:00",
                "tags": ["a"],
            },
            "occurred_at": "2026-01-02T03:04:05+00:00",
        }
        json.dumps(data)


class TestEventNotifier:
    @pytest.mark.asyncio
    async def test_every_subscriber_receives_event(self):
        notifier = EventNotifier()
        first = notifier.subscribe()
        second = notifier.subscribe()

        assert notifier.publish(_event()) == 2
        assert (await asyncio.wait_for(first.get(), 1)).entity_id == 1
        assert (await asyncio.wait_for(second.get(), 1)).entity_id == 1

    @pytest.mark.asyncio
    async def test_no_subscribers_is_a_no_op(self):
        assert EventNotifier().publish(_event()) == 0

    @pytest.mark.asyncio
    async def test_late_subscriber_sees_no_history(self):
        notifier = EventNotifier()
        notifier.publish(_event(1))
        late = notifier.subscribe()
        notifier.publish(_event(2))

        assert (await asyncio.wait_for(late.get(), 1)).entity_id == 2
        await asyncio.sleep(0)
        assert late.pending() == 0

    @pytest.mark.asyncio
    async def test_unsubscribed_observer_gets_nothing(self):
        notifier = EventNotifier()
        with notifier.subscribe() as subscription:
            assert notifier.subscriber_count == 1
        assert notifier.subscriber_count == 0

        assert notifier.publish(_event()) == 0
        await asyncio.sleep(0)
        assert subscription.pending() == 0

    @pytest.mark.asyncio
    async def test_full_queue_drops_instead_of_blocking(self):
        notifier = EventNotifier(queue_size=2)
        slow = notifier.subscribe()
        fast = notifier.subscribe(maxsize=10)

        for i in range(5):
            notifier.publish(_event(i))
        await asyncio.sleep(0)

        assert slow.pending() == 2
        assert slow.dropped == 3
        assert fast.pending() == 5

    @pytest.mark.asyncio
    async def test_events_arrive_in_publish_order(self):
        notifier = EventNotifier()
        subscription = notifier.subscribe()
        notifier.publish_all([_event(i) for i in range(5)])

        received = [(await subscription.get()).entity_id for _ in range(5)]
        assert received == [0, 1, 2, 3, 4]

    def test_subscribe_requires_running_loop(self):
        with pytest.raises(RuntimeError):
            EventNotifier().subscribe()


class TestRedisEventRelay:
    @pytest.mark.asyncio
    async def test_relays_events_as_json(self):
        notifier = EventNotifier()
        mock_redis = AsyncMock()
        relay = RedisEventRelay(notifier, mock_redis, "fleetflow:events")
        await relay.start()

        notifier.publish(_event(5))
        for _ in range(20):
            if mock_redis.publish.await_count:
                break
            await asyncio.sleep(0.01)
        await relay.stop()

        channel, payload = mock_redis.publish.await_args.args
        assert channel == "fleetflow:events"
        assert json.loads(payload)["entity_id"] == 5
        mock_redis.aclose.assert_awaited_once_with(close_connection_pool=True)
        assert notifier.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_redis_failure_is_logged_not_raised(self, caplog):
        mock_redis = AsyncMock()
        mock_redis.publish = AsyncMock(side_effect=ConnectionError("redis down"))
        relay = RedisEventRelay(EventNotifier(), mock_redis, "fleetflow:events")

        await relay.relay(_event(3))

        assert "Failed to relay vehicle:update for vehicle 3" in caplog.text

    @pytest.mark.asyncio
    async def test_client_owns_its_connection_pool(self):
        client = create_redis("redis://localhost:6379/0")

        assert client.auto_close_connection_pool
        assert client.connection_pool.connection_kwargs["decode_responses"] is True
