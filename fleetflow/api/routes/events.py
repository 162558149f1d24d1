"""
Live event stream
=================

WS /api/v1/events -- every state change published after it commits

Each message is ``{"event_type", "entity_type", "entity_id", "new_state",
"occurred_at"}``.  Only events published while the socket is open are
delivered; there is no replay.  ``?entity_type=trip`` narrows the stream.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from fleetflow.domain.enums import EntityType
from fleetflow.services.notifier import EventNotifier, Subscription

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.websocket("/events")
async def stream_events(websocket: WebSocket, entity_type: Optional[EntityType] = None):
    notifier: EventNotifier = websocket.app.state.notifier
    await websocket.accept()

    with notifier.subscribe() as subscription:
        logger.info("Event observer connected (%d total)", notifier.subscriber_count)
        forward = asyncio.create_task(_forward(websocket, subscription, entity_type))
        listen = asyncio.create_task(_until_disconnect(websocket))
        done, pending = await asyncio.wait(
            {forward, listen}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Event stream closed: %r", exc)

    logger.info("Event observer disconnected")


async def _forward(
    websocket: WebSocket,
    subscription: Subscription,
    entity_type: Optional[EntityType],
) -> None:
    async for event in subscription:
        if entity_type is not None and event.entity_type != entity_type:
            continue
        await websocket.send_json(event.to_dict())


async def _until_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
