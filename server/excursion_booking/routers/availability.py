"""WebSocket stream of slot availability and booking conflicts for one excursion."""

import asyncio
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/availability", tags=["availability"])


async def _forward(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        message = await queue.get()
        await websocket.send_json(message)


async def stop_forwarder(forwarder: Optional[asyncio.Task], excursion_id: UUID) -> None:
    """Cancel the forwarding task and log whatever it failed with."""
    if forwarder is None:
        return

    forwarder.cancel()
    try:
        await forwarder
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.error(
            "Availability stream failed to send",
            extra={"excursion_id": str(excursion_id), "error": str(e)},
            exc_info=True
        )


@router.websocket("/stream/{excursion_id}")
async def availability_stream(websocket: WebSocket, excursion_id: UUID) -> None:
    """
    Push availability changes and detected conflicts for an excursion.

    The first message is a ``snapshot`` of live availability. Later messages
    are either an ``update`` for one slot or a ``conflict``. Messages sent by
    the client are ignored.
    """
    sync = websocket.app.state.sync_service
    await websocket.accept()

    queue: asyncio.Queue = asyncio.Queue()
    handles = [
        sync.subscribe_to_availability_updates(
            excursion_id,
            lambda update: queue.put_nowait({"type": "update", "slot": update.model_dump(mode="json")})
        ),
        sync.subscribe_to_booking_conflicts(
            excursion_id,
            lambda conflict: queue.put_nowait({"type": "conflict", "conflict": conflict.model_dump(mode="json")})
        ),
    ]
    forwarder = None

    try:
        snapshot = await sync.get_realtime_availability(excursion_id)
        await websocket.send_json({
            "type": "snapshot",
            "excursion_id": str(excursion_id),
            "slots": [slot.model_dump(mode="json") for slot in snapshot],
        })

        forwarder = asyncio.create_task(_forward(websocket, queue))
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Availability stream closed by client", extra={"excursion_id": str(excursion_id)})
    finally:
        await stop_forwarder(forwarder, excursion_id)
        for handle in handles:
            handle.unsubscribe()
