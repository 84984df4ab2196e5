from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, WebSocket

from liquiditydesk.schemas.stream import snapshot_message
from liquiditydesk.services import Services, get_ws_services

router = APIRouter()


@router.websocket("/ws")
async def stream_updates(
    websocket: WebSocket, services: Services = Depends(get_ws_services)
) -> None:
    await websocket.accept()
    catch_up = [snapshot_message(snapshot) for snapshot in services.store.latest_snapshots()]
    subscriber = services.hub.subscribe(websocket.send_text, catch_up=catch_up)
    sender = asyncio.create_task(subscriber.run())
    try:
        # Viewers never send anything meaningful; reading only detects the disconnect.
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        services.hub.unsubscribe(subscriber)
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
