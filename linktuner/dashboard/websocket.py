"""
WebSocket Handlers

Pushes live sweep events to browser clients.  Each client picks the
channels it wants (progress, status, trace, results); a client that
joins mid-sweep receives the latest progress and status line straight
away so it does not have to wait for the next event.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Dict, Iterable, Optional, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from config import WEBSOCKET_HEARTBEAT_INTERVAL

logger = logging.getLogger(__name__)

router = APIRouter()

CHANNELS = ("progress", "status", "trace", "results")


def _message(message_type: str, **fields) -> Dict:
    return {"type": message_type, **fields, "timestamp": datetime.now().isoformat()}


def _expand(channel: str) -> Iterable[str]:
    return CHANNELS if channel == "all" else (channel,)


class EventHub:
    """Connected clients, their channels and the latest sweep snapshot."""

    def __init__(self):
        self.clients: Dict[WebSocket, Set[str]] = {}
        self.last_progress: Optional[int] = None
        self.last_status: Optional[str] = None
        self.messages_sent = 0

    @property
    def client_count(self) -> int:
        return len(self.clients)

    def snapshot(self) -> Dict:
        return {"progress": self.last_progress, "status": self.last_status}

    async def register(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.clients[websocket] = set(CHANNELS)
        logger.info(f"Event client connected ({self.client_count} total)")

    def unregister(self, websocket: WebSocket) -> None:
        if self.clients.pop(websocket, None) is not None:
            logger.info(f"Event client disconnected ({self.client_count} total)")

    def set_channel(self, websocket: WebSocket, channel: str, enabled: bool) -> Set[str]:
        """
        Turn a channel on or off for one client.

        The first explicit subscribe narrows a client from every channel
        down to just the requested one.  ``all`` stands for every channel.

        Returns:
            The client's channels after the change
        """
        channels = self.clients.setdefault(websocket, set(CHANNELS))
        if enabled:
            if channels == set(CHANNELS) and channel != "all":
                channels.clear()
            channels.update(_expand(channel))
        else:
            channels.difference_update(_expand(channel))
        return channels

    async def publish(self, channel: str, message: Dict) -> int:
        """Send ``message`` to every client listening on ``channel``. Returns the delivery count."""
        if channel == "progress":
            self.last_progress = message.get("percent")
        elif channel == "status":
            self.last_status = message.get("message")

        delivered = 0
        stale = []
        for websocket, channels in list(self.clients.items()):
            if channel not in channels:
                continue
            if websocket.client_state != WebSocketState.CONNECTED:
                stale.append(websocket)
                continue
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping event client after send failure: {e}")
                stale.append(websocket)

        for websocket in stale:
            self.unregister(websocket)
        self.messages_sent += delivered
        return delivered


hub = EventHub()


async def _handle_client_message(websocket: WebSocket, data) -> None:
    if not isinstance(data, dict):
        await websocket.send_json(_message("error", message="Expected a JSON object"))
        return

    message_type = data.get("type")

    if message_type == "ping":
        await websocket.send_json(_message("pong"))

    elif message_type in ("subscribe", "unsubscribe"):
        channel = data.get("channel", "all")
        if channel != "all" and channel not in CHANNELS:
            await websocket.send_json(_message("error", message=f"Unknown channel: {channel}"))
            return
        channels = hub.set_channel(websocket, channel, message_type == "subscribe")
        await websocket.send_json(_message(
            f"{message_type}d", channel=channel, channels=sorted(channels)
        ))

    elif message_type == "get_state":
        controller = websocket.app.state.controller
        state = controller.get_state() if controller else None
        await websocket.send_json(_message("state", data=state, **hub.snapshot()))

    else:
        await websocket.send_json(_message("error", message=f"Unknown message type: {message_type}"))


@router.websocket("/ws")
async def sweep_events(websocket: WebSocket):
    """
    Live sweep events.

    Client messages: ``ping``, ``subscribe``/``unsubscribe`` with a
    ``channel`` (progress, status, trace, results or all) and
    ``get_state``.  Server messages: ``connected``, ``pong``,
    ``subscribed``/``unsubscribed``, ``progress``, ``status``, ``trace``,
    ``result``, ``state``, ``heartbeat`` and ``error``.
    """
    await hub.register(websocket)

    try:
        await websocket.send_json(_message(
            "connected",
            channels=list(CHANNELS),
            clients=hub.client_count,
            **hub.snapshot(),
        ))

        while True:
            try:
                data = await asyncio.wait_for(
                    websocket.receive_json(), timeout=WEBSOCKET_HEARTBEAT_INTERVAL
                )
            except asyncio.TimeoutError:
                await websocket.send_json(_message("heartbeat", clients=hub.client_count))
                continue
            except json.JSONDecodeError:
                logger.warning("Received invalid JSON from event client")
                await websocket.send_json(_message("error", message="Invalid JSON"))
                continue

            await _handle_client_message(websocket, data)

    except WebSocketDisconnect:
        logger.debug("Event client closed the connection")

    except Exception as e:
        logger.error(f"WebSocket error: {e}")

    finally:
        hub.unregister(websocket)


# ─── Publishers ───────────────────────────────────────────────────────────────

async def broadcast_progress(percent: int):
    await hub.publish("progress", _message("progress", percent=percent))


async def broadcast_status(message: str):
    await hub.publish("status", _message("status", message=message))


async def broadcast_trace(line: str):
    await hub.publish("trace", _message("trace", line=line))


async def broadcast_result(result_data: dict):
    await hub.publish("results", _message("result", data=result_data))


__all__ = [
    "router",
    "hub",
    "EventHub",
    "CHANNELS",
    "broadcast_progress",
    "broadcast_status",
    "broadcast_trace",
    "broadcast_result",
]
