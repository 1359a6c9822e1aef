"""Socket.IO server definition and event wiring.

Inbound wire events are routed through the coordinator's dispatch table;
``connect`` and ``disconnect`` come from the transport itself.
"""

import logging
from typing import List

import socketio

from .coordinator import RoomCoordinator
from .services import ConnectionManager

logger = logging.getLogger(__name__)


def create_socket_server(origins: List[str]) -> socketio.AsyncServer:
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=origins,
        ping_timeout=25,
        ping_interval=20,
    )


def register_handlers(sio: socketio.AsyncServer, coordinator: RoomCoordinator, connections: ConnectionManager) -> None:
    async def connect(sid, environ, auth=None):
        connections.connect(sid, environ)

    async def disconnect(sid, reason=None):
        try:
            await coordinator.disconnect(sid)
        finally:
            connections.disconnect(sid)

    sio.on("connect", handler=connect)
    sio.on("disconnect", handler=disconnect)

    for event in coordinator.handlers:
        sio.on(event, handler=_make_handler(coordinator, event))


def _make_handler(coordinator: RoomCoordinator, event: str):
    async def handle(sid, data=None):
        await coordinator.dispatch(event, sid, data)

    return handle
