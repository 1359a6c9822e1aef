import logging
from typing import Any, Dict, Iterable, Optional

import socketio

logger = logging.getLogger(__name__)

class ConnectionManager:
    """Thin layer over the socket.io server used for direct replies and room fan-out.

    Room membership itself lives in the coordinator's ``RoomDirectory``;
    this class only knows which sids are live and where they came from.
    """

    def __init__(self, sio: socketio.AsyncServer, namespace: str = "/"):
        self.sio = sio
        self.namespace = namespace
        self.addresses: Dict[str, Optional[str]] = {}

    def connect(self, sid: str, environ: Optional[dict] = None):
        environ = environ or {}
        forwarded = environ.get("HTTP_X_FORWARDED_FOR")
        address = forwarded.split(",")[0].strip() if forwarded else environ.get("REMOTE_ADDR")
        self.addresses[sid] = address
        logger.info(f"User connected: {sid} from {address}")

    def disconnect(self, sid: str):
        self.addresses.pop(sid, None)
        logger.info(f"User disconnected: {sid}")

    def source_address(self, sid: str) -> Optional[str]:
        return self.addresses.get(sid)

    def is_connected(self, sid: str) -> bool:
        return self.sio.manager.is_connected(sid, self.namespace)

    async def send(self, sid: str, event: str, data: Any):
        await self.sio.emit(event, data, to=sid, namespace=self.namespace)

    async def broadcast_to_room(self, members: Iterable[str], event: str, data: Any, skip_sid: Optional[str] = None):
        for sid in members:
            if sid == skip_sid:
                continue
            try:
                await self.sio.emit(event, data, to=sid, namespace=self.namespace)
            except Exception as e:
                logger.warning(f"Failed to deliver {event!r} to {sid}: {e}")
