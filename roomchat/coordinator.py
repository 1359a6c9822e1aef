import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from . import schemas
from .errors import DuplicateIdentity, NotJoined, StoreFailure, TransportGone, ValidationFailed
from .gateway import PersistenceGateway
from .registry import RoomDirectory, Session, SessionRegistry
from .services import ConnectionManager
from .settings import CoordinatorConfig
from .validation import clamp_limit, validate_message, validate_room, validate_username

logger = logging.getLogger(__name__)

# Wire event names
JOIN_ROOM = "join room"
CHAT_MESSAGE = "chat message"
LEAVE_ROOM = "leave room"
ROOM_JOINED = "room joined"
ROOM_HISTORY = "room history"
USER_LIST = "user list"
SYSTEM_MESSAGE = "system message"
USER_LEFT = "user left"
ERROR = "error"

Handler = Callable[[str, Any], Awaitable[None]]


class RoomCoordinator:
    def __init__(
        self,
        registry: SessionRegistry,
        directory: RoomDirectory,
        gateway: PersistenceGateway,
        connections: ConnectionManager,
        config: Optional[CoordinatorConfig] = None,
    ):
        self.registry = registry
        self.directory = directory
        self.gateway = gateway
        self.connections = connections
        self.config = config or CoordinatorConfig()
        self.handlers: Dict[str, Handler] = {
            JOIN_ROOM: self._on_join,
            CHAT_MESSAGE: self._on_chat_message,
            LEAVE_ROOM: self._on_leave,
        }

    def presence(self, room: str) -> List[str]:
        """Usernames in ``room`` in join order."""
        names = []
        for sid in self.directory.members(room):
            session = self.registry.get(sid)
            if session is not None:
                names.append(session.username)
        return names

    def active_rooms(self) -> List[str]:
        return self.directory.room_names()

    def session_for(self, connection_id: str) -> Optional[Session]:
        return self.registry.get(connection_id)

    async def dispatch(self, event: str, connection_id: str, payload: Any = None) -> None:
        handler = self.handlers.get(event)
        if handler is None:
            logger.warning(f"Unknown event {event!r} from {connection_id}")
            return
        try:
            await handler(connection_id, payload)
        except (ValidationFailed, DuplicateIdentity, NotJoined) as e:
            await self.connections.send(connection_id, ERROR, {"message": e.message})

    async def _on_join(self, connection_id: str, payload: Any) -> None:
        data = _parse(schemas.JoinRoom, payload)
        await self.join(connection_id, data.username, data.room)

    async def _on_chat_message(self, connection_id: str, payload: Any) -> None:
        data = _parse(schemas.ChatMessageIn, payload)
        await self.send_message(connection_id, data.text, data.time)

    async def _on_leave(self, connection_id: str, payload: Any) -> None:
        data = _parse(schemas.LeaveRoom, payload)
        await self.leave(connection_id, data.room)

    async def join(self, connection_id: str, username: Any, room: Any) -> Session:
        username = validate_username(username)
        room = validate_room(room)

        for sid in self.directory.members(room):
            other = self.registry.get(sid)
            if sid != connection_id and other is not None and other.username == username:
                raise DuplicateIdentity(username, room)

        # A connection holds one session; joining again replaces the old one
        previous = self.registry.remove(connection_id)
        moved = previous is not None and previous.room != room
        if moved:
            self._evict(previous)

        session = Session(connection_id=connection_id, username=username, room=room)
        self.registry.add(session)
        self.directory.add_member(room, connection_id)
        logger.info(f"{username} ({connection_id}) joined room {room}")

        if previous is None or moved:
            await self._record_event(session, "join")

        await self.connections.send(connection_id, ROOM_JOINED, {"username": username, "room": room})
        history = await self._history(room)
        await self.connections.send(connection_id, ROOM_HISTORY, history)

        if moved:
            await self._announce_departure(previous, "leave")

        await self.connections.broadcast_to_room(
            self.directory.members(room), USER_LIST, self.presence(room)
        )
        if previous is None or moved or previous.username != username:
            await self.connections.broadcast_to_room(
                self.directory.members(room),
                SYSTEM_MESSAGE,
                {"message": f"{username} joined the room"},
                skip_sid=connection_id,
            )
        return session

    async def send_message(self, connection_id: str, text: Any, client_time: Any = None) -> None:
        session = self.registry.get(connection_id)
        if session is None:
            raise NotJoined(connection_id)
        text = validate_message(text)

        timestamp = int(time.time() * 1000)
        try:
            await self.gateway.record_message(
                connection_id, session.username, session.room, text, timestamp
            )
        except StoreFailure as e:
            logger.error(f"Failed to persist message from {session.username} in {session.room}: {e}")

        await self.connections.broadcast_to_room(
            self.directory.members(session.room),
            CHAT_MESSAGE,
            {
                "username": session.username,
                "text": text,
                "time": client_time if client_time is not None else timestamp,
                "socketId": connection_id,
            },
        )

    async def leave(self, connection_id: str, room: Any) -> None:
        session = self.registry.get(connection_id)
        if isinstance(room, str):
            room = room.strip()
        if session is None or session.room != room:
            return
        await self._end_session(session, "leave")

    async def disconnect(self, connection_id: str) -> None:
        session = self.registry.get(connection_id)
        if session is None:
            return
        await self._end_session(session, "disconnect")

    async def reap_orphans(self) -> List[Session]:
        """Evict sessions whose transport connection vanished. No store write, no broadcast."""
        evicted = []
        for session in self.registry:
            if self.connections.is_connected(session.connection_id):
                continue
            self._evict(session)
            evicted.append(session)
            logger.info(f"Reaped orphaned session: {TransportGone(session.connection_id)}")
        return evicted

    def _evict(self, session: Session) -> None:
        self.registry.remove(session.connection_id)
        if self.directory.remove_member(session.room, session.connection_id):
            logger.info(f"Room {session.room} is now empty")

    async def _end_session(self, session: Session, action: str) -> None:
        self._evict(session)
        await self._announce_departure(session, action)

    async def _announce_departure(self, session: Session, action: str) -> None:
        logger.info(f"{session.username} ({session.connection_id}) {action} room {session.room}")
        await self._record_event(session, action)

        remaining = self.directory.members(session.room)
        await self.connections.broadcast_to_room(remaining, USER_LEFT, {"username": session.username})
        await self.connections.broadcast_to_room(remaining, USER_LIST, self.presence(session.room))

    async def _record_event(self, session: Session, action: str) -> None:
        try:
            await self.gateway.record_connection_event(
                session.connection_id,
                session.username,
                session.room,
                action,
                source_address=self.connections.source_address(session.connection_id),
            )
        except StoreFailure as e:
            logger.error(f"Failed to record {action} for {session.username} in {session.room}: {e}")

    async def _history(self, room: str) -> List[dict]:
        try:
            records = await self.gateway.fetch_room_history(room, clamp_limit(self.config.history_limit))
        except StoreFailure as e:
            logger.error(f"Failed to load history for room {room}: {e}")
            return []
        return [
            {"username": r.username, "message": r.message, "timestamp": r.timestamp}
            for r in records
        ]


def _parse(model, payload: Any):
    return model.model_validate(payload if isinstance(payload, dict) else {})
