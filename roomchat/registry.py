"""In-memory session registry and room directory.

Both are owned by a single ``RoomCoordinator`` and mutated only by it.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional


@dataclass
class Session:
    connection_id: str
    username: str
    room: str
    joined_at: float = field(default_factory=time.time)


class SessionRegistry:
    """connection id -> Session"""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    def add(self, session: Session) -> None:
        if session.connection_id in self._sessions:
            raise KeyError(f"connection {session.connection_id} already has a session")
        self._sessions[session.connection_id] = session

    def get(self, connection_id: str) -> Optional[Session]:
        return self._sessions.get(connection_id)

    def remove(self, connection_id: str) -> Optional[Session]:
        return self._sessions.pop(connection_id, None)

    def connection_ids(self) -> List[str]:
        return list(self._sessions)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))


class RoomDirectory:
    """room name -> connection ids in join order.

    A room is present only while it has at least one member.
    """

    def __init__(self) -> None:
        # dict keys keep insertion order, used as an ordered set
        self._rooms: Dict[str, Dict[str, None]] = {}

    def add_member(self, room: str, connection_id: str) -> None:
        self._rooms.setdefault(room, {})[connection_id] = None

    def remove_member(self, room: str, connection_id: str) -> bool:
        """Remove a member, dropping the room once empty. Returns True if the room was deleted."""
        members = self._rooms.get(room)
        if members is None:
            return False
        members.pop(connection_id, None)
        if not members:
            del self._rooms[room]
            return True
        return False

    def members(self, room: str) -> List[str]:
        return list(self._rooms.get(room, ()))

    def has_room(self, room: str) -> bool:
        return room in self._rooms

    def room_names(self) -> List[str]:
        return list(self._rooms)

    def __len__(self) -> int:
        return len(self._rooms)
