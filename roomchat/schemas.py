from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, List, Optional


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

# Inbound socket payloads, checked field by field in roomchat.validation
class JoinRoom(BaseModel):
    username: Any = None
    room: Any = None

class LeaveRoom(BaseModel):
    username: Any = None
    room: Any = None

class ChatMessageIn(BaseModel):
    text: Any = None
    time: Any = None

# Store records
class HistoryRecord(BaseModel):
    socket_id: str
    username: str
    message: str
    timestamp: int
    model_config = ConfigDict(from_attributes=True)

class ConnectionLogRecord(BaseModel):
    username: str
    action: str
    timestamp: int
    model_config = ConfigDict(from_attributes=True)

class UserMessageRecord(BaseModel):
    message: str
    timestamp: int
    model_config = ConfigDict(from_attributes=True)

class Statistics(CamelModel):
    total_messages: int
    total_connections: int
    active_room_count: int
    total_users: int

class RoomSummary(CamelModel):
    room: str
    count: int
    first_timestamp: Optional[int] = None
    last_timestamp: Optional[int] = None

class RoomFeedItem(RoomSummary):
    permanent: bool
    online: int = 0

# Cleanup results
class CleanupResult(CamelModel):
    deleted_messages: int
    rooms: List[str] = Field(default_factory=list)
