"""Error taxonomy for the chat core.

Validation and identity errors go back to the originating connection as an
``error`` event. Store failures are logged and never break the live path.
"""


class ChatError(Exception):
    """Base class for chat core errors."""

    message = "Request failed"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationFailed(ChatError):
    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Invalid {field}")


class DuplicateIdentity(ChatError):
    def __init__(self, username: str, room: str):
        self.username = username
        self.room = room
        super().__init__(f"Username {username} is already taken in room {room}")


class NotJoined(ChatError):
    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__("Please join a room first")


class StoreFailure(ChatError):
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Store operation failed: {operation}")


class TransportGone(ChatError):
    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__(f"Connection {connection_id} no longer exists")
