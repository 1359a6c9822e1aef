import re
from typing import Any

from .errors import ValidationFailed

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_\u4e00-\u9fa5]+$")
ROOM_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

MAX_USERNAME_LENGTH = 20
MAX_ROOM_LENGTH = 20
MAX_MESSAGE_LENGTH = 500

MIN_LIMIT = 1
MAX_LIMIT = 1000

PERMANENT_ROOMS = frozenset(str(n) for n in range(1, 11))


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def validate_username(value: Any) -> str:
    username = _clean(value)
    if not username or len(username) > MAX_USERNAME_LENGTH or not USERNAME_PATTERN.match(username):
        raise ValidationFailed(
            "username",
            "Username must be 1-20 letters, digits, underscores or Chinese characters",
        )
    return username


def validate_room(value: Any) -> str:
    room = _clean(value)
    if not room or len(room) > MAX_ROOM_LENGTH or not ROOM_PATTERN.match(room):
        raise ValidationFailed(
            "room", "Room name must be 1-20 letters, digits, underscores or hyphens"
        )
    return room


def validate_message(value: Any) -> str:
    text = _clean(value)
    if not text or len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationFailed("message", "Message must be 1-500 characters")
    return text


def clamp_limit(value: Any, default: int = 100) -> int:
    """Coerce a history/query limit into [MIN_LIMIT, MAX_LIMIT].

    Anything that is not an integer (or an integer string) falls back to
    ``default`` before clamping.
    """
    if isinstance(value, bool):
        value = default
    try:
        limit = int(value)
    except (TypeError, ValueError):
        limit = default
    return max(MIN_LIMIT, min(MAX_LIMIT, limit))


def is_permanent_room(room: str) -> bool:
    return room in PERMANENT_ROOMS
