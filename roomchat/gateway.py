"""Persistence gateway over the chat store. SQLAlchemy errors surface as ``StoreFailure``."""

import logging
import time
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from . import crud, schemas
from .errors import StoreFailure, ValidationFailed
from .models import Base
from .validation import clamp_limit

logger = logging.getLogger(__name__)

CONNECTION_ACTIONS = ("join", "leave", "disconnect")


def now_millis() -> int:
    return int(time.time() * 1000)


def _require(field: str, value) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationFailed(field)
    return value


class PersistenceGateway:
    def __init__(self, session_factory: async_sessionmaker, engine: Optional[AsyncEngine] = None):
        self.session_factory = session_factory
        self.engine = engine

    async def __aenter__(self) -> "PersistenceGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def create_tables(self) -> None:
        if self.engine is None:
            return
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Chat store closed")


    async def record_connection_event(
        self,
        connection_id: str,
        username: str,
        room: str,
        action: str,
        timestamp: Optional[int] = None,
        source_address: Optional[str] = None,
    ) -> int:
        _require("connection_id", connection_id)
        _require("username", username)
        _require("room", room)
        if action not in CONNECTION_ACTIONS:
            raise ValidationFailed("action", f"Unknown connection action: {action}")
        try:
            async with self.session_factory() as db:
                record_id = await crud.insert_connection_log(
                    db, connection_id, username, room, action,
                    timestamp if timestamp is not None else now_millis(), source_address,
                )
        except SQLAlchemyError as e:
            raise StoreFailure("record_connection_event") from e
        logger.debug(f"Connection log recorded: {username} {action} room {room}")
        return record_id

    async def record_message(
        self,
        connection_id: str,
        username: str,
        room: str,
        text: str,
        timestamp: Optional[int] = None,
    ) -> int:
        _require("connection_id", connection_id)
        _require("username", username)
        _require("room", room)
        _require("message", text)
        try:
            async with self.session_factory() as db:
                record_id = await crud.insert_chat_message(
                    db, connection_id, username, room, text,
                    timestamp if timestamp is not None else now_millis(),
                )
        except SQLAlchemyError as e:
            raise StoreFailure("record_message") from e
        logger.debug(f"Chat message saved: {username} in room {room}")
        return record_id


    async def fetch_room_history(self, room: str, limit: int = 100) -> List[schemas.HistoryRecord]:
        limit = clamp_limit(limit)
        try:
            async with self.session_factory() as db:
                rows = await crud.get_room_messages(db, room, limit)
        except SQLAlchemyError as e:
            raise StoreFailure("fetch_room_history") from e
        return [schemas.HistoryRecord.model_validate(row) for row in rows]

    async def fetch_connection_logs(self, room: str, limit: int = 50) -> List[schemas.ConnectionLogRecord]:
        limit = clamp_limit(limit, default=50)
        try:
            async with self.session_factory() as db:
                rows = await crud.get_connection_logs(db, room, limit)
        except SQLAlchemyError as e:
            raise StoreFailure("fetch_connection_logs") from e
        return [schemas.ConnectionLogRecord.model_validate(row) for row in rows]

    async def fetch_user_messages(self, username: str, room: str, limit: int = 50) -> List[schemas.UserMessageRecord]:
        limit = clamp_limit(limit, default=50)
        try:
            async with self.session_factory() as db:
                rows = await crud.get_user_messages(db, username, room, limit)
        except SQLAlchemyError as e:
            raise StoreFailure("fetch_user_messages") from e
        return [schemas.UserMessageRecord.model_validate(row) for row in rows]

    async def fetch_statistics(self) -> schemas.Statistics:
        try:
            async with self.session_factory() as db:
                stats = await crud.get_statistics(db)
        except SQLAlchemyError as e:
            raise StoreFailure("fetch_statistics") from e
        return schemas.Statistics(**stats)

    async def list_rooms_with_message_counts(self) -> List[schemas.RoomSummary]:
        try:
            async with self.session_factory() as db:
                rows = await crud.get_rooms_with_message_counts(db)
        except SQLAlchemyError as e:
            raise StoreFailure("list_rooms_with_message_counts") from e
        return [schemas.RoomSummary(**row) for row in rows]


    async def purge_older_than(self, max_age: timedelta, room: Optional[str] = None) -> int:
        """Delete chat messages older than ``max_age``.

        ``room=None`` applies the cutoff to every room. Connection logs are
        never touched.
        """
        cutoff = now_millis() - int(max_age.total_seconds() * 1000)
        try:
            async with self.session_factory() as db:
                return await crud.delete_messages_before(
                    db, cutoff, rooms=None if room is None else [room]
                )
        except SQLAlchemyError as e:
            raise StoreFailure("purge_older_than") from e

    async def purge_all_messages(self, room: str) -> int:
        _require("room", room)
        try:
            async with self.session_factory() as db:
                return await crud.delete_room_messages(db, room)
        except SQLAlchemyError as e:
            raise StoreFailure("purge_all_messages") from e
