from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from . import models
from typing import Iterable, List, Optional

# --- Connection log CRUD ---
async def insert_connection_log(
    db: AsyncSession, socket_id: str, username: str, room: str, action: str,
    timestamp: int, ip_address: Optional[str] = None,
) -> int:
    db_log = models.ConnectionLog(
        socket_id=socket_id, username=username, room=room,
        action=action, timestamp=timestamp, ip_address=ip_address,
    )
    db.add(db_log)
    await db.commit()
    return db_log.id

async def get_connection_logs(db: AsyncSession, room: str, limit: int = 50) -> List[models.ConnectionLog]:
    query = (
        select(models.ConnectionLog)
        .filter(models.ConnectionLog.room == room)
        .order_by(models.ConnectionLog.timestamp.desc(), models.ConnectionLog.id.desc())
        .limit(limit)
    )
    result = await db.execute(query)
    # Newest N, returned oldest first
    return list(reversed(result.scalars().all()))

# --- Chat message CRUD ---
async def insert_chat_message(
    db: AsyncSession, socket_id: str, username: str, room: str, message: str, timestamp: int,
) -> int:
    db_message = models.ChatMessage(
        socket_id=socket_id, username=username, room=room, message=message, timestamp=timestamp,
    )
    db.add(db_message)
    await db.commit()
    return db_message.id

async def get_room_messages(db: AsyncSession, room: str, limit: int = 100) -> List[models.ChatMessage]:
    query = (
        select(models.ChatMessage)
        .filter(models.ChatMessage.room == room)
        .order_by(models.ChatMessage.timestamp.desc(), models.ChatMessage.id.desc())
        .limit(limit)
    )
    result = await db.execute(query)
    return list(reversed(result.scalars().all()))

async def get_user_messages(db: AsyncSession, username: str, room: str, limit: int = 50) -> List[models.ChatMessage]:
    query = (
        select(models.ChatMessage)
        .filter(models.ChatMessage.username == username, models.ChatMessage.room == room)
        .order_by(models.ChatMessage.timestamp.desc(), models.ChatMessage.id.desc())
        .limit(limit)
    )
    result = await db.execute(query)
    return list(reversed(result.scalars().all()))

# --- Statistics ---
async def get_statistics(db: AsyncSession) -> dict:
    total_messages = await db.scalar(select(func.count()).select_from(models.ChatMessage))
    total_connections = await db.scalar(select(func.count()).select_from(models.ConnectionLog))
    active_rooms = await db.scalar(select(func.count(func.distinct(models.ChatMessage.room))))
    total_users = await db.scalar(select(func.count(func.distinct(models.ChatMessage.username))))
    return {
        "total_messages": total_messages or 0,
        "total_connections": total_connections or 0,
        "active_room_count": active_rooms or 0,
        "total_users": total_users or 0,
    }

async def get_rooms_with_message_counts(db: AsyncSession) -> List[dict]:
    query = (
        select(
            models.ChatMessage.room,
            func.count(models.ChatMessage.id),
            func.min(models.ChatMessage.timestamp),
            func.max(models.ChatMessage.timestamp),
        )
        .group_by(models.ChatMessage.room)
        .order_by(models.ChatMessage.room)
    )
    result = await db.execute(query)
    return [
        {"room": room, "count": count, "first_timestamp": first, "last_timestamp": last}
        for room, count, first, last in result.all()
    ]

# --- Retention ---
async def delete_messages_before(db: AsyncSession, cutoff: int, rooms: Optional[Iterable[str]] = None) -> int:
    stmt = delete(models.ChatMessage).where(models.ChatMessage.timestamp < cutoff)
    if rooms is not None:
        stmt = stmt.where(models.ChatMessage.room.in_(list(rooms)))
    result = await db.execute(stmt)
    await db.commit()
    return result.rowcount or 0

async def delete_room_messages(db: AsyncSession, room: str) -> int:
    result = await db.execute(delete(models.ChatMessage).where(models.ChatMessage.room == room))
    await db.commit()
    return result.rowcount or 0
