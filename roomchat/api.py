from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from . import schemas
from .coordinator import RoomCoordinator
from .deps import get_coordinator, get_gateway, get_scheduler, require_api_key
from .gateway import PersistenceGateway
from .scheduler import RetentionScheduler
from .validation import clamp_limit, is_permanent_room, validate_room, validate_username

router = APIRouter()

@router.get("/stats", response_model=schemas.Statistics)
async def get_statistics(gateway: PersistenceGateway = Depends(get_gateway)):
    return await gateway.fetch_statistics()

@router.get("/rooms", response_model=List[schemas.RoomFeedItem])
async def list_rooms(
    gateway: PersistenceGateway = Depends(get_gateway),
    coordinator: RoomCoordinator = Depends(get_coordinator),
):
    rooms = await gateway.list_rooms_with_message_counts()
    feed = []
    for room in rooms:
        feed.append(
            schemas.RoomFeedItem(
                **room.model_dump(),
                permanent=is_permanent_room(room.room),
                online=len(coordinator.presence(room.room)),
            )
        )
    return feed

@router.get("/rooms/{room}/messages", response_model=List[schemas.HistoryRecord])
async def get_room_messages(
    room: str,
    limit: Optional[str] = None,
    gateway: PersistenceGateway = Depends(get_gateway),
):
    return await gateway.fetch_room_history(validate_room(room), clamp_limit(limit, default=100))

@router.get("/rooms/{room}/logs", response_model=List[schemas.ConnectionLogRecord])
async def get_connection_logs(
    room: str,
    limit: Optional[str] = None,
    gateway: PersistenceGateway = Depends(get_gateway),
):
    return await gateway.fetch_connection_logs(validate_room(room), clamp_limit(limit, default=50))

@router.get("/rooms/{room}/users/{username}/messages", response_model=List[schemas.UserMessageRecord])
async def get_user_messages(
    room: str,
    username: str,
    limit: Optional[str] = None,
    gateway: PersistenceGateway = Depends(get_gateway),
):
    return await gateway.fetch_user_messages(
        validate_username(username), validate_room(room), clamp_limit(limit, default=50)
    )

@router.get("/rooms/{room}/online", response_model=List[str])
async def get_online_users(room: str, coordinator: RoomCoordinator = Depends(get_coordinator)):
    return coordinator.presence(validate_room(room))

@router.post(
    "/admin/cleanup/permanent",
    response_model=schemas.CleanupResult,
    dependencies=[Depends(require_api_key)],
)
async def cleanup_permanent_rooms(
    days: Optional[int] = Query(default=None, ge=1),
    scheduler: RetentionScheduler = Depends(get_scheduler),
):
    return await scheduler.run_permanent_sweep(max_age_days=days)

@router.post(
    "/admin/cleanup/temporary",
    response_model=schemas.CleanupResult,
    dependencies=[Depends(require_api_key)],
)
async def cleanup_temporary_rooms(scheduler: RetentionScheduler = Depends(get_scheduler)):
    return await scheduler.run_temporary_sweep()
