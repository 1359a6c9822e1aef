from typing import Optional

from fastapi import Header, HTTPException, Request, status

from .coordinator import RoomCoordinator
from .gateway import PersistenceGateway
from .scheduler import RetentionScheduler
from .security import verify_api_key


def get_gateway(request: Request) -> PersistenceGateway:
    return request.app.state.gateway

def get_coordinator(request: Request) -> RoomCoordinator:
    return request.app.state.coordinator

def get_scheduler(request: Request) -> RetentionScheduler:
    return request.app.state.scheduler

def require_api_key(request: Request, x_api_key: Optional[str] = Header(default=None)) -> None:
    expected = request.app.state.api_key
    if not expected:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Admin API is disabled")
    if not verify_api_key(x_api_key, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
