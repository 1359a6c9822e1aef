import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import socketio
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from roomchat import database
from roomchat.api import router as api_router
from roomchat.coordinator import RoomCoordinator
from roomchat.errors import StoreFailure, ValidationFailed
from roomchat.gateway import PersistenceGateway
from roomchat.registry import RoomDirectory, SessionRegistry
from roomchat.scheduler import RetentionScheduler
from roomchat.services import ConnectionManager
from roomchat.settings import Settings, settings
from roomchat.sockets import create_socket_server, register_handlers

logger = logging.getLogger("roomchat")


def configure_logging(level: str) -> None:
    # No-op when the root logger already has handlers
    logging.basicConfig(level=level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.setLevel(level.upper())


def _log_loop_exception(loop, context):
    exc = context.get("exception")
    logger.error(f"Unhandled event loop error: {context.get('message')}", exc_info=exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    gateway: PersistenceGateway = app.state.gateway
    scheduler: RetentionScheduler = app.state.scheduler
    configure_logging(app.state.log_level)
    asyncio.get_running_loop().set_exception_handler(_log_loop_exception)
    try:
        await gateway.create_tables()
        scheduler.start()
        yield
    finally:
        await scheduler.stop()
        await gateway.close()


def create_app(config: Settings = settings, engine: Optional[AsyncEngine] = None) -> FastAPI:
    if engine is None:
        engine = database.engine if config is settings else create_async_engine(config.DATABASE_URL)
    gateway = PersistenceGateway(database.make_session_factory(engine), engine)

    sio = create_socket_server(config.ALLOWED_ORIGINS)
    connections = ConnectionManager(sio)
    coordinator = RoomCoordinator(
        SessionRegistry(), RoomDirectory(), gateway, connections, config.coordinator_config()
    )
    register_handlers(sio, coordinator, connections)

    app = FastAPI(title="Room Chat Relay", lifespan=lifespan)
    app.state.sio = sio
    app.state.gateway = gateway
    app.state.coordinator = coordinator
    app.state.scheduler = RetentionScheduler(gateway, coordinator, config.retention_config())
    app.state.api_key = config.API_KEY
    app.state.log_level = config.LOG_LEVEL

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationFailed)
    async def validation_failed_handler(request: Request, exc: ValidationFailed):
        return JSONResponse(status_code=422, content={"detail": exc.message, "field": exc.field})

    @app.exception_handler(StoreFailure)
    async def store_failure_handler(request: Request, exc: StoreFailure):
        logger.error(f"{request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Chat store unavailable"})

    app.include_router(api_router, prefix="/api")

    @app.get("/")
    def read_root():
        return {"message": "Welcome to the Room Chat Relay"}

    return app


def create_asgi_app(api: FastAPI) -> socketio.ASGIApp:
    return socketio.ASGIApp(api.state.sio, other_asgi_app=api)


api = create_app()
app = create_asgi_app(api)

if __name__ == "__main__":
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
