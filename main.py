"""
FastAPI WebSocket Room Chat Relay
Rooms with persisted history, live rosters, and typing indicators
"""

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.websockets import WebSocketState
from contextlib import asynccontextmanager
from typing import Optional
import json
import time
import uuid
import uvicorn

from chat_relay import (
    Connection,
    LifecycleController,
    MessageStore,
    SessionStore,
    Settings,
    settings as default_settings,
    validate_envelope,
    get_logger,
    log_security_event,
    log_websocket_event,
    log_system_event,
    NOTICES,
)
from chat_relay.database import (
    SQLMessageStore,
    SQLSessionStore,
    create_engine,
    create_session_factory,
    init_db,
)

logger = get_logger()


def create_app(settings: Optional[Settings] = None,
               message_store: Optional[MessageStore] = None,
               session_store: Optional[SessionStore] = None) -> FastAPI:
    """
    Build the relay application

    Stores passed in take precedence; otherwise ``DATABASE_URL`` selects the
    SQL stores and its absence the in-process ones.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management"""
        logger.info("Chat relay starting up...")

        engine = None
        messages, sessions = message_store, session_store
        if settings.DATABASE_URL and (messages is None or sessions is None):
            engine = create_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
            await init_db(engine)
            session_factory = create_session_factory(engine)
            messages = messages or SQLMessageStore(session_factory)
            sessions = sessions or SQLSessionStore(session_factory)
            log_system_event("database", f"SQL stores ready ({engine.url.drivername})")
        else:
            log_system_event("database", "Using in-process stores")

        app.state.controller = LifecycleController(
            message_store=messages,
            session_store=sessions,
            history_limit=settings.HISTORY_LIMIT,
        )

        yield

        if engine is not None:
            await engine.dispose()
        logger.info("Chat relay shutting down...")

    app = FastAPI(
        title="Room Chat Relay",
        description="Real-time room chat with history, rosters, and typing indicators",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint"""
        try:
            stats = await request.app.state.controller.get_stats()
            return {
                "status": "healthy",
                "timestamp": time.time(),
                "connections": stats
            }
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            raise HTTPException(status_code=503, detail="Service unavailable")

    @app.get("/stats")
    async def get_stats(request: Request):
        """Get relay statistics"""
        stats = await request.app.state.controller.get_stats()
        return {
            "server": "Room Chat Relay",
            "timestamp": time.time(),
            "connections": stats
        }

    @app.get("/rooms/{room}/users")
    async def room_users(room: str, request: Request):
        """Current occupants of a room"""
        controller = request.app.state.controller
        return await controller.membership.room_users_payload(room)

    @app.get("/rooms/{room}/history")
    async def room_history(room: str, request: Request):
        """Recent messages for a room, oldest first"""
        controller = request.app.state.controller
        try:
            history = await controller.messages.history(room)
        except Exception as e:
            logger.error(f"History endpoint failed for {room}: {e}")
            raise HTTPException(status_code=503, detail="History unavailable")
        return [message.to_dict() for message in history]

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Relay endpoint: one connection context per socket"""
        controller: LifecycleController = websocket.app.state.controller

        await websocket.accept()
        connection = Connection(uuid.uuid4().hex, websocket)
        client_ip = websocket.client.host if websocket.client else "unknown"
        log_websocket_event("connection_accepted", connection.connection_id, f"client_ip={client_ip}")

        try:
            while True:
                try:
                    frame = await websocket.receive_text()

                    try:
                        payload = json.loads(frame)
                    except json.JSONDecodeError:
                        log_security_event("invalid_json", {"connection_id": connection.connection_id})
                        await controller.messages.send_notice(connection, NOTICES["invalid_json"])
                        continue

                    is_valid, error_msg, event, data = validate_envelope(payload)
                    if not is_valid:
                        await controller.messages.send_notice(connection, error_msg)
                        continue

                    log_websocket_event("event_received", connection.connection_id, f"event={event}")
                    await controller.handle(connection, event, data)

                except WebSocketDisconnect:
                    log_websocket_event("disconnected", connection.connection_id)
                    break
                except Exception as e:
                    logger.error(f"Event loop error for {connection.connection_id}: {e}")
                    log_security_event("event_loop_error", {
                        "connection_id": connection.connection_id,
                        "error": str(e)
                    })
                    if websocket.client_state != WebSocketState.CONNECTED:
                        break
                    # Keep serving this connection
                    continue
        finally:
            await controller.disconnect(connection)
            log_websocket_event("cleanup_complete", connection.connection_id)

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler"""
        logger.error(f"Unhandled exception: {exc}")
        log_security_event("unhandled_exception", {
            "path": str(request.url),
            "error": str(exc)
        })
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    return app


app = create_app()

if __name__ == "__main__":
    logger.info("Starting Room Chat Relay...")

    uvicorn.run(
        "main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=False,
        log_level=default_settings.LOG_LEVEL.lower(),
        access_log=True,
        ws_ping_interval=20,
        ws_ping_timeout=10,
    )
