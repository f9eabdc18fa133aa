"""Main FastAPI application."""
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
import logging

from frame_service import __version__
from frame_service.config import settings
from frame_service.api.routes import api_router
from frame_service.api.websockets import (
    WebSocketManager,
    handle_websocket_message,
    state_update_message
)
from frame_service.core.session_registry import SessionRegistry


def configure_logging():
    """Configure root logging from settings."""
    handlers = [logging.StreamHandler()]
    if settings.LOG_FILE:
        Path(settings.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.LOG_FILE))

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Frame Management Service...")
    logger.info(f"Environment: {settings.APP_ENV}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    app.state.session_registry = SessionRegistry()
    app.state.websocket_manager = WebSocketManager(
        heartbeat_interval=settings.WS_HEARTBEAT_INTERVAL,
        max_connections=settings.WS_MAX_CONNECTIONS
    )

    yield

    # Shutdown
    logger.info("Shutting down Frame Management Service...")
    await app.state.websocket_manager.disconnect_all()
    app.state.session_registry.close()


# Create FastAPI app
app = FastAPI(
    title="Frame Management Service",
    description="Per-session frame navigation with emergency interruption",
    version=__version__,
    debug=settings.DEBUG,
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Frame Management Service",
        "version": __version__,
        "status": "running",
        "timestamp": datetime.now().isoformat()
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "environment": settings.APP_ENV,
        "active_sessions": app.state.session_registry.count()
    }


@app.websocket("/ws/{session_id}")
async def websocket_endpoint(websocket: WebSocket, session_id: str):
    """WebSocket endpoint streaming the snapshots of one session."""
    manager: WebSocketManager = app.state.websocket_manager
    registry: SessionRegistry = app.state.session_registry

    connection_id = await manager.connect(websocket, session_id)
    if connection_id is None:
        return

    try:
        # Initial snapshot, when the session already exists
        session = registry.get(session_id) if session_id.strip() else None
        if session is not None:
            await websocket.send_json(state_update_message(session.snapshot()))

        while True:
            data = await websocket.receive_json()

            await handle_websocket_message(
                websocket=websocket,
                message=data,
                session_id=session_id,
                session_registry=registry,
                websocket_manager=manager
            )

    except WebSocketDisconnect:
        manager.disconnect(session_id, websocket)
        logger.info(f"WebSocket disconnected: {session_id}")
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        manager.disconnect(session_id, websocket)


def main():
    """Run the service with uvicorn."""
    import uvicorn
    uvicorn.run(
        "frame_service.app:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
