"""REST API routes."""
from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response, status
from typing import Any, Dict, Optional
from datetime import datetime
import logging

from frame_service.api.websockets import (
    MessageTypes,
    WebSocketManager,
    state_update_message
)
from frame_service.core.exceptions import (
    InternalFailureError,
    InvalidArgumentError,
    SessionNotFoundError
)
from frame_service.core.session_registry import SessionRegistry
from frame_service.models.schemas import APIResponse

logger = logging.getLogger(__name__)

# Create API router
api_router = APIRouter()


def get_session_registry(request: Request) -> SessionRegistry:
    """Dependency to get the session registry built at startup."""
    return request.app.state.session_registry


def get_websocket_manager(request: Request) -> WebSocketManager:
    """Dependency to get the WebSocket manager built at startup."""
    return request.app.state.websocket_manager


# Registered before the parameterized routes so "sessions" is never read as an id
@api_router.get("/session/sessions", response_model=APIResponse)
async def list_sessions(
    registry: SessionRegistry = Depends(get_session_registry)
):
    """
    List all active sessions.

    Returns:
        API response with the snapshot of every session
    """
    sessions = [snapshot.to_wire() for snapshot in registry.list_sessions()]

    return APIResponse(
        success=True,
        message=f"Found {len(sessions)} sessions" if sessions else "No active sessions found",
        data={"count": len(sessions), "sessions": sessions}
    )


@api_router.post("/session/{session_id}", response_model=APIResponse)
async def create_session(
    session_id: str,
    response: Response,
    registry: SessionRegistry = Depends(get_session_registry),
    ws_manager: WebSocketManager = Depends(get_websocket_manager)
):
    """
    Create (or replace) a frame session.

    Args:
        session_id: Session identifier

    Returns:
        API response with the initial snapshot; 201 if new, 200 if replaced
    """
    try:
        snapshot, replaced = registry.replace(session_id)
    except InvalidArgumentError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response.status_code = status.HTTP_200_OK if replaced else status.HTTP_201_CREATED

    await ws_manager.send_to_session(session_id, state_update_message(snapshot))

    return APIResponse(
        success=True,
        message=f"Session '{session_id}' recreated" if replaced else f"Session '{session_id}' created",
        data={"snapshot": snapshot.to_wire(), "replaced": replaced}
    )


@api_router.get("/session/{session_id}/state", response_model=APIResponse)
async def get_session_state(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry)
):
    """
    Get the current state of a session without changing it.

    Args:
        session_id: Session identifier

    Returns:
        API response with the session snapshot
    """
    try:
        snapshot = registry.state_of(session_id)
    except InvalidArgumentError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return APIResponse(
        success=True,
        message="Session state retrieved",
        data={"snapshot": snapshot.to_wire()}
    )


@api_router.post("/session/{session_id}/event", response_model=APIResponse)
async def send_event(
    session_id: str,
    event: Optional[Dict[str, Any]] = Body(default=None),
    registry: SessionRegistry = Depends(get_session_registry),
    ws_manager: WebSocketManager = Depends(get_websocket_manager)
):
    """
    Send an event to the session's machine.

    Args:
        session_id: Session identifier
        event: Wire event, e.g. ``{"type": "NAECHSTER_FRAME"}``

    Returns:
        API response with the snapshot after the event
    """
    try:
        snapshot = registry.dispatch(session_id, event)
    except InvalidArgumentError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InternalFailureError as e:
        raise HTTPException(status_code=500, detail=str(e))

    await ws_manager.send_to_session(session_id, state_update_message(snapshot))

    return APIResponse(
        success=True,
        message="Event processed",
        data={"snapshot": snapshot.to_wire()}
    )


@api_router.delete("/session/{session_id}", response_model=APIResponse)
async def delete_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
    ws_manager: WebSocketManager = Depends(get_websocket_manager)
):
    """
    Delete a session.

    Args:
        session_id: Session identifier

    Returns:
        API response confirming deletion
    """
    try:
        deleted = registry.remove(session_id)
    except InvalidArgumentError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")

    await ws_manager.send_to_session(session_id, {
        "type": MessageTypes.SESSION_REMOVED,
        "data": {
            "session_id": session_id,
            "timestamp": datetime.now().isoformat()
        }
    })

    return APIResponse(
        success=True,
        message="Session deleted successfully",
        data={"session_id": session_id}
    )


@api_router.get("/stats", response_model=APIResponse)
async def get_stats(
    registry: SessionRegistry = Depends(get_session_registry),
    ws_manager: WebSocketManager = Depends(get_websocket_manager)
):
    """
    Get service statistics.

    Returns:
        API response with statistics
    """
    return APIResponse(
        success=True,
        message="Statistics retrieved",
        data={
            **registry.stats(),
            "websocket_connections": ws_manager.get_connection_count(),
            "timestamp": datetime.now().isoformat()
        }
    )
