"""WebSocket handlers for live session monitoring."""
import asyncio
import uuid
from typing import Any, Dict, List, Optional
from datetime import datetime
import logging
from fastapi import WebSocket

from frame_service.core.exceptions import FrameServiceError
from frame_service.core.session_registry import SessionRegistry
from frame_service.models.schemas import SessionSnapshot

logger = logging.getLogger(__name__)


class MessageTypes:
    """WebSocket message types."""

    # Connection management
    CONNECTION_ESTABLISHED = "connection_established"
    HEARTBEAT = "heartbeat"
    HEARTBEAT_ACK = "heartbeat_ack"

    # Session interaction
    EVENT = "event"
    GET_SESSION_STATE = "get_session_state"

    # State management
    STATE_UPDATE = "state_update"
    SESSION_REMOVED = "session_removed"

    # Errors and notifications
    ERROR = "error"
    WARNING = "warning"


def state_update_message(snapshot: SessionSnapshot) -> Dict[str, Any]:
    """Build a state_update message carrying a session snapshot."""
    return {
        "type": MessageTypes.STATE_UPDATE,
        "data": {
            "snapshot": snapshot.to_wire(),
            "timestamp": datetime.now().isoformat()
        }
    }


class WebSocketManager:
    """Manage WebSocket connections, grouped by session id."""

    def __init__(self, heartbeat_interval: int = 30, max_connections: int = 100):
        """
        Initialize WebSocket manager.

        Args:
            heartbeat_interval: Seconds between server heartbeats
            max_connections: Connections accepted before new ones are refused
        """
        self.heartbeat_interval = heartbeat_interval
        self.max_connections = max_connections
        self.active_connections: Dict[str, WebSocket] = {}
        self.connection_sessions: Dict[str, str] = {}
        self.session_connections: Dict[str, List[WebSocket]] = {}
        self.heartbeat_tasks: Dict[str, asyncio.Task] = {}

    async def connect(self, websocket: WebSocket, session_id: str) -> Optional[str]:
        """
        Accept a new WebSocket connection.

        Args:
            websocket: WebSocket connection
            session_id: Session the client subscribes to

        Returns:
            Connection id, or None if the connection was refused
        """
        if len(self.active_connections) >= self.max_connections:
            logger.warning(f"Refusing WebSocket for session {session_id}: connection limit reached")
            await websocket.close(code=1013)
            return None

        await websocket.accept()

        connection_id = f"{session_id}_{uuid.uuid4().hex[:8]}"

        self.active_connections[connection_id] = websocket
        self.connection_sessions[connection_id] = session_id
        self.session_connections.setdefault(session_id, []).append(websocket)

        self.heartbeat_tasks[connection_id] = asyncio.create_task(
            self._heartbeat_loop(websocket, connection_id)
        )

        logger.info(f"WebSocket connected: {connection_id} (session: {session_id})")

        await websocket.send_json({
            "type": MessageTypes.CONNECTION_ESTABLISHED,
            "data": {
                "connection_id": connection_id,
                "session_id": session_id,
                "timestamp": datetime.now().isoformat()
            }
        })
        return connection_id

    def disconnect(self, session_id: str, websocket: Optional[WebSocket] = None):
        """
        Disconnect WebSocket connections of a session.

        Args:
            session_id: Session identifier
            websocket: Specific WebSocket to disconnect (optional)
        """
        connections_to_remove = [
            conn_id for conn_id, conn_session in self.connection_sessions.items()
            if conn_session == session_id
            and (websocket is None or self.active_connections.get(conn_id) is websocket)
        ]

        for conn_id in connections_to_remove:
            task = self.heartbeat_tasks.pop(conn_id, None)
            if task is not None:
                task.cancel()

            self.active_connections.pop(conn_id, None)
            self.connection_sessions.pop(conn_id, None)

            logger.info(f"WebSocket disconnected: {conn_id}")

        if session_id in self.session_connections:
            if websocket is not None:
                self.session_connections[session_id] = [
                    conn for conn in self.session_connections[session_id]
                    if conn is not websocket
                ]
            else:
                self.session_connections[session_id] = []

            if not self.session_connections[session_id]:
                del self.session_connections[session_id]

    async def send_to_session(self, session_id: str, message: Dict[str, Any]):
        """
        Send message to all connections subscribed to a session.

        Args:
            session_id: Session identifier
            message: JSON-ready message
        """
        if session_id not in self.session_connections:
            logger.debug(f"No active connections for session: {session_id}")
            return

        disconnected = []
        for websocket in list(self.session_connections[session_id]):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"Error sending message to WebSocket: {e}")
                disconnected.append(websocket)

        for websocket in disconnected:
            self.disconnect(session_id, websocket)

    async def disconnect_all(self):
        """Disconnect all WebSocket connections."""
        for task in self.heartbeat_tasks.values():
            task.cancel()

        for websocket in self.active_connections.values():
            try:
                await websocket.close()
            except Exception as e:
                logger.error(f"Error closing WebSocket: {e}")

        self.active_connections.clear()
        self.connection_sessions.clear()
        self.session_connections.clear()
        self.heartbeat_tasks.clear()

        logger.info("All WebSocket connections disconnected")

    def get_connection_count(self) -> int:
        """Get total number of active connections."""
        return len(self.active_connections)

    async def _heartbeat_loop(self, websocket: WebSocket, connection_id: str):
        """
        Maintain heartbeat with WebSocket connection.

        Args:
            websocket: WebSocket connection
            connection_id: Connection identifier
        """
        try:
            while True:
                await asyncio.sleep(self.heartbeat_interval)

                await websocket.send_json({
                    "type": MessageTypes.HEARTBEAT,
                    "data": {
                        "timestamp": datetime.now().isoformat(),
                        "connection_id": connection_id
                    }
                })

        except asyncio.CancelledError:
            logger.debug(f"Heartbeat cancelled for {connection_id}")
        except Exception as e:
            logger.error(f"Heartbeat error for {connection_id}: {e}")
            session_id = self.connection_sessions.get(connection_id)
            if session_id is not None:
                self.disconnect(session_id, websocket)


async def handle_websocket_message(
    websocket: WebSocket,
    message: Dict[str, Any],
    session_id: str,
    session_registry: SessionRegistry,
    websocket_manager: Optional[WebSocketManager] = None
):
    """
    Handle incoming WebSocket messages.

    Args:
        websocket: WebSocket connection
        message: Received message
        session_id: Session the connection is subscribed to
        session_registry: Session registry instance
        websocket_manager: Used to fan state updates out to every subscriber
    """
    message_type = message.get("type")
    data = message.get("data")

    try:
        if message_type == MessageTypes.EVENT:
            snapshot = session_registry.dispatch(session_id, data)

            if websocket_manager is not None:
                await websocket_manager.send_to_session(session_id, state_update_message(snapshot))
            else:
                await websocket.send_json(state_update_message(snapshot))

        elif message_type == MessageTypes.GET_SESSION_STATE:
            snapshot = session_registry.state_of(session_id)
            await websocket.send_json(state_update_message(snapshot))

        elif message_type == MessageTypes.HEARTBEAT:
            await websocket.send_json({
                "type": MessageTypes.HEARTBEAT_ACK,
                "data": {"timestamp": datetime.now().isoformat()}
            })

        else:
            logger.warning(f"Unknown message type: {message_type}")
            await websocket.send_json({
                "type": MessageTypes.WARNING,
                "data": {
                    "message": f"Unknown message type: {message_type}",
                    "timestamp": datetime.now().isoformat()
                }
            })

    except FrameServiceError as e:
        logger.warning(f"Rejected WebSocket message for session {session_id}: {e}")
        await websocket.send_json({
            "type": MessageTypes.ERROR,
            "data": {
                "message": str(e),
                "error_type": type(e).__name__,
                "timestamp": datetime.now().isoformat()
            }
        })
    except Exception as e:
        logger.error(f"Error handling WebSocket message: {e}")
        await websocket.send_json({
            "type": MessageTypes.ERROR,
            "data": {
                "message": f"Error processing message: {str(e)}",
                "timestamp": datetime.now().isoformat()
            }
        })
