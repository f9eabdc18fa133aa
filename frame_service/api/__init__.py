"""API package."""
from .routes import api_router
from .websockets import WebSocketManager, MessageTypes, handle_websocket_message

__all__ = [
    "api_router",
    "WebSocketManager",
    "MessageTypes",
    "handle_websocket_message"
]
