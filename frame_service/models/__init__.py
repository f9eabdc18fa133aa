"""Models package."""
from .schemas import (
    EMPTY_FRAME,
    CONFIRM_FRAME,
    DisplayContext,
    OriginState,
    ListContext,
    EventType,
    FrameState,
    FrameContext,
    MachineState,
    CloseEvent,
    ResetEvent,
    ShutdownEvent,
    NextFrameEvent,
    PreviousFrameEvent,
    SearchFrameEvent,
    EmergencyReceivedEvent,
    EmergencyConfirmedEvent,
    LoadListEvent,
    FrameEvent,
    parse_event,
    SessionSnapshot,
    APIResponse
)

__all__ = [
    "EMPTY_FRAME",
    "CONFIRM_FRAME",
    "DisplayContext",
    "OriginState",
    "ListContext",
    "EventType",
    "FrameState",
    "FrameContext",
    "MachineState",
    "CloseEvent",
    "ResetEvent",
    "ShutdownEvent",
    "NextFrameEvent",
    "PreviousFrameEvent",
    "SearchFrameEvent",
    "EmergencyReceivedEvent",
    "EmergencyConfirmedEvent",
    "LoadListEvent",
    "FrameEvent",
    "parse_event",
    "SessionSnapshot",
    "APIResponse"
]
