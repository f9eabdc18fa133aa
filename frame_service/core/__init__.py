"""Core components package."""
from .exceptions import (
    FrameServiceError,
    InvalidArgumentError,
    SessionNotFoundError,
    InternalFailureError
)
from .session_registry import Session, SessionRegistry
from .state_machine import FrameStateMachine, StateTransition, frame_state_machine

__all__ = [
    "FrameServiceError",
    "InvalidArgumentError",
    "SessionNotFoundError",
    "InternalFailureError",
    "Session",
    "SessionRegistry",
    "FrameStateMachine",
    "StateTransition",
    "frame_state_machine"
]
