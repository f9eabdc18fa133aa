"""
Session registry exceptions.

Typed failures raised synchronously by the registry. The API layer maps
them onto HTTP status codes.
"""


class FrameServiceError(Exception):
    """Base class for failures surfaced by the frame service core."""
    pass


class InvalidArgumentError(FrameServiceError):
    """Raised for an empty session id or an absent/unrecognized event."""
    pass


class SessionNotFoundError(FrameServiceError):
    """Raised when dispatching to or querying an unknown session."""

    def __init__(self, session_id: str):
        super().__init__(f"Session with ID '{session_id}' not found.")
        self.session_id = session_id


class InternalFailureError(FrameServiceError):
    """Raised when evaluating a transition fails unexpectedly."""
    pass
