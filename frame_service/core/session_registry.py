"""Session registry."""
import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ValidationError

from frame_service.core.exceptions import (
    InternalFailureError,
    InvalidArgumentError,
    SessionNotFoundError,
)
from frame_service.core.state_machine import FrameStateMachine, frame_state_machine
from frame_service.models.schemas import (
    FRAME_EVENT_CLASSES,
    EventType,
    FrameContext,
    FrameEvent,
    MachineState,
    SessionSnapshot,
    parse_event,
)

logger = logging.getLogger(__name__)


class Session:
    """One frame machine instance bound to a session id."""

    def __init__(self, session_id: str, state: MachineState, context: FrameContext):
        """
        Initialize session.

        Args:
            session_id: Caller-assigned session identifier
            state: Initial machine state
            context: Initial context
        """
        self.session_id = session_id
        # (state, context) is replaced as a whole so readers never see a torn pair
        self._current: Tuple[MachineState, FrameContext] = (state, context)
        self.lock = threading.Lock()
        self.created_at = datetime.now()
        self.updated_at = self.created_at
        self.event_count = 0

    @property
    def state(self) -> MachineState:
        return self._current[0]

    @property
    def context(self) -> FrameContext:
        return self._current[1]

    @property
    def current(self) -> Tuple[MachineState, FrameContext]:
        return self._current

    def commit(self, state: MachineState, context: FrameContext):
        """Install the result of a completed transition."""
        self._current = (state, context)
        self.updated_at = datetime.now()
        self.event_count += 1

    def snapshot(self) -> SessionSnapshot:
        """Project the session into its external view.

        The context is deep-copied; the frame lists of the live context
        must never be reachable from a snapshot.
        """
        state, context = self._current
        return SessionSnapshot(
            session_id=self.session_id,
            current_state=state.current.as_path(),
            current_frame=context.current_frame,
            context=context.model_copy(deep=True),
        )


class SessionRegistry:
    """Own one frame machine per session and route events to it."""

    def __init__(self, machine: Optional[FrameStateMachine] = None):
        """
        Initialize session registry.

        Args:
            machine: Transition evaluator shared by all sessions
        """
        self.machine = machine or frame_state_machine
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.RLock()
        self._events_dispatched = 0

    @staticmethod
    def _validate_session_id(session_id: Any):
        if not isinstance(session_id, str) or not session_id.strip():
            raise InvalidArgumentError(
                f"Invalid Session-ID '{session_id}': sessionId is undefined or empty."
            )

    @staticmethod
    def _coerce_event(event: Union[FrameEvent, Mapping[str, Any], None]) -> FrameEvent:
        """Accept a parsed event or a wire payload; reject anything else."""
        if event is None:
            raise InvalidArgumentError("Invalid input: event is undefined.")

        if isinstance(event, FRAME_EVENT_CLASSES):
            return event

        if isinstance(event, BaseModel) or not isinstance(event, Mapping):
            raise InvalidArgumentError(
                f"Invalid input: unsupported event object {type(event).__name__}."
            )

        event_type = event.get("type")
        if not isinstance(event_type, str) or not event_type.strip():
            raise InvalidArgumentError("Invalid input: event type is undefined or empty.")

        if event_type not in {member.value for member in EventType}:
            raise InvalidArgumentError(f"Invalid input: unknown event type '{event_type}'.")

        try:
            return parse_event(event)
        except ValidationError as e:
            raise InvalidArgumentError(
                f"Invalid payload for event '{event_type}': {e.errors(include_url=False)}"
            ) from e

    def _require(self, session_id: str) -> Session:
        session = self.get(session_id)
        if session is None:
            logger.warning(f"Session not found: {session_id}")
            raise SessionNotFoundError(session_id)
        return session

    def create(self, session_id: str) -> SessionSnapshot:
        """
        Create a new session, replacing any session with the same id.

        Args:
            session_id: Session identifier

        Returns:
            Initial snapshot of the session

        Raises:
            InvalidArgumentError: If session_id is empty or whitespace
        """
        snapshot, _ = self.replace(session_id)
        return snapshot

    def replace(self, session_id: str) -> Tuple[SessionSnapshot, bool]:
        """
        Create a session, swapping out any existing one in a single step.

        Args:
            session_id: Session identifier

        Returns:
            (initial snapshot, whether an existing session was replaced)

        Raises:
            InvalidArgumentError: If session_id is empty or whitespace
        """
        self._validate_session_id(session_id)

        state, context = self.machine.start()
        session = Session(session_id, state, context)

        with self._lock:
            previous = self._sessions.get(session_id)
            self._sessions[session_id] = session

        replaced = previous is not None
        if replaced:
            logger.info(f"Replaced existing session: {session_id}")
        else:
            logger.info(f"Created new session: {session_id}")

        return session.snapshot(), replaced

    def remove(self, session_id: str) -> bool:
        """
        Discard a session.

        Args:
            session_id: Session identifier

        Returns:
            True if deleted, False if not found
        """
        self._validate_session_id(session_id)

        with self._lock:
            session = self._sessions.pop(session_id, None)

        if session is None:
            return False

        logger.info(f"Deleted session: {session_id}")
        return True

    def get(self, session_id: str) -> Optional[Session]:
        """
        Look up a session.

        Args:
            session_id: Session identifier

        Returns:
            The session, or None if absent
        """
        self._validate_session_id(session_id)

        with self._lock:
            return self._sessions.get(session_id)

    def exists(self, session_id: str) -> bool:
        """Check whether a session with this id is registered."""
        return self.get(session_id) is not None

    def dispatch(
        self,
        session_id: str,
        event: Union[FrameEvent, Mapping[str, Any], None]
    ) -> SessionSnapshot:
        """
        Deliver an event to a session's machine and run it to completion.

        Args:
            session_id: Session identifier
            event: Parsed event model or wire payload with a ``type`` key

        Returns:
            Snapshot after the event was processed

        Raises:
            InvalidArgumentError: If the id is invalid or the event is missing or unrecognized
            SessionNotFoundError: If no session with this id exists
            InternalFailureError: If the transition raised; the session is left untouched
        """
        self._validate_session_id(session_id)
        frame_event = self._coerce_event(event)
        session = self._require(session_id)

        with session.lock:
            state, context = session.current
            try:
                new_state, new_context = self.machine.step(state, context, frame_event)
            except Exception as e:
                logger.exception(
                    f"Transition failed for session {session_id} on {frame_event.type}"
                )
                raise InternalFailureError(
                    f"Failed to process event '{frame_event.type}' for session '{session_id}'."
                ) from e

            session.commit(new_state, new_context)
            snapshot = session.snapshot()

        with self._lock:
            self._events_dispatched += 1

        logger.debug(
            f"Session {session_id}: {frame_event.type} -> {new_state.current.value} "
            f"({snapshot.current_frame})"
        )
        return snapshot

    def state_of(self, session_id: str) -> SessionSnapshot:
        """
        Current snapshot of a session, without mutating it.

        Raises:
            InvalidArgumentError: If session_id is empty or whitespace
            SessionNotFoundError: If no session with this id exists
        """
        self._validate_session_id(session_id)
        return self._require(session_id).snapshot()

    def list_sessions(self) -> List[SessionSnapshot]:
        """Snapshots of every active session."""
        with self._lock:
            sessions = list(self._sessions.values())
        return [session.snapshot() for session in sessions]

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def stats(self) -> Dict[str, int]:
        """Registry counters for the stats endpoint."""
        with self._lock:
            return {
                "active_sessions": len(self._sessions),
                "events_dispatched": self._events_dispatched,
            }

    def close(self):
        """Discard every session."""
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()

        logger.info(f"Session registry closed, {count} sessions discarded")
