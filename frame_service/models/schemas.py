"""Pydantic models and schemas."""
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


# Sentinel frames, kept at their wire values
EMPTY_FRAME = "LEERER_FRAME"
CONFIRM_FRAME = "BESTAETIGUNG_FRAME"


class DisplayContext(str, Enum):
    """Which list currently feeds the visible frame."""
    ENTITY = "ENTITY"
    GENERAL = "GENERAL"
    EMERGENCY = "EMERGENCY"
    INACTIVE = "INACTIVE"


class OriginState(str, Enum):
    """Top-level mode that was active before an emergency interruption."""
    INACTIVE = "INACTIVE"
    WORK_MODE = "WORK_MODE"


class ListContext(str, Enum):
    """Target list of a LADE_NEUE_LISTE event."""
    ENTITY = "ENTITAET"
    GENERAL = "ALLGEMEIN"

    @property
    def display_context(self) -> DisplayContext:
        if self is ListContext.ENTITY:
            return DisplayContext.ENTITY
        return DisplayContext.GENERAL


class EventType(str, Enum):
    """Wire discriminants of the frame events."""
    # Lifecycle
    CLOSE = "SCHLIESSEN"
    RESET = "ZURUCKSETZEN"
    SHUTDOWN = "AUSSCHALTEN"

    # Navigation
    NEXT = "NAECHSTER_FRAME"
    PREVIOUS = "VORHERIGER_FRAME"
    SEARCH = "SUCHE_FRAME"

    # Emergency
    EMERGENCY_RECEIVED = "NOTFALL_EMPFANGEN"
    EMERGENCY_CONFIRMED = "USER_BESTAETIGT_NOTFALL"

    # Data
    LOAD_LIST = "LADE_NEUE_LISTE"


class FrameState(str, Enum):
    """Leaf configurations of the frame state machine.

    Compound states are encoded as ``Parent.Child``.
    """
    INACTIVE = "Inactive"
    WORK_MODE_ENTITY = "WorkMode.Entity"
    WORK_MODE_GENERAL = "WorkMode.General"
    EMERGENCY_CONFIRM = "EmergencyMode.Confirm"
    EMERGENCY_DISPLAY = "EmergencyMode.Display"
    TERMINATED = "Terminated"

    @property
    def parent(self) -> str:
        """Top-level state name."""
        return self.value.split(".")[0]

    @property
    def child(self) -> Optional[str]:
        """Child state name, or None for atomic top-level states."""
        parts = self.value.split(".")
        return parts[1] if len(parts) > 1 else None

    @property
    def is_final(self) -> bool:
        return self is FrameState.TERMINATED

    def as_path(self) -> Union[str, Dict[str, str]]:
        """Structured path, e.g. ``"Inactive"`` or ``{"WorkMode": "Entity"}``."""
        if self.child is None:
            return self.parent
        return {self.parent: self.child}


class FrameContext(BaseModel):
    """Navigation data owned by one machine instance.

    Instances are frozen; actions derive a new context with ``model_copy``.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    entity_list: List[str] = Field(default_factory=list)
    general_list: List[str] = Field(default_factory=list)
    emergency_list: List[str] = Field(default_factory=list)

    entity_index: int = 0
    general_index: int = 0
    emergency_index: int = 0

    display_context: DisplayContext = DisplayContext.INACTIVE
    current_frame: str = EMPTY_FRAME
    origin_state: OriginState = OriginState.INACTIVE


class MachineState(BaseModel):
    """Active leaf plus the shallow history of WorkMode."""
    model_config = ConfigDict(frozen=True)

    current: FrameState = FrameState.INACTIVE
    work_mode_history: FrameState = FrameState.WORK_MODE_ENTITY


class _FrameEventBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class CloseEvent(_FrameEventBase):
    type: Literal["SCHLIESSEN"] = "SCHLIESSEN"


class ResetEvent(_FrameEventBase):
    type: Literal["ZURUCKSETZEN"] = "ZURUCKSETZEN"


class ShutdownEvent(_FrameEventBase):
    type: Literal["AUSSCHALTEN"] = "AUSSCHALTEN"


class NextFrameEvent(_FrameEventBase):
    type: Literal["NAECHSTER_FRAME"] = "NAECHSTER_FRAME"


class PreviousFrameEvent(_FrameEventBase):
    type: Literal["VORHERIGER_FRAME"] = "VORHERIGER_FRAME"


class SearchFrameEvent(_FrameEventBase):
    type: Literal["SUCHE_FRAME"] = "SUCHE_FRAME"
    frame_name: str = Field(..., alias="frameName")


class EmergencyReceivedEvent(_FrameEventBase):
    type: Literal["NOTFALL_EMPFANGEN"] = "NOTFALL_EMPFANGEN"
    frames: List[str] = Field(..., alias="list")


class EmergencyConfirmedEvent(_FrameEventBase):
    type: Literal["USER_BESTAETIGT_NOTFALL"] = "USER_BESTAETIGT_NOTFALL"
    accepted: bool


class LoadListEvent(_FrameEventBase):
    type: Literal["LADE_NEUE_LISTE"] = "LADE_NEUE_LISTE"
    frames: List[str] = Field(..., alias="list")
    list_context: ListContext = Field(..., alias="context")


FrameEvent = Annotated[
    Union[
        CloseEvent,
        ResetEvent,
        ShutdownEvent,
        NextFrameEvent,
        PreviousFrameEvent,
        SearchFrameEvent,
        EmergencyReceivedEvent,
        EmergencyConfirmedEvent,
        LoadListEvent,
    ],
    Field(discriminator="type"),
]

FRAME_EVENT_CLASSES = (
    CloseEvent,
    ResetEvent,
    ShutdownEvent,
    NextFrameEvent,
    PreviousFrameEvent,
    SearchFrameEvent,
    EmergencyReceivedEvent,
    EmergencyConfirmedEvent,
    LoadListEvent,
)

_frame_event_adapter: TypeAdapter = TypeAdapter(FrameEvent)


def parse_event(payload: Mapping[str, Any]) -> FrameEvent:
    """
    Validate a wire payload into a typed frame event.

    Args:
        payload: JSON object with a ``type`` discriminant

    Returns:
        The matching event model

    Raises:
        pydantic.ValidationError: If the discriminant is unknown or a field is invalid
    """
    return _frame_event_adapter.validate_python(dict(payload))


class SessionSnapshot(BaseModel):
    """Read-only, serializable view of one session."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    session_id: str
    current_state: Union[str, Dict[str, str]]
    current_frame: str
    context: FrameContext

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class APIResponse(BaseModel):
    """Standard API response."""
    success: bool = True
    message: str = ""
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
