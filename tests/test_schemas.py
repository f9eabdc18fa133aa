"""Event parsing and model tests."""
import pytest
from pydantic import ValidationError

from frame_service.models.schemas import (
    CloseEvent,
    DisplayContext,
    EmergencyConfirmedEvent,
    EmergencyReceivedEvent,
    FrameContext,
    FrameState,
    ListContext,
    LoadListEvent,
    NextFrameEvent,
    PreviousFrameEvent,
    ResetEvent,
    SearchFrameEvent,
    ShutdownEvent,
    parse_event,
)


@pytest.mark.parametrize("payload, cls", [
    ({"type": "SCHLIESSEN"}, CloseEvent),
    ({"type": "ZURUCKSETZEN"}, ResetEvent),
    ({"type": "AUSSCHALTEN"}, ShutdownEvent),
    ({"type": "NAECHSTER_FRAME"}, NextFrameEvent),
    ({"type": "VORHERIGER_FRAME"}, PreviousFrameEvent),
    ({"type": "SUCHE_FRAME", "frameName": "E2"}, SearchFrameEvent),
    ({"type": "NOTFALL_EMPFANGEN", "list": ["A1"]}, EmergencyReceivedEvent),
    ({"type": "USER_BESTAETIGT_NOTFALL", "accepted": True}, EmergencyConfirmedEvent),
    ({"type": "LADE_NEUE_LISTE", "list": ["E1"], "context": "ENTITAET"}, LoadListEvent),
])
def test_parse_every_wire_type(payload, cls):
    assert isinstance(parse_event(payload), cls)


def test_parse_carries_payload_fields():
    event = parse_event({"type": "LADE_NEUE_LISTE", "list": ["G1", "G2"], "context": "ALLGEMEIN"})
    assert event.frames == ["G1", "G2"]
    assert event.list_context is ListContext.GENERAL
    assert event.list_context.display_context is DisplayContext.GENERAL

    search = parse_event({"type": "SUCHE_FRAME", "frameName": "X"})
    assert search.frame_name == "X"


def test_unknown_discriminant():
    with pytest.raises(ValidationError):
        parse_event({"type": "FLIEGEN"})


def test_invalid_list_context():
    with pytest.raises(ValidationError):
        parse_event({"type": "LADE_NEUE_LISTE", "list": [], "context": "NOTFALL"})


def test_missing_required_field():
    with pytest.raises(ValidationError):
        parse_event({"type": "USER_BESTAETIGT_NOTFALL"})


def test_events_are_frozen():
    event = NextFrameEvent()
    with pytest.raises(ValidationError):
        event.type = "SCHLIESSEN"


class TestFrameState:
    def test_atomic_path(self):
        assert FrameState.INACTIVE.as_path() == "Inactive"
        assert FrameState.TERMINATED.as_path() == "Terminated"

    def test_compound_path(self):
        assert FrameState.WORK_MODE_GENERAL.as_path() == {"WorkMode": "General"}
        assert FrameState.EMERGENCY_CONFIRM.as_path() == {"EmergencyMode": "Confirm"}

    def test_parent_and_child(self):
        assert FrameState.EMERGENCY_DISPLAY.parent == "EmergencyMode"
        assert FrameState.EMERGENCY_DISPLAY.child == "Display"
        assert FrameState.INACTIVE.child is None

    def test_only_terminated_is_final(self):
        assert [s for s in FrameState if s.is_final] == [FrameState.TERMINATED]


def test_context_accepts_camel_case():
    context = FrameContext.model_validate({"entityList": ["E1"], "entityIndex": 0})
    assert context.entity_list == ["E1"]
    assert context.model_dump(by_alias=True)["entityList"] == ["E1"]
