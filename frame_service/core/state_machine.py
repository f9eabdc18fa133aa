"""Frame navigation state machine.

A hierarchical automaton evaluated one event at a time:

    Inactive
    WorkMode        -> Entity | General   (+ shallow history)
    EmergencyMode   -> Confirm | Display
    Terminated      (final)

Transitions live in an explicit table keyed by ``(scope, event type)``.
For every event the root scope is consulted first, then the active
compound state, then the active leaf; the first transition whose guard
holds wins. Actions and entry actions never mutate a context, they return
a new one, so ``step`` is a pure function of its inputs.
"""
from typing import Callable, Dict, List, Optional, Tuple, Union
import logging

from frame_service.models.schemas import (
    CONFIRM_FRAME,
    EMPTY_FRAME,
    CloseEvent,
    DisplayContext,
    EmergencyConfirmedEvent,
    EmergencyReceivedEvent,
    EventType,
    FrameContext,
    FrameEvent,
    FrameState,
    ListContext,
    LoadListEvent,
    MachineState,
    OriginState,
    SearchFrameEvent,
)

logger = logging.getLogger(__name__)

# Scopes that are not leaves
ROOT = "frameMachine"
WORK_MODE = "WorkMode"
EMERGENCY_MODE = "EmergencyMode"

# Pseudo target resolved to the last active WorkMode child
HISTORY = "WorkMode.History"

Guard = Callable[[FrameContext, FrameEvent], bool]
Action = Callable[[FrameContext, FrameEvent], FrameContext]
EntryAction = Callable[[FrameContext], FrameContext]
Target = Union[FrameState, str]

_LIST_FIELDS = {
    DisplayContext.ENTITY: ("entity_list", "entity_index"),
    DisplayContext.GENERAL: ("general_list", "general_index"),
    DisplayContext.EMERGENCY: ("emergency_list", "emergency_index"),
}


def _active_list(context: FrameContext) -> Optional[Tuple[List[str], int, str]]:
    """Return (frames, cursor, cursor field) of the displayed list."""
    fields = _LIST_FIELDS.get(context.display_context)
    if fields is None:
        return None
    list_field, index_field = fields
    return getattr(context, list_field), getattr(context, index_field), index_field


def _frame_at(frames: List[str], index: int) -> str:
    if 0 <= index < len(frames):
        return frames[index]
    return EMPTY_FRAME


# ---- Guards ----

def has_next_frame(context: FrameContext, event: FrameEvent) -> bool:
    active = _active_list(context)
    if active is None:
        return False
    frames, index, _ = active
    return index < len(frames) - 1


def has_previous_frame(context: FrameContext, event: FrameEvent) -> bool:
    active = _active_list(context)
    if active is None:
        return False
    frames, index, _ = active
    return bool(frames) and index > 0


def is_entity_context(context: FrameContext, event: FrameEvent) -> bool:
    return isinstance(event, LoadListEvent) and event.list_context is ListContext.ENTITY


def is_general_context(context: FrameContext, event: FrameEvent) -> bool:
    return isinstance(event, LoadListEvent) and event.list_context is ListContext.GENERAL


def is_same_display_context(context: FrameContext, event: FrameEvent) -> bool:
    if not isinstance(event, LoadListEvent):
        return False
    return event.list_context.display_context is context.display_context


def is_accepted(context: FrameContext, event: FrameEvent) -> bool:
    return isinstance(event, EmergencyConfirmedEvent) and event.accepted is True


def origin_is_work_mode(context: FrameContext, event: FrameEvent) -> bool:
    return context.origin_state is OriginState.WORK_MODE


def origin_is_inactive(context: FrameContext, event: FrameEvent) -> bool:
    return context.origin_state is OriginState.INACTIVE


# ---- Actions ----

def set_new_list(context: FrameContext, event: FrameEvent) -> FrameContext:
    """Install the loaded list and reset its cursor."""
    if not isinstance(event, LoadListEvent):
        return context

    frames = list(event.frames)
    if event.list_context is ListContext.ENTITY:
        updates = {"entity_list": frames, "entity_index": 0}
    else:
        updates = {"general_list": frames, "general_index": 0}
    updates["current_frame"] = _frame_at(frames, 0)
    return context.model_copy(update=updates)


def init_emergency_mode(context: FrameContext, event: FrameEvent) -> FrameContext:
    """Install the emergency list and ask for confirmation."""
    if not isinstance(event, EmergencyReceivedEvent):
        return context

    # originState is left as recorded by the interrupted mode's entry action
    return context.model_copy(update={
        "emergency_list": list(event.frames),
        "emergency_index": 0,
        "display_context": DisplayContext.EMERGENCY,
        "current_frame": CONFIRM_FRAME,
    })


def navigate_frame(context: FrameContext, event: FrameEvent) -> FrameContext:
    """Move the active cursor one step forward or back."""
    delta = 1 if EventType(event.type) is EventType.NEXT else -1
    active = _active_list(context)
    if active is None:
        return context

    frames, index, index_field = active
    new_index = index + delta
    if new_index < 0 or new_index >= len(frames):
        return context

    return context.model_copy(update={
        index_field: new_index,
        "current_frame": frames[new_index],
    })


def search_frame(context: FrameContext, event: FrameEvent) -> FrameContext:
    """Jump to the first exact match in the active list; a miss changes nothing."""
    if not isinstance(event, SearchFrameEvent):
        return context

    active = _active_list(context)
    if active is None:
        return context

    frames, _, index_field = active
    try:
        found = frames.index(event.frame_name)
    except ValueError:
        return context

    return context.model_copy(update={
        index_field: found,
        "current_frame": frames[found],
    })


def reset_context(context: FrameContext, event: FrameEvent) -> FrameContext:
    return FrameContext()


# ---- Entry actions ----

def enter_inactive(context: FrameContext) -> FrameContext:
    return context.model_copy(update={
        "origin_state": OriginState.INACTIVE,
        "display_context": DisplayContext.INACTIVE,
        "current_frame": EMPTY_FRAME,
    })


def enter_work_mode(context: FrameContext) -> FrameContext:
    return context.model_copy(update={"origin_state": OriginState.WORK_MODE})


def enter_entity(context: FrameContext) -> FrameContext:
    return context.model_copy(update={
        "display_context": DisplayContext.ENTITY,
        "current_frame": _frame_at(context.entity_list, context.entity_index),
    })


def enter_general(context: FrameContext) -> FrameContext:
    return context.model_copy(update={
        "display_context": DisplayContext.GENERAL,
        "current_frame": _frame_at(context.general_list, context.general_index),
    })


def enter_emergency_mode(context: FrameContext) -> FrameContext:
    return context.model_copy(update={"display_context": DisplayContext.EMERGENCY})


def enter_confirm(context: FrameContext) -> FrameContext:
    return context.model_copy(update={"current_frame": CONFIRM_FRAME})


def enter_display(context: FrameContext) -> FrameContext:
    return context.model_copy(update={
        "current_frame": _frame_at(context.emergency_list, context.emergency_index),
    })


def enter_terminated(context: FrameContext) -> FrameContext:
    return context.model_copy(update={"current_frame": EMPTY_FRAME})


class StateTransition:
    """Represents a state transition."""

    def __init__(
        self,
        source: str,
        event_type: EventType,
        target: Optional[Target] = None,
        condition: Optional[Guard] = None,
        action: Optional[Action] = None,
        reenter: bool = False,
        raise_event: Optional[FrameEvent] = None,
        description: str = ""
    ):
        """
        Initialize state transition.

        Args:
            source: Scope owning the handler (root, compound or leaf name)
            event_type: Event that triggers the transition
            target: Target leaf, HISTORY, or None for a targetless transition
            condition: Optional guard evaluated against (context, event)
            action: Optional context transform applied before entering the target
            reenter: Re-run entry actions of the source leaf when targetless
            raise_event: Internal event evaluated right after this transition
            description: Human-readable description
        """
        self.source = source
        self.event_type = event_type
        self.target = target
        self.condition = condition
        self.action = action
        self.reenter = reenter
        self.raise_event = raise_event
        self.description = description

    def can_transition(self, context: FrameContext, event: FrameEvent) -> bool:
        """Check if the guard allows this transition."""
        if self.condition:
            return self.condition(context, event)
        return True

    @property
    def changes_state(self) -> bool:
        return self.target is not None or self.reenter


class FrameStateMachine:
    """State machine for frame navigation."""

    def __init__(self):
        """Initialize state machine."""
        self.transitions: Dict[Tuple[str, EventType], List[StateTransition]] = {}
        self.entry_actions: Dict[str, List[EntryAction]] = {}
        self._setup_entry_actions()
        self._setup_transitions()

    def add_transition(self, transition: StateTransition):
        """Add a transition to the table, after any existing one for the same key."""
        key = (transition.source, transition.event_type)
        self.transitions.setdefault(key, []).append(transition)

    def add_entry_action(self, state: str, action: EntryAction):
        """Add an entry action for a compound or leaf state."""
        self.entry_actions.setdefault(state, []).append(action)

    def start(self) -> Tuple[MachineState, FrameContext]:
        """Initial state and context, with Inactive's entry actions applied."""
        state = MachineState()
        context = self._run_entry_actions(FrameContext(), [state.current.value])
        return state, context

    def get_scopes(self, current: FrameState) -> List[str]:
        """Scopes consulted for a handler, outermost first."""
        scopes = [ROOT]
        if current.child is not None:
            scopes.append(current.parent)
        scopes.append(current.value)
        return scopes

    def select_transition(
        self,
        current: FrameState,
        context: FrameContext,
        event: FrameEvent
    ) -> Optional[StateTransition]:
        """Return the first enabled transition for the event, if any."""
        event_type = EventType(event.type)
        for scope in self.get_scopes(current):
            for transition in self.transitions.get((scope, event_type), []):
                if transition.can_transition(context, event):
                    return transition
        return None

    def step(
        self,
        state: MachineState,
        context: FrameContext,
        event: FrameEvent
    ) -> Tuple[MachineState, FrameContext]:
        """
        Evaluate one event to completion.

        Args:
            state: Current machine state
            context: Current context
            event: Event to process

        Returns:
            The new (state, context); the inputs are returned unchanged when
            no transition is enabled
        """
        if state.current.is_final:
            logger.debug(f"Event {event.type} ignored: machine is in final state")
            return state, context

        transition = self.select_transition(state.current, context, event)
        if transition is None:
            logger.debug(f"Event {event.type} ignored in {state.current.value}")
            return state, context

        if transition.action:
            context = transition.action(context, event)

        if transition.changes_state:
            state, context = self._enter(state, context, transition)

        if transition.raise_event is not None:
            # Internal event, resolved before control returns to the caller
            return self.step(state, context, transition.raise_event)

        return state, context

    def _resolve_target(self, state: MachineState, transition: StateTransition) -> FrameState:
        if transition.target is None:
            return state.current
        if transition.target == HISTORY:
            return state.work_mode_history
        return FrameState(transition.target)

    def _enter(
        self,
        state: MachineState,
        context: FrameContext,
        transition: StateTransition
    ) -> Tuple[MachineState, FrameContext]:
        source = state.current
        target = self._resolve_target(state, transition)

        entered: List[str] = []
        if transition.source == ROOT or target.parent != source.parent:
            if target.child is not None:
                entered.append(target.parent)
            entered.append(target.value)
        elif target is not source or transition.reenter:
            entered.append(target.value)

        context = self._run_entry_actions(context, entered)

        history = state.work_mode_history
        if target.parent == WORK_MODE:
            history = target

        logger.info(f"State transition: {source.value} -> {target.value}")
        return MachineState(current=target, work_mode_history=history), context

    def _run_entry_actions(self, context: FrameContext, states: List[str]) -> FrameContext:
        for name in states:
            for action in self.entry_actions.get(name, []):
                context = action(context)
        return context

    def _setup_entry_actions(self):
        """Register entry actions, outer states before inner ones."""
        self.add_entry_action(FrameState.INACTIVE.value, enter_inactive)
        self.add_entry_action(WORK_MODE, enter_work_mode)
        self.add_entry_action(FrameState.WORK_MODE_ENTITY.value, enter_entity)
        self.add_entry_action(FrameState.WORK_MODE_GENERAL.value, enter_general)
        self.add_entry_action(EMERGENCY_MODE, enter_emergency_mode)
        self.add_entry_action(FrameState.EMERGENCY_CONFIRM.value, enter_confirm)
        self.add_entry_action(FrameState.EMERGENCY_DISPLAY.value, enter_display)
        self.add_entry_action(FrameState.TERMINATED.value, enter_terminated)

    def _setup_transitions(self):
        """Set up the frame navigation transitions."""

        # ---- Global handlers ----
        self.add_transition(StateTransition(
            source=ROOT,
            event_type=EventType.EMERGENCY_RECEIVED,
            target=FrameState.EMERGENCY_CONFIRM,
            action=init_emergency_mode,
            description="Emergency interrupts any mode and asks for confirmation"
        ))

        self.add_transition(StateTransition(
            source=ROOT,
            event_type=EventType.RESET,
            target=FrameState.INACTIVE,
            action=reset_context,
            description="Drop all lists and return to Inactive"
        ))

        # ---- Inactive ----
        self.add_transition(StateTransition(
            source=FrameState.INACTIVE.value,
            event_type=EventType.LOAD_LIST,
            target=FrameState.WORK_MODE_ENTITY,
            condition=is_entity_context,
            action=set_new_list,
            description="Entity list loaded"
        ))

        self.add_transition(StateTransition(
            source=FrameState.INACTIVE.value,
            event_type=EventType.LOAD_LIST,
            target=FrameState.WORK_MODE_GENERAL,
            condition=is_general_context,
            action=set_new_list,
            description="General list loaded"
        ))

        self.add_transition(StateTransition(
            source=FrameState.INACTIVE.value,
            event_type=EventType.SHUTDOWN,
            target=FrameState.TERMINATED,
            description="Service shut down"
        ))

        # ---- WorkMode (Entity and General) ----
        self.add_transition(StateTransition(
            source=WORK_MODE,
            event_type=EventType.CLOSE,
            target=FrameState.INACTIVE,
            description="Close work mode"
        ))

        self._add_navigation(WORK_MODE)

        self.add_transition(StateTransition(
            source=WORK_MODE,
            event_type=EventType.LOAD_LIST,
            condition=is_same_display_context,
            action=set_new_list,
            reenter=True,
            description="Reload the displayed list"
        ))

        self.add_transition(StateTransition(
            source=FrameState.WORK_MODE_ENTITY.value,
            event_type=EventType.LOAD_LIST,
            target=FrameState.WORK_MODE_GENERAL,
            condition=is_general_context,
            action=set_new_list,
            description="Switch to general list"
        ))

        self.add_transition(StateTransition(
            source=FrameState.WORK_MODE_GENERAL.value,
            event_type=EventType.LOAD_LIST,
            target=FrameState.WORK_MODE_ENTITY,
            condition=is_entity_context,
            action=set_new_list,
            description="Switch to entity list"
        ))

        # ---- EmergencyMode ----
        self.add_transition(StateTransition(
            source=EMERGENCY_MODE,
            event_type=EventType.CLOSE,
            target=HISTORY,
            condition=origin_is_work_mode,
            description="Resume the interrupted work mode child"
        ))

        self.add_transition(StateTransition(
            source=EMERGENCY_MODE,
            event_type=EventType.CLOSE,
            target=FrameState.INACTIVE,
            condition=origin_is_inactive,
            description="Return to Inactive"
        ))

        self.add_transition(StateTransition(
            source=FrameState.EMERGENCY_CONFIRM.value,
            event_type=EventType.EMERGENCY_CONFIRMED,
            target=FrameState.EMERGENCY_DISPLAY,
            condition=is_accepted,
            description="Emergency accepted"
        ))

        self.add_transition(StateTransition(
            source=FrameState.EMERGENCY_CONFIRM.value,
            event_type=EventType.EMERGENCY_CONFIRMED,
            raise_event=CloseEvent(),
            description="Emergency rejected, close via origin"
        ))

        self._add_navigation(FrameState.EMERGENCY_DISPLAY.value)

    def _add_navigation(self, source: str):
        """next/previous/search handlers over the displayed list."""
        self.add_transition(StateTransition(
            source=source,
            event_type=EventType.SEARCH,
            action=search_frame,
            description="Search frame"
        ))

        self.add_transition(StateTransition(
            source=source,
            event_type=EventType.NEXT,
            condition=has_next_frame,
            action=navigate_frame,
            description="Next frame"
        ))

        self.add_transition(StateTransition(
            source=source,
            event_type=EventType.PREVIOUS,
            condition=has_previous_frame,
            action=navigate_frame,
            description="Previous frame"
        ))


# Global state machine instance
frame_state_machine = FrameStateMachine()
