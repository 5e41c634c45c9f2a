# ABOUTME: Table-driven transition graph and operation guards for event sessions.
# ABOUTME: "Which states can call X" and "where can state Y go" are each a single lookup here.

from trpg_events.models.event_session import EventState, EventStepType
from trpg_events.orchestration.exceptions import InvalidStateTransitionError

TRANSITIONS: dict[EventState, frozenset[EventState]] = {
    EventState.WAITING_FOR_CHOICE: frozenset({EventState.PROCESSING_CHOICE}),
    EventState.PROCESSING_CHOICE: frozenset({EventState.WAITING_FOR_SOLUTION, EventState.FAILED}),
    EventState.WAITING_FOR_SOLUTION: frozenset({EventState.CALCULATING_DIFFICULTY}),
    EventState.CALCULATING_DIFFICULTY: frozenset({EventState.DICE_ROLLING, EventState.FAILED}),
    EventState.DICE_ROLLING: frozenset({EventState.PROCESSING_RESULT}),
    EventState.PROCESSING_RESULT: frozenset({
        EventState.COMPLETED,
        EventState.WAITING_FOR_RETRY,
        EventState.FAILED,
    }),
    EventState.WAITING_FOR_RETRY: frozenset({EventState.WAITING_FOR_SOLUTION, EventState.FAILED}),
    EventState.COMPLETED: frozenset(),
    EventState.FAILED: frozenset(),
}

OPERATION_ENTRY_STATES: dict[str, frozenset[EventState]] = {
    "submit_choice": frozenset({EventState.WAITING_FOR_CHOICE}),
    "submit_solution": frozenset({EventState.WAITING_FOR_SOLUTION, EventState.WAITING_FOR_RETRY}),
    "submit_roll": frozenset({EventState.DICE_ROLLING}),
    "generate_retry_options": frozenset({EventState.WAITING_FOR_RETRY}),
    "abandon_session": frozenset({EventState.WAITING_FOR_RETRY}),
}

# Current-step marker that accompanies each state
STATE_STEPS: dict[EventState, EventStepType] = {
    EventState.WAITING_FOR_CHOICE: EventStepType.CHOICE_SELECTION,
    EventState.PROCESSING_CHOICE: EventStepType.AI_INTERPRETATION,
    EventState.WAITING_FOR_SOLUTION: EventStepType.TASK_PRESENTATION,
    EventState.CALCULATING_DIFFICULTY: EventStepType.DIFFICULTY_CALCULATION,
    EventState.DICE_ROLLING: EventStepType.DICE_ROLL,
    EventState.PROCESSING_RESULT: EventStepType.RESULT_PROCESSING,
    EventState.WAITING_FOR_RETRY: EventStepType.RETRY_SELECTION,
}


def can_transition(from_state: EventState, to_state: EventState) -> bool:
    return to_state in TRANSITIONS[from_state]


def require_transition(event_session_id: str, from_state: EventState, to_state: EventState) -> None:
    """Raises InvalidStateTransitionError unless from_state -> to_state is an edge of the graph"""
    if not can_transition(from_state, to_state):
        raise InvalidStateTransitionError(
            f"Event session {event_session_id} cannot move from "
            f"'{from_state.value}' to '{to_state.value}'"
        )


def require_operation(event_session_id: str, operation: str, state: EventState) -> None:
    """Raises InvalidStateTransitionError if the operation is not accepted in the current state"""
    allowed = OPERATION_ENTRY_STATES[operation]
    if state not in allowed:
        expected = ", ".join(sorted(s.value for s in allowed))
        raise InvalidStateTransitionError(
            f"{operation} is not allowed for event session {event_session_id} "
            f"in state '{state.value}' (expected: {expected})"
        )
