"""Event session orchestration: state machine, transition table and timeline replay"""

from .exceptions import InvalidInputError, InvalidStateTransitionError
from .replay import ReplayedSession, replay_timeline
from .state_machine import EventSessionStateMachine
from .transitions import OPERATION_ENTRY_STATES, TRANSITIONS, can_transition

__all__ = [
    "EventSessionStateMachine",
    "InvalidInputError",
    "InvalidStateTransitionError",
    "OPERATION_ENTRY_STATES",
    "ReplayedSession",
    "TRANSITIONS",
    "can_transition",
    "replay_timeline",
]
