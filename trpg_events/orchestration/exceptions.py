# ABOUTME: Exception definitions for orchestration layer errors.
# ABOUTME: Defines caller-side errors raised by EventSessionStateMachine before any state change.

from trpg_events.exceptions import EventEngineError


class InvalidInputError(EventEngineError):
    """Raised when caller input is empty, malformed or inconsistent with the session"""

    pass


class InvalidStateTransitionError(EventEngineError):
    """Raised when an operation is called in a state that does not accept it"""

    pass
