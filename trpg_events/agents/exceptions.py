# ABOUTME: Exception definitions for the reasoning service boundary.
# ABOUTME: Defines CollaboratorError (carries the failing operation) and the transport-level LLMCallFailed.

from trpg_events.exceptions import EventEngineError


class CollaboratorError(EventEngineError):
    """Raised when a reasoning service call fails or returns an unusable shape"""

    def __init__(self, operation: str, message: str | None = None):
        self.operation = operation
        super().__init__(message or f"Reasoning service call '{operation}' failed")


class LLMCallFailed(EventEngineError):
    """Raised when the OpenAI API call fails"""
    pass
