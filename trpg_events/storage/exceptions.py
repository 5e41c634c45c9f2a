# ABOUTME: Exception definitions for the session store layer.
# ABOUTME: Defines NotFoundError, StorageError and ConcurrentModificationError.

from trpg_events.exceptions import EventEngineError


class NotFoundError(EventEngineError):
    """Raised when a session or task id does not exist in the store"""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class StorageError(EventEngineError):
    """Raised when a stored record is unreadable or a write fails"""
    pass


class ConcurrentModificationError(StorageError):
    """Raised when an atomic block loses a race on the session record"""
    pass
