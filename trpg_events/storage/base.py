# ABOUTME: SessionStore contract for event sessions, step timelines, tasks and penalty records.
# ABOUTME: Pure data access; atomic() groups writes for one session so they land together or not at all.

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime

from trpg_events.models.event_session import (
    EventMetadata,
    EventSession,
    EventState,
    EventStepType,
)
from trpg_events.models.outcomes import PenaltyEffect
from trpg_events.models.steps import EventStep
from trpg_events.models.task import TaskDefinition
from trpg_events.storage.exceptions import ConcurrentModificationError


def check_expected_state(session: EventSession, expected_state: EventState | None) -> None:
    if expected_state is not None and session.state != expected_state:
        raise ConcurrentModificationError(
            f"Event session {session.id} is in state '{session.state.value}', "
            f"expected '{expected_state.value}'"
        )


class SessionStore(ABC):
    """Keyed record store used by the state machine; holds no business rules"""

    @abstractmethod
    def atomic(self, event_session_id: str) -> AbstractContextManager[None]:
        """
        Group writes for one session.

        Every write made inside the block is applied together, or none are if
        the block raises. Blocks may nest; only the outermost one commits.

        Raises:
            ConcurrentModificationError: If another writer changed the session meanwhile
        """
        raise NotImplementedError

    # Sessions
    @abstractmethod
    def create(self, session: EventSession) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, event_session_id: str) -> EventSession:
        """Raises NotFoundError if the session does not exist"""
        raise NotImplementedError

    @abstractmethod
    def find_by_tuple(
        self,
        session_id: str,
        event_id: str,
        player_id: str,
        character_id: str
    ) -> EventSession | None:
        """Latest session created for a (session, event, player, character) tuple"""
        raise NotImplementedError

    @abstractmethod
    def update_state(
        self,
        event_session_id: str,
        state: EventState,
        step: EventStepType,
        updated_at: datetime,
        expected_state: EventState | None = None
    ) -> EventSession:
        """
        Move a session to a new state.

        When expected_state is given, the stored state is read and compared in
        the same transaction as the write.

        Raises:
            ConcurrentModificationError: If the stored state is not expected_state
        """
        raise NotImplementedError

    @abstractmethod
    def update_metadata(
        self,
        event_session_id: str,
        metadata: EventMetadata,
        updated_at: datetime
    ) -> EventSession:
        raise NotImplementedError

    # Timeline
    @abstractmethod
    def append_step(self, event_session_id: str, step: EventStep) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_timeline(self, event_session_id: str) -> list[EventStep]:
        """Steps in insertion order"""
        raise NotImplementedError

    # Tasks
    @abstractmethod
    def create_task(self, task: TaskDefinition) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_task(self, task_id: str) -> TaskDefinition:
        """Raises NotFoundError if the task does not exist"""
        raise NotImplementedError

    @abstractmethod
    def update_task(self, task: TaskDefinition) -> None:
        """Replace a stored task; raises StorageError if the stored copy is sealed"""
        raise NotImplementedError

    # Penalties
    @abstractmethod
    def append_penalties(
        self,
        event_session_id: str,
        character_id: str,
        penalties: list[PenaltyEffect]
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_penalties(
        self,
        event_session_id: str | None = None,
        character_id: str | None = None
    ) -> list[PenaltyEffect]:
        """
        Read the penalty ledger by session, by character, or both.

        Raises:
            ValueError: If neither filter is given
        """
        raise NotImplementedError
