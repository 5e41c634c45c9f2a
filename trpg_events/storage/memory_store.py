# ABOUTME: In-process SessionStore keeping JSON-serialized records in dictionaries.
# ABOUTME: atomic() journals the previous value of every key it writes and puts them back if the block raises.

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

from loguru import logger
from pydantic import BaseModel, ValidationError

from trpg_events.models.event_session import (
    EventMetadata,
    EventSession,
    EventState,
    EventStepType,
)
from trpg_events.models.outcomes import PenaltyEffect
from trpg_events.models.steps import EventStep
from trpg_events.models.task import TaskDefinition
from trpg_events.storage.base import SessionStore, check_expected_state
from trpg_events.storage.exceptions import NotFoundError, StorageError

_MISSING = object()


class InMemorySessionStore(SessionStore):
    """Dictionary-backed store for tests and single-process use"""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._journal: list[tuple[dict, Any, Any]] | None = None
        self.sessions: dict[str, str] = {}
        self.session_index: dict[tuple[str, str, str, str], str] = {}
        self.timelines: dict[str, list[str]] = {}
        self.tasks: dict[str, str] = {}
        self.session_penalties: dict[str, list[str]] = {}
        self.character_penalties: dict[str, list[str]] = {}

    def _remember(self, table: dict, key: Any) -> None:
        """Record a key's current value before the open atomic block changes it"""
        if self._journal is None:
            return
        previous = table.get(key, _MISSING)
        if isinstance(previous, list):
            previous = list(previous)
        self._journal.append((table, key, previous))

    @staticmethod
    def _undo(journal: list[tuple[dict, Any, Any]]) -> None:
        for table, key, previous in reversed(journal):
            if previous is _MISSING:
                table.pop(key, None)
            else:
                table[key] = previous

    @contextmanager
    def atomic(self, event_session_id: str) -> Iterator[None]:
        with self._lock:
            if self._journal is not None:
                yield
                return

            self._journal = []
            try:
                yield
            except BaseException:
                self._undo(self._journal)
                logger.debug(f"Rolled back writes for event session {event_session_id}")
                raise
            finally:
                self._journal = None

    @staticmethod
    def _load(model: type[BaseModel], raw: str):
        try:
            return model.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Corrupt {model.__name__} record: {e}") from e

    # Sessions
    def create(self, session: EventSession) -> None:
        with self._lock:
            if session.id in self.sessions:
                raise StorageError(f"Event session already exists: {session.id}")
            self._remember(self.sessions, session.id)
            self._remember(self.session_index, session.tuple_key)
            self._remember(self.timelines, session.id)
            self.sessions[session.id] = session.model_dump_json()
            self.session_index[session.tuple_key] = session.id
            self.timelines[session.id] = []

    def get(self, event_session_id: str) -> EventSession:
        with self._lock:
            raw = self.sessions.get(event_session_id)
        if raw is None:
            raise NotFoundError("event session", event_session_id)
        return self._load(EventSession, raw)

    def find_by_tuple(
        self,
        session_id: str,
        event_id: str,
        player_id: str,
        character_id: str
    ) -> EventSession | None:
        with self._lock:
            existing_id = self.session_index.get((session_id, event_id, player_id, character_id))
        if existing_id is None:
            return None
        return self.get(existing_id)

    def update_state(
        self,
        event_session_id: str,
        state: EventState,
        step: EventStepType,
        updated_at: datetime,
        expected_state: EventState | None = None
    ) -> EventSession:
        with self._lock:
            session = self.get(event_session_id)
            check_expected_state(session, expected_state)
            updated = session.model_copy(
                update={"state": state, "current_step": step, "updated_at": updated_at}
            )
            self._remember(self.sessions, event_session_id)
            self.sessions[event_session_id] = updated.model_dump_json()
        return updated

    def update_metadata(
        self,
        event_session_id: str,
        metadata: EventMetadata,
        updated_at: datetime
    ) -> EventSession:
        with self._lock:
            session = self.get(event_session_id)
            updated = session.model_copy(update={"metadata": metadata, "updated_at": updated_at})
            self._remember(self.sessions, event_session_id)
            self.sessions[event_session_id] = updated.model_dump_json()
        return updated

    # Timeline
    def append_step(self, event_session_id: str, step: EventStep) -> None:
        with self._lock:
            if event_session_id not in self.sessions:
                raise NotFoundError("event session", event_session_id)
            self._remember(self.timelines, event_session_id)
            self.timelines.setdefault(event_session_id, []).append(step.model_dump_json())

    def get_timeline(self, event_session_id: str) -> list[EventStep]:
        with self._lock:
            if event_session_id not in self.sessions:
                raise NotFoundError("event session", event_session_id)
            raw_steps = list(self.timelines.get(event_session_id, []))
        return [self._load(EventStep, raw) for raw in raw_steps]

    # Tasks
    def create_task(self, task: TaskDefinition) -> None:
        with self._lock:
            if task.id in self.tasks:
                raise StorageError(f"Task already exists: {task.id}")
            self._remember(self.tasks, task.id)
            self.tasks[task.id] = task.model_dump_json()

    def get_task(self, task_id: str) -> TaskDefinition:
        with self._lock:
            raw = self.tasks.get(task_id)
        if raw is None:
            raise NotFoundError("task", task_id)
        return self._load(TaskDefinition, raw)

    def update_task(self, task: TaskDefinition) -> None:
        with self._lock:
            stored = self.get_task(task.id)
            if stored.sealed:
                raise StorageError(f"Task {task.id} is sealed and read-only")
            self._remember(self.tasks, task.id)
            self.tasks[task.id] = task.model_dump_json()

    # Penalties
    def append_penalties(
        self,
        event_session_id: str,
        character_id: str,
        penalties: list[PenaltyEffect]
    ) -> None:
        with self._lock:
            self._remember(self.session_penalties, event_session_id)
            self._remember(self.character_penalties, character_id)
            for penalty in penalties:
                raw = penalty.model_dump_json()
                self.session_penalties.setdefault(event_session_id, []).append(raw)
                self.character_penalties.setdefault(character_id, []).append(raw)

    def get_penalties(
        self,
        event_session_id: str | None = None,
        character_id: str | None = None
    ) -> list[PenaltyEffect]:
        if event_session_id is None and character_id is None:
            raise ValueError("get_penalties requires event_session_id or character_id")

        with self._lock:
            if event_session_id is not None:
                raw_items = list(self.session_penalties.get(event_session_id, []))
            else:
                raw_items = list(self.character_penalties.get(character_id, []))
            character_raw = set(self.character_penalties.get(character_id, [])) if (
                event_session_id is not None and character_id is not None
            ) else None

        if character_raw is not None:
            raw_items = [raw for raw in raw_items if raw in character_raw]
        return [self._load(PenaltyEffect, raw) for raw in raw_items]
