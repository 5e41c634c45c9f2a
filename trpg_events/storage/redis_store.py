# ABOUTME: Redis-backed SessionStore storing pydantic records as JSON strings and timelines as lists.
# ABOUTME: atomic() queues writes in a MULTI/EXEC pipeline that WATCHes the session key.

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from loguru import logger
from pydantic import BaseModel, ValidationError
from redis import Redis
from redis.exceptions import RedisError, WatchError

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
from trpg_events.storage.exceptions import (
    ConcurrentModificationError,
    NotFoundError,
    StorageError,
)


def session_key(event_session_id: str) -> str:
    return f"event_session:{event_session_id}"


def timeline_key(event_session_id: str) -> str:
    return f"event_session:{event_session_id}:timeline"


def task_key(task_id: str) -> str:
    return f"event_task:{task_id}"


def session_penalties_key(event_session_id: str) -> str:
    return f"event_session:{event_session_id}:penalties"


def character_penalties_key(character_id: str) -> str:
    return f"character:{character_id}:penalties"


def session_index_key(session_id: str, event_id: str, player_id: str, character_id: str) -> str:
    return f"event_session_index:{session_id}:{event_id}:{player_id}:{character_id}"


def _text(value: bytes | str) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


class RedisSessionStore(SessionStore):
    """
    Session store backed by Redis.

    Writes outside an atomic() block open their own short transaction, so
    every public write is all-or-nothing even when called on its own.
    """

    def __init__(self, redis_client: Redis, ttl_seconds: int | None = None):
        """
        Initialize Redis session store.

        Args:
            redis_client: Redis connection for record storage
            ttl_seconds: Optional expiry applied to every written key
        """
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self._local = threading.local()

    @contextmanager
    def atomic(self, event_session_id: str) -> Iterator[None]:
        if getattr(self._local, "pipeline", None) is not None:
            yield
            return

        pipe = self.redis.pipeline(transaction=True)
        try:
            pipe.watch(session_key(event_session_id))
            pipe.multi()
            self._local.pipeline = pipe
            self._local.pending = {}
            try:
                yield
            finally:
                self._local.pipeline = None
                self._local.pending = None
            pipe.execute()
        except WatchError as e:
            logger.warning(f"Concurrent write detected on event session {event_session_id}")
            raise ConcurrentModificationError(
                f"Event session {event_session_id} was modified concurrently"
            ) from e
        except RedisError as e:
            raise StorageError(f"Redis write failed for {event_session_id}: {e}") from e
        finally:
            pipe.reset()

    def _writer(self):
        pipe = getattr(self._local, "pipeline", None)
        if pipe is None:
            raise StorageError("Writes must run inside atomic()")
        return pipe

    def _set(self, key: str, value: str) -> None:
        writer = self._writer()
        writer.set(key, value)
        self._local.pending[key] = value
        if self.ttl_seconds:
            writer.expire(key, self.ttl_seconds)

    def _rpush(self, key: str, value: str) -> None:
        writer = self._writer()
        writer.rpush(key, value)
        if self.ttl_seconds:
            writer.expire(key, self.ttl_seconds)

    def _get_raw(self, key: str) -> bytes | str | None:
        """Read a string key, seeing values already queued in the open transaction"""
        pending = getattr(self._local, "pending", None)
        if pending and key in pending:
            return pending[key]
        return self.redis.get(key)

    @staticmethod
    def _load(model: type[BaseModel], raw: bytes | str):
        try:
            return model.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Corrupt {model.__name__} record: {e}") from e

    # Sessions
    def create(self, session: EventSession) -> None:
        if self._get_raw(session_key(session.id)) is not None:
            raise StorageError(f"Event session already exists: {session.id}")
        with self.atomic(session.id):
            self._set(session_key(session.id), session.model_dump_json())
            self._set(session_index_key(*session.tuple_key), session.id)
        logger.debug(f"Created event session record {session.id}")

    def get(self, event_session_id: str) -> EventSession:
        raw = self._get_raw(session_key(event_session_id))
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
        existing_id = self.redis.get(session_index_key(session_id, event_id, player_id, character_id))
        if existing_id is None:
            return None
        return self.get(_text(existing_id))

    def update_state(
        self,
        event_session_id: str,
        state: EventState,
        step: EventStepType,
        updated_at: datetime,
        expected_state: EventState | None = None
    ) -> EventSession:
        with self.atomic(event_session_id):
            # Read after WATCH so a later write by another client fails EXEC
            session = self.get(event_session_id)
            check_expected_state(session, expected_state)
            updated = session.model_copy(
                update={"state": state, "current_step": step, "updated_at": updated_at}
            )
            self._set(session_key(event_session_id), updated.model_dump_json())
        return updated

    def update_metadata(
        self,
        event_session_id: str,
        metadata: EventMetadata,
        updated_at: datetime
    ) -> EventSession:
        with self.atomic(event_session_id):
            session = self.get(event_session_id)
            updated = session.model_copy(update={"metadata": metadata, "updated_at": updated_at})
            self._set(session_key(event_session_id), updated.model_dump_json())
        return updated

    # Timeline
    def append_step(self, event_session_id: str, step: EventStep) -> None:
        if self._get_raw(session_key(event_session_id)) is None:
            raise NotFoundError("event session", event_session_id)
        with self.atomic(event_session_id):
            self._rpush(timeline_key(event_session_id), step.model_dump_json())

    def get_timeline(self, event_session_id: str) -> list[EventStep]:
        if self._get_raw(session_key(event_session_id)) is None:
            raise NotFoundError("event session", event_session_id)
        raw_steps = self.redis.lrange(timeline_key(event_session_id), 0, -1)
        return [self._load(EventStep, raw) for raw in raw_steps]

    # Tasks
    def create_task(self, task: TaskDefinition) -> None:
        if self._get_raw(task_key(task.id)) is not None:
            raise StorageError(f"Task already exists: {task.id}")
        with self.atomic(task.event_session_id):
            self._set(task_key(task.id), task.model_dump_json())

    def get_task(self, task_id: str) -> TaskDefinition:
        raw = self._get_raw(task_key(task_id))
        if raw is None:
            raise NotFoundError("task", task_id)
        return self._load(TaskDefinition, raw)

    def update_task(self, task: TaskDefinition) -> None:
        stored = self.get_task(task.id)
        if stored.sealed:
            raise StorageError(f"Task {task.id} is sealed and read-only")
        with self.atomic(task.event_session_id):
            self._set(task_key(task.id), task.model_dump_json())

    # Penalties
    def append_penalties(
        self,
        event_session_id: str,
        character_id: str,
        penalties: list[PenaltyEffect]
    ) -> None:
        with self.atomic(event_session_id):
            for penalty in penalties:
                raw = penalty.model_dump_json()
                self._rpush(session_penalties_key(event_session_id), raw)
                self._rpush(character_penalties_key(character_id), raw)

    def get_penalties(
        self,
        event_session_id: str | None = None,
        character_id: str | None = None
    ) -> list[PenaltyEffect]:
        if event_session_id is None and character_id is None:
            raise ValueError("get_penalties requires event_session_id or character_id")

        if event_session_id is not None:
            raw_items = self.redis.lrange(session_penalties_key(event_session_id), 0, -1)
        else:
            raw_items = self.redis.lrange(character_penalties_key(character_id), 0, -1)

        penalties = [self._load(PenaltyEffect, raw) for raw in raw_items]
        if event_session_id is not None and character_id is not None:
            character_ids = {
                self._load(PenaltyEffect, raw).id
                for raw in self.redis.lrange(character_penalties_key(character_id), 0, -1)
            }
            penalties = [p for p in penalties if p.id in character_ids]
        return penalties
