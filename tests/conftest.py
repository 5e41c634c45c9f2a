# ABOUTME: Shared pytest fixtures for all test modules (unit, integration, contract).
# ABOUTME: Provides a stateful fake Redis, a mocked reasoning service, stores, and common event test data.

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import WatchError

from trpg_events.mechanics.difficulty import DifficultyCalculator
from trpg_events.models.context import (
    Character,
    CharacterSkill,
    EventChoice,
    EventContext,
    SessionContext,
)
from trpg_events.models.dice_models import DiceRollResult
from trpg_events.models.task import TaskApproach, TaskDraft, TaskEvaluation, TaskModifier
from trpg_events.orchestration.state_machine import EventSessionStateMachine
from trpg_events.storage.memory_store import InMemorySessionStore
from trpg_events.storage.redis_store import RedisSessionStore


# --- Helper Functions ---

def make_roll(
    raw_roll: int,
    modifiers: int = 0,
    target_number: int = 15,
    dice_type: str = "d20",
    **flags: Any
) -> DiceRollResult:
    """Helper to build a consistent caller-supplied roll"""
    return DiceRollResult(
        dice_type=dice_type,
        raw_roll=raw_roll,
        modifiers=modifiers,
        total_result=raw_roll + modifiers,
        target_number=target_number,
        **flags
    )


class StepClock:
    """Deterministic clock advancing one second per reading"""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class FrozenClock:
    """Clock that never advances, for exercising strict timestamp ordering"""

    def __init__(self, instant: datetime | None = None):
        self.instant = instant or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.instant


# --- Fake Redis ---

class FakePipeline:
    """Transactional pipeline honouring WATCH/MULTI/EXEC semantics"""

    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._watched: dict[str, int] = {}
        self._queue: list[tuple] = []
        self.executed = False

    def watch(self, *keys: str) -> None:
        for key in keys:
            self._watched[key] = self._redis.versions.get(key, 0)

    def multi(self) -> None:
        pass

    def set(self, key, value):
        self._queue.append(("set", key, value))

    def rpush(self, key, *values):
        self._queue.append(("rpush", key, *values))

    def expire(self, key, seconds):
        self._queue.append(("expire", key, seconds))

    def execute(self) -> list:
        for key, version in self._watched.items():
            if self._redis.versions.get(key, 0) != version:
                self.reset()
                raise WatchError("Watched variable changed.")
        results = [getattr(self._redis, op)(*args) for op, *args in self._queue]
        self.executed = True
        self.reset()
        return results

    def reset(self) -> None:
        self._watched = {}
        self._queue = []


class FakeRedis:
    """In-memory stand-in for the subset of redis.Redis the session store uses"""

    def __init__(self):
        self.strings: dict[str, bytes] = {}
        self.lists: dict[str, list[bytes]] = {}
        self.versions: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    @staticmethod
    def _encode(value) -> bytes:
        return value if isinstance(value, bytes) else str(value).encode("utf-8")

    def _touch(self, key: str) -> None:
        self.versions[key] = self.versions.get(key, 0) + 1

    def ping(self) -> bool:
        return True

    def get(self, key):
        return self.strings.get(key)

    def set(self, key, value):
        self.strings[key] = self._encode(value)
        self._touch(key)
        return True

    def rpush(self, key, *values):
        items = self.lists.setdefault(key, [])
        items.extend(self._encode(v) for v in values)
        self._touch(key)
        return len(items)

    def lrange(self, key, start, end):
        items = self.lists.get(key, [])
        stop = None if end == -1 else end + 1
        return list(items[start:stop])

    def exists(self, *keys) -> int:
        return sum(1 for k in keys if k in self.strings or k in self.lists)

    def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)


# --- Context Fixtures ---

@pytest.fixture
def character() -> Character:
    """Rogue with strong investigation and weak persuasion"""
    return Character(
        id="char_mira_001",
        name="Mira Ashdown",
        character_class="rogue",
        level=4,
        skills=[
            CharacterSkill(name="investigation", level=14),
            CharacterSkill(name="persuasion", level=8),
        ],
    )


@pytest.fixture
def choices() -> list[EventChoice]:
    """Two options offered at the collapsed bridge"""
    return [
        EventChoice(id="explore", text="Explore the ravine for another crossing"),
        EventChoice(id="negotiate", text="Bargain with the ferryman"),
    ]


@pytest.fixture
def event_context() -> EventContext:
    return EventContext(
        event_id="bridge",
        title="The Collapsed Bridge",
        description="The only bridge over the Greywater has fallen into the ravine",
        current_situation="Dusk is settling and the far bank is forty feet away",
    )


@pytest.fixture
def session_context() -> SessionContext:
    return SessionContext(
        session_id="session_001",
        campaign_id="campaign_001",
        current_location="Collapsed bridge over the Greywater",
        time_of_day="dusk",
        recent_events=["The bridge collapsed behind the party"],
    )


@pytest.fixture
def task_draft() -> TaskDraft:
    return TaskDraft(
        interpretation="Mira searches the ravine walls for a way down",
        objective="Find a safe path across the ravine",
        approach=TaskApproach(method="exploration", skills=["investigation"], tools=["rope"]),
        constraints=["Night is falling"],
        success_criteria=["Reach the far bank"],
    )


@pytest.fixture
def medium_evaluation() -> TaskEvaluation:
    return TaskEvaluation(
        final_difficulty="medium",
        modifiers=[TaskModifier(label="slippery rocks", value=2)],
        reasoning="A careful climb with rope is plausible but risky in the dark",
    )


# --- Mock Client Fixtures ---

@pytest.fixture
def mock_reasoning_service(task_draft, medium_evaluation, choices):
    """Reasoning service double returning fixed choices, a task, a medium evaluation and a narrative"""
    service = MagicMock()
    service.generate_choices = AsyncMock(return_value=choices)
    service.interpret_choice = AsyncMock(return_value=task_draft)
    service.evaluate_solution = AsyncMock(return_value=medium_evaluation)
    service.narrate_result = AsyncMock(return_value="The rope holds as Mira swings across.")
    return service


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def memory_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def redis_store(fake_redis) -> RedisSessionStore:
    return RedisSessionStore(fake_redis)


@pytest.fixture(params=["memory", "redis"])
def any_store(request):
    """Each store implementation in turn"""
    if request.param == "memory":
        return InMemorySessionStore()
    return RedisSessionStore(FakeRedis())


@pytest.fixture(name="make_roll")
def make_roll_fixture():
    return make_roll


@pytest.fixture
def frozen_clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def build_machine(mock_reasoning_service):
    """Factory for state machines over a chosen store and clock"""
    def _build(store=None, clock=None, **kwargs) -> EventSessionStateMachine:
        return EventSessionStateMachine(
            reasoning_service=kwargs.pop("reasoning_service", mock_reasoning_service),
            store=store if store is not None else InMemorySessionStore(),
            difficulty_calculator=kwargs.pop("difficulty_calculator", DifficultyCalculator()),
            clock=clock or StepClock(),
            **kwargs
        )
    return _build


@pytest.fixture
def state_machine(build_machine, memory_store) -> EventSessionStateMachine:
    return build_machine(store=memory_store)
